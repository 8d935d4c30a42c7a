"""API-specific test fixtures."""

import httpx
import pytest


@pytest.fixture
def app(settings, fake_provider, engine):
    """Application wired to the fake provider and the test database.

    The lifespan is not run; the engine fixture has already initialized the
    global session factory.
    """
    from paygate.main import create_app

    return create_app(settings=settings, payment_provider=fake_provider)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


@pytest.fixture
def register(client):
    """Register through the API and return the decoded JSON body."""

    async def _register(email: str = "alice@example.com", password: str = "secret123") -> dict:
        response = await client.post("/api/auth/register", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response.json()

    return _register
