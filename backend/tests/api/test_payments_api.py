"""Tests for /api/pay routes: checkout creation and the provider webhook."""

import pytest
from sqlalchemy import func, select

from paygate.db.models.payment_record import PaymentRecord
from paygate.db.models.user import User

pytestmark = pytest.mark.integration


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def _count_payments(session_factory) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(PaymentRecord))).scalar_one()


class TestCreatePayment:
    async def test_returns_redirect_url_and_id(self, client, register, fake_provider):
        registered = await register()

        response = await client.post(
            "/api/pay/create",
            json={"title": "Pro", "price": 29.9, "quantity": 1, "currency": "BRL"},
            headers=_bearer(registered["token"]),
        )

        assert response.status_code == 200
        assert response.json() == {"redirectUrl": "https://mp.test/checkout/pref-1", "id": "pref-1"}
        sent = fake_provider.preferences[0]
        assert sent["metadata"] == {"user_id": registered["user"]["id"]}
        assert sent["items"][0]["unit_price"] == 29.9

    async def test_empty_body_uses_defaults(self, client, register, fake_provider):
        registered = await register()

        response = await client.post("/api/pay/create", headers=_bearer(registered["token"]))

        assert response.status_code == 200
        assert fake_provider.preferences[0]["items"][0]["title"] == "Assinatura - Pro"

    async def test_requires_auth(self, client, fake_provider):
        response = await client.post("/api/pay/create", json={})

        assert response.status_code == 401
        assert fake_provider.preferences == []

    async def test_provider_failure_returns_generic_500(self, client, register, fake_provider):
        registered = await register()
        fake_provider.fail_create = True

        response = await client.post("/api/pay/create", json={}, headers=_bearer(registered["token"]))

        assert response.status_code == 500
        assert response.json()["detail"] == "Payment provider error"
        assert "outage" not in response.text

    async def test_invalid_quantity_returns_400(self, client, register):
        registered = await register()

        response = await client.post("/api/pay/create", json={"quantity": 0}, headers=_bearer(registered["token"]))
        assert response.status_code == 400


class TestWebhook:
    async def test_approved_payment_flips_paid_flag(self, client, register, fake_provider, session_factory):
        registered = await register()
        fake_provider.add_payment("PAY1", "approved", user_id=registered["user"]["id"])

        response = await client.post("/api/pay/webhook", json={"type": "payment", "data": {"id": "PAY1"}})

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        async with session_factory() as session:
            user = (await session.execute(select(User))).scalar_one()
        assert user.paid is True

    async def test_duplicate_deliveries_are_acknowledged_and_recorded_once(
        self, client, register, fake_provider, session_factory
    ):
        registered = await register()
        fake_provider.add_payment("PAY1", "approved", user_id=registered["user"]["id"])

        for _ in range(3):
            response = await client.post("/api/pay/webhook", json={"type": "payment", "data": {"id": "PAY1"}})
            assert response.status_code == 200

        assert await _count_payments(session_factory) == 1

    async def test_body_status_is_not_trusted(self, client, register, fake_provider, session_factory):
        registered = await register()
        fake_provider.add_payment("PAY2", "rejected", user_id=registered["user"]["id"])

        response = await client.post(
            "/api/pay/webhook",
            json={"type": "payment", "data": {"id": "PAY2", "status": "approved"}, "status": "approved"},
        )

        assert response.status_code == 200
        assert fake_provider.fetch_calls == ["PAY2"]
        async with session_factory() as session:
            user = (await session.execute(select(User))).scalar_one()
        assert user.paid is False

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "merchant_order", "data": {"id": "MO1"}},
            {"type": "payment"},
            {"type": "payment", "data": {}},
            {},
        ],
    )
    async def test_ignored_notifications_are_acknowledged(self, client, fake_provider, payload):
        response = await client.post("/api/pay/webhook", json=payload)

        assert response.status_code == 200
        assert fake_provider.fetch_calls == []

    async def test_unattributable_payment_is_acknowledged(self, client, register, fake_provider, session_factory):
        await register()
        fake_provider.add_payment("PAY3", "approved", metadata={})

        response = await client.post("/api/pay/webhook", json={"type": "payment", "data": {"id": "PAY3"}})

        assert response.status_code == 200
        assert await _count_payments(session_factory) == 0
        async with session_factory() as session:
            user = (await session.execute(select(User))).scalar_one()
        assert user.paid is False

    async def test_provider_outage_is_still_acknowledged(self, client, fake_provider, session_factory):
        fake_provider.fail_fetch = True

        response = await client.post("/api/pay/webhook", json={"type": "payment", "data": {"id": "PAY4"}})

        assert response.status_code == 200
        assert await _count_payments(session_factory) == 0

    async def test_query_string_notification(self, client, register, fake_provider, session_factory):
        registered = await register()
        fake_provider.add_payment("PAY5", "approved", user_id=registered["user"]["id"])

        response = await client.post("/api/pay/webhook?type=payment&data.id=PAY5")

        assert response.status_code == 200
        assert await _count_payments(session_factory) == 1

    @pytest.mark.parametrize("content", [b"{not json", b"[1, 2, 3]", b'"payment"'])
    async def test_unreadable_body_returns_400(self, client, fake_provider, content):
        response = await client.post(
            "/api/pay/webhook",
            content=content,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert fake_provider.fetch_calls == []
