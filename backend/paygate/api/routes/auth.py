"""Auth routes: register, login and the current user."""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from paygate.api.deps import get_account_service
from paygate.core.auth import require_auth
from paygate.core.tokens import IdentityClaim
from paygate.services.account_service import AccountService

router = APIRouter()


# ── Request / Response schemas ──────────────────────────────────────


class CredentialsRequest(BaseModel):
    # Optional so that missing fields become a 400 from the service, not a 422
    email: str | None = None
    password: str | None = None


class UserResponse(BaseModel):
    id: str
    email: str
    paid: bool
    created_at: datetime | None


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


class MeResponse(BaseModel):
    user: UserResponse


def _user_response(user) -> UserResponse:
    return UserResponse(id=str(user.id), email=user.email, paid=bool(user.paid), created_at=user.created_at)


# ── Endpoints ───────────────────────────────────────────────────────


@router.post("/register", response_model=AuthResponse)
async def register(
    body: CredentialsRequest,
    accounts: AccountService = Depends(get_account_service),
):
    """Create an account and return a token."""
    result = await accounts.register(body.email, body.password)
    return AuthResponse(token=result.token, user=_user_response(result.user))


@router.post("/login", response_model=AuthResponse)
async def login(
    body: CredentialsRequest,
    accounts: AccountService = Depends(get_account_service),
):
    """Exchange credentials for a token carrying the current paid flag."""
    result = await accounts.login(body.email, body.password)
    return AuthResponse(token=result.token, user=_user_response(result.user))


@router.get("/me", response_model=MeResponse)
async def me(
    claim: IdentityClaim = Depends(require_auth),
    accounts: AccountService = Depends(get_account_service),
):
    """Return the live user row behind the caller's token."""
    user = await accounts.get_user(claim.user_id)
    return MeResponse(user=_user_response(user))
