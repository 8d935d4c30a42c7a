"""Bearer-token authentication and entitlement gating for FastAPI."""

import structlog
from fastapi import Depends, Request

from paygate.core.exceptions import AuthError, EntitlementError
from paygate.core.tokens import IdentityClaim, TokenService

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "


def get_token_service(request: Request) -> TokenService:
    """Return the TokenService built by create_app."""
    return request.app.state.token_service


def extract_bearer_token(header_value: str | None) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header value.

    The prefix is matched exactly, case included, and the token must follow
    it directly.
    """
    if not header_value or not header_value.startswith(BEARER_PREFIX):
        raise AuthError()
    token = header_value[len(BEARER_PREFIX):]
    if not token or token != token.strip():
        raise AuthError()
    return token


async def require_auth(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
) -> IdentityClaim:
    """FastAPI dependency that resolves the caller's identity from a bearer token.

    Missing prefix, malformed token, bad signature and expiry all surface as
    the same 401 so the caller cannot tell them apart.

    Usage::

        @router.get("/protected")
        async def protected(claim: IdentityClaim = Depends(require_auth)):
            ...
    """
    token = extract_bearer_token(request.headers.get("authorization"))

    try:
        claim = tokens.verify(token)
    except AuthError as exc:
        logger.info("token_rejected", reason=type(exc).__name__)
        raise AuthError() from exc

    # Downstream error handlers and audit logs read this
    request.state.user_id = claim.user_id

    return claim


async def require_paid(claim: IdentityClaim = Depends(require_auth)) -> IdentityClaim:
    """FastAPI dependency that requires the paid entitlement.

    Checks the token's snapshot of ``paid``, not the database. A user who pays
    mid-session is still rejected here until they log in again.
    """
    if not claim.paid:
        raise EntitlementError()
    return claim
