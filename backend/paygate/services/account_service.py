"""Account registration and login.

Login failures are deliberately indistinguishable: an unknown email and a
wrong password both raise the same AuthError.
"""

import asyncio
from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from paygate.core.exceptions import AuthError, ValidationError
from paygate.core.security import (
    MAX_SECRET_BYTES,
    decoy_digest,
    hash_password_async,
    verify_password_async,
)
from paygate.core.tokens import TokenService
from paygate.db.models.user import User
from paygate.db.store import find_user_by_email, find_user_by_id, insert_user

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


@dataclass(frozen=True)
class AuthResult:
    token: str
    user: User


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _require_credentials(email: str | None, password: str | None) -> tuple[str, str]:
    normalized = normalize_email(email)
    if not normalized or not password:
        raise ValidationError("Email and password required")
    return normalized, password


class AccountService:
    def __init__(
        self,
        tokens: TokenService,
        session_factory: async_sessionmaker[AsyncSession],
        bcrypt_rounds: int = 10,
    ):
        self.tokens = tokens
        self.session_factory = session_factory
        self.bcrypt_rounds = bcrypt_rounds

    async def register(self, email: str | None, password: str | None) -> AuthResult:
        """Create an account and return a token for it.

        Raises ValidationError on missing fields and ConflictError when the
        email is already registered.
        """
        email, password = _require_credentials(email, password)
        if len(password.encode("utf-8")) > MAX_SECRET_BYTES:
            raise ValidationError(f"Password must be at most {MAX_SECRET_BYTES} bytes")

        password_hash = await hash_password_async(password, self.bcrypt_rounds)

        async with self.session_factory() as session:
            user = await insert_user(session, email, password_hash)
            await session.commit()

        logger.info("user_registered", user_id=str(user.id))
        return AuthResult(token=self.tokens.issue_for_user(user), user=user)

    async def login(self, email: str | None, password: str | None) -> AuthResult:
        """Verify credentials and issue a token with the current ``paid`` flag.

        An unknown email still runs one bcrypt comparison against a decoy
        digest so both failure paths cost the same.
        """
        email, password = _require_credentials(email, password)

        async with self.session_factory() as session:
            user = await find_user_by_email(session, email)

        if user is None:
            decoy = await asyncio.to_thread(decoy_digest, self.bcrypt_rounds)
            await verify_password_async(password, decoy)
            logger.info("login_failed", reason="unknown_email")
            raise AuthError(INVALID_CREDENTIALS)

        try:
            valid = await verify_password_async(password, user.password_hash)
        except ValueError:
            logger.error("login_stored_hash_malformed", user_id=str(user.id))
            raise AuthError(INVALID_CREDENTIALS)

        if not valid:
            logger.info("login_failed", reason="bad_password", user_id=str(user.id))
            raise AuthError(INVALID_CREDENTIALS)

        logger.info("user_logged_in", user_id=str(user.id), paid=bool(user.paid))
        return AuthResult(token=self.tokens.issue_for_user(user), user=user)

    async def get_user(self, user_id: str) -> User:
        """Load the live user row for an authenticated claim."""
        async with self.session_factory() as session:
            user = await find_user_by_id(session, user_id)
        if user is None:
            raise AuthError()
        return user
