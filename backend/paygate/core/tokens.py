"""Signed identity tokens (HS256 JWT).

A token carries a snapshot of the user's ``paid`` flag taken at issuance.
There is no revocation list: a token stays valid until ``exp`` even if the
user's entitlement or credentials change, so callers that need a fresh
entitlement must re-authenticate.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt as pyjwt

from paygate.core.exceptions import InvalidSignatureError, MalformedTokenError, TokenExpiredError

DEFAULT_EXPIRES_IN = timedelta(days=7)

_REQUIRED_CLAIMS = ["sub", "email", "paid", "iat", "exp"]


@dataclass(frozen=True)
class IdentityClaim:
    """Authenticated identity decoded from a token."""

    user_id: str
    email: str
    paid: bool
    issued_at: datetime | None = None
    expires_at: datetime | None = None


class TokenService:
    """Issues and verifies identity tokens with a process-wide secret."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expires_in: timedelta = DEFAULT_EXPIRES_IN,
    ):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.expires_in = expires_in

    def issue(self, claim: IdentityClaim, now: datetime | None = None) -> str:
        """Sign ``claim`` with an expiry of ``expires_in`` from ``now``."""
        issued_at = now or datetime.now(UTC)
        payload = {
            "sub": claim.user_id,
            "email": claim.email,
            "paid": bool(claim.paid),
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.expires_in).timestamp()),
        }
        return pyjwt.encode(payload, self._secret, algorithm=self.algorithm)

    def issue_for_user(self, user) -> str:
        """Issue a token snapshotting a User row's current entitlement."""
        return self.issue(IdentityClaim(user_id=str(user.id), email=user.email, paid=bool(user.paid)))

    def verify(self, token: str) -> IdentityClaim:
        """Verify signature and expiry and return the decoded claim.

        Raises TokenExpiredError, InvalidSignatureError or MalformedTokenError.
        """
        try:
            payload = pyjwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": _REQUIRED_CLAIMS},
            )
        except pyjwt.ExpiredSignatureError:
            raise TokenExpiredError()
        except pyjwt.InvalidSignatureError:
            raise InvalidSignatureError()
        except pyjwt.InvalidTokenError:
            raise MalformedTokenError()

        sub = payload.get("sub")
        paid = payload.get("paid")
        if not isinstance(sub, str) or not sub or not isinstance(paid, bool):
            raise MalformedTokenError()

        return IdentityClaim(
            user_id=sub,
            email=str(payload.get("email", "")),
            paid=paid,
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        )
