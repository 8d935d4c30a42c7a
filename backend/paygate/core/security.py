"""Credential hashing with bcrypt.

Plaintext secrets never leave this module: they are not logged, stored or
attached to exceptions.
"""

import asyncio
import secrets
from functools import lru_cache

import bcrypt

DEFAULT_ROUNDS = 10

# bcrypt only looks at the first 72 bytes of a secret
MAX_SECRET_BYTES = 72


def hash_password(secret: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a salted bcrypt digest of ``secret``."""
    encoded = secret.encode("utf-8")
    if len(encoded) > MAX_SECRET_BYTES:
        raise ValueError(f"Secret exceeds {MAX_SECRET_BYTES} bytes")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(secret: str, digest: str) -> bool:
    """Check ``secret`` against a stored bcrypt ``digest``.

    Returns False on mismatch. Raises ValueError only when ``digest`` is not a
    bcrypt hash.
    """
    encoded = secret.encode("utf-8")
    if len(encoded) > MAX_SECRET_BYTES:
        # hash_password never accepts these, so no stored digest can match
        return False
    return bcrypt.checkpw(encoded, digest.encode("utf-8"))


@lru_cache
def decoy_digest(rounds: int = DEFAULT_ROUNDS) -> str:
    """A digest no user owns, for comparing against when the account is unknown."""
    return hash_password(secrets.token_urlsafe(32), rounds)


async def hash_password_async(secret: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Run hash_password in a worker thread so the event loop stays free."""
    return await asyncio.to_thread(hash_password, secret, rounds)


async def verify_password_async(secret: str, digest: str) -> bool:
    """Run verify_password in a worker thread so the event loop stays free."""
    return await asyncio.to_thread(verify_password, secret, digest)
