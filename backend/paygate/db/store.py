"""Row-store operations for users and payment records.

Uniqueness is enforced by the database, never by a read-then-write check:
duplicate emails and duplicate payment ids surface as IntegrityError on
flush. After a duplicate the session's transaction has been rolled back.
"""

import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from paygate.core.exceptions import ConflictError
from paygate.db.models.payment_record import PaymentRecord
from paygate.db.models.user import User


def _parse_user_id(user_id: str | uuid.UUID) -> uuid.UUID | None:
    if isinstance(user_id, uuid.UUID):
        return user_id
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        return None


async def insert_user(session: AsyncSession, email: str, password_hash: str) -> User:
    """Insert a new user. Raises ConflictError if the email is taken."""
    user = User(email=email, password_hash=password_hash, paid=False)
    session.add(user)
    try:
        await session.flush()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError("Email already registered") from exc
    return user


async def find_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def find_user_by_id(session: AsyncSession, user_id: str | uuid.UUID) -> User | None:
    uid = _parse_user_id(user_id)
    if uid is None:
        return None
    result = await session.execute(select(User).where(User.id == uid))
    return result.scalar_one_or_none()


async def set_user_paid(session: AsyncSession, user_id: str | uuid.UUID) -> bool:
    """Set ``paid`` to True. Returns False when no user has this id."""
    uid = _parse_user_id(user_id)
    if uid is None:
        return False
    result = await session.execute(
        update(User).where(User.id == uid).values(paid=True).execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def insert_payment(session: AsyncSession, record: PaymentRecord) -> bool:
    """Insert a payment record.

    Returns True on first insertion and False when a record with the same
    ``payment_id`` already exists (the transaction is rolled back).
    """
    session.add(record)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        return False
    return True

