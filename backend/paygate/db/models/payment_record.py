"""PaymentRecord model: append-only log of settled provider payments."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Numeric, String

from paygate.db.base import Base


class PaymentRecord(Base):
    """One row per provider payment id.

    The primary key on ``payment_id`` is the idempotency key for webhook
    deliveries: a second insert for the same id fails with IntegrityError.
    Rows are never updated.
    """

    __tablename__ = "payment_records"

    payment_id = Column(String(255), primary_key=True)
    # Correlation id from the provider metadata; not a foreign key so that
    # payments naming an unknown user are still recorded
    user_id = Column(String(255), nullable=False, index=True)

    status = Column(String(50), nullable=False)
    amount = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(10), nullable=True)
    raw = Column(JSON, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
