"""User model: account credentials and the paid entitlement flag."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, String, Uuid

from paygate.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    # Only the webhook reconciler writes this; it never goes back to False
    paid = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    def to_public(self) -> dict:
        """Serializable view of the row without the credential hash."""
        return {
            "id": str(self.id),
            "email": self.email,
            "paid": bool(self.paid),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
