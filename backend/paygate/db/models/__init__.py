"""Re-export all models so Base.metadata sees them."""

from paygate.db.models.payment_record import PaymentRecord
from paygate.db.models.user import User

__all__ = [
    "PaymentRecord",
    "User",
]
