"""Webhook reconciliation: turns provider notifications into entitlement.

State of a payment as seen from here::

    UNSEEN -> (fetch by id) -> RECORDED(status) -> [status == approved] -> ENTITLED

The notification body is only a pointer. Status, amount and the owning user
are always read from the payment fetched back from the provider, so a forged
or stale body cannot grant entitlement.

Idempotency rests on the primary key of ``payment_records``: the first
delivery inserts the row (and flips ``users.paid`` in the same transaction),
every later delivery of the same payment id hits IntegrityError and becomes a
no-op. Non-terminal statuses are not recorded, so that a payment which moves
from pending to approved is not shadowed by its own pending row.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from paygate.core.exceptions import PaymentProviderError
from paygate.db.models.payment_record import PaymentRecord
from paygate.db.store import insert_payment, set_user_paid
from paygate.integrations.mercadopago import PaymentProvider

logger = structlog.get_logger(__name__)

PAYMENT_TYPE = "payment"
STATUS_APPROVED = "approved"

# Statuses that may still change; recording them would burn the payment id
NON_TERMINAL_STATUSES = frozenset({"pending", "in_process", "authorized", "in_mediation"})


class ReconcileOutcome(str, Enum):
    IGNORED = "ignored"
    UNATTRIBUTED = "unattributed"
    PENDING = "pending"
    DUPLICATE = "duplicate"
    RECORDED = "recorded"
    ENTITLED = "entitled"
    FAILED = "failed"


@dataclass(frozen=True)
class PaymentNotification:
    type: str
    payment_id: str | None


def parse_notification(body: dict, query: dict | None = None) -> PaymentNotification:
    """Extract the notification type and payment id.

    Accepts the JSON shape ``{"type": "payment", "data": {"id": "..."}}`` and
    the legacy query-string forms ``?type=payment&data.id=...`` and
    ``?topic=payment&id=...``.
    """
    query = query or {}
    data = body.get("data") if isinstance(body.get("data"), dict) else {}

    kind = body.get("type") or body.get("topic") or query.get("type") or query.get("topic") or ""
    payment_id = data.get("id") or query.get("data.id")
    if payment_id is None and kind == PAYMENT_TYPE:
        payment_id = query.get("id")

    if payment_id is not None and not isinstance(payment_id, (str, int)):
        payment_id = None
    payment_id = str(payment_id).strip() if payment_id is not None else None

    return PaymentNotification(type=str(kind), payment_id=payment_id or None)


def extract_correlation_id(payment: dict) -> str | None:
    """Return the user id a fetched payment belongs to, if any.

    The provider echoes preference metadata back on the payment with its keys
    snake_cased, so ``user_id`` is checked first.
    """
    metadata = payment.get("metadata") or {}
    if isinstance(metadata, dict):
        for key in ("user_id", "userId"):
            value = metadata.get(key)
            if value:
                return str(value)
    reference = payment.get("external_reference")
    return str(reference) if reference else None


def _to_amount(value) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


class WebhookReconciler:
    """Applies payment notifications to payment records and user entitlement.

    This is the only writer of ``users.paid``.
    """

    def __init__(self, provider: PaymentProvider, session_factory: async_sessionmaker[AsyncSession]):
        self.provider = provider
        self.session_factory = session_factory

    async def reconcile(self, notification: PaymentNotification) -> ReconcileOutcome:
        """Process one notification. Never raises.

        Failures talking to the provider or the store are logged and reported
        as FAILED; the caller acknowledges the delivery either way.
        """
        if notification.type != PAYMENT_TYPE or not notification.payment_id:
            logger.info("webhook_ignored", type=notification.type, has_id=bool(notification.payment_id))
            return ReconcileOutcome.IGNORED

        try:
            return await self._reconcile_payment(notification.payment_id)
        except PaymentProviderError as exc:
            logger.error(
                "webhook_provider_error",
                payment_id=notification.payment_id,
                detail=exc.detail,
                status=exc.status,
            )
            return ReconcileOutcome.FAILED
        except Exception as exc:
            logger.error(
                "webhook_reconcile_failed",
                payment_id=notification.payment_id,
                error_type=type(exc).__name__,
                exc_info=True,
            )
            return ReconcileOutcome.FAILED

    async def _reconcile_payment(self, payment_id: str) -> ReconcileOutcome:
        payment = await self.provider.fetch_payment(payment_id)

        status = str(payment.get("status") or "").lower()
        user_id = extract_correlation_id(payment)

        if not user_id:
            logger.warning("webhook_payment_unattributed", payment_id=payment_id, status=status)
            return ReconcileOutcome.UNATTRIBUTED

        if not status or status in NON_TERMINAL_STATUSES:
            logger.info("webhook_payment_not_settled", payment_id=payment_id, status=status, user_id=user_id)
            return ReconcileOutcome.PENDING

        record = PaymentRecord(
            payment_id=str(payment.get("id") or payment_id),
            user_id=user_id,
            status=status,
            amount=_to_amount(payment.get("transaction_amount")),
            currency=payment.get("currency_id"),
            raw=payment,
        )

        async with self.session_factory() as session:
            if not await insert_payment(session, record):
                logger.info("webhook_duplicate_payment_ignored", payment_id=record.payment_id)
                return ReconcileOutcome.DUPLICATE

            entitled = False
            if status == STATUS_APPROVED:
                entitled = await set_user_paid(session, user_id)
                if not entitled:
                    logger.warning("webhook_payment_user_not_found", payment_id=record.payment_id, user_id=user_id)

            await session.commit()

        if entitled:
            logger.info("user_entitled", payment_id=record.payment_id, user_id=user_id)
            return ReconcileOutcome.ENTITLED

        logger.info("payment_recorded", payment_id=record.payment_id, status=status, user_id=user_id)
        return ReconcileOutcome.RECORDED
