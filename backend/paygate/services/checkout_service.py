"""Checkout initiation: opens a provider payment intent for a user.

The user's id travels to the provider as preference metadata (and as
``external_reference``). It is the only link between the anonymous webhook
that arrives later and the account that started the checkout.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

import structlog

from paygate.core.config import Settings
from paygate.core.exceptions import PaymentProviderError, UpstreamError, ValidationError
from paygate.integrations.mercadopago import PaymentProvider

logger = structlog.get_logger(__name__)

CORRELATION_KEY = "user_id"


@dataclass(frozen=True)
class CheckoutItem:
    title: str
    unit_price: Decimal
    quantity: int
    currency: str


@dataclass(frozen=True)
class CheckoutSession:
    redirect_url: str
    intent_id: str


@dataclass(frozen=True)
class CheckoutConfig:
    """Checkout settings resolved once at startup."""

    success_url: str
    failure_url: str
    pending_url: str
    notification_url: str = ""
    use_sandbox: bool = False
    default_title: str = "Assinatura - Pro"
    default_price: Decimal = Decimal("19.90")
    default_quantity: int = 1
    default_currency: str = "BRL"

    @classmethod
    def from_settings(cls, settings: Settings) -> "CheckoutConfig":
        return cls(
            success_url=settings.mp_success_url,
            failure_url=settings.mp_failure_url,
            pending_url=settings.mp_pending_url,
            notification_url=settings.mp_notification_url,
            use_sandbox=settings.mp_use_sandbox,
            default_title=settings.checkout_default_title,
            default_price=settings.checkout_default_price,
            default_quantity=settings.checkout_default_quantity,
            default_currency=settings.checkout_default_currency,
        )


class CheckoutService:
    """Builds provider checkout requests stamped with the caller's id."""

    def __init__(self, provider: PaymentProvider, config: CheckoutConfig):
        self.provider = provider
        self.config = config

    def build_item(
        self,
        title: str | None = None,
        price: Decimal | float | str | None = None,
        quantity: int | None = None,
        currency: str | None = None,
    ) -> CheckoutItem:
        """Fill missing fields from the configured defaults and validate."""
        try:
            unit_price = Decimal(str(price)) if price is not None else self.config.default_price
        except InvalidOperation as exc:
            raise ValidationError("Invalid price") from exc
        qty = quantity if quantity is not None else self.config.default_quantity

        if not unit_price.is_finite() or unit_price <= 0:
            raise ValidationError("Price must be positive")
        if qty <= 0:
            raise ValidationError("Quantity must be positive")

        return CheckoutItem(
            title=(title or "").strip() or self.config.default_title,
            unit_price=unit_price,
            quantity=qty,
            currency=(currency or "").strip().upper() or self.config.default_currency,
        )

    def build_preference(self, user_id: str, item: CheckoutItem) -> dict:
        """Return the keyword arguments for PaymentProvider.create_preference."""
        request = {
            "items": [
                {
                    "title": item.title,
                    "quantity": item.quantity,
                    "unit_price": float(item.unit_price),
                    "currency_id": item.currency,
                }
            ],
            "back_urls": {
                "success": self.config.success_url,
                "failure": self.config.failure_url,
                "pending": self.config.pending_url,
            },
            "metadata": {CORRELATION_KEY: user_id},
            "auto_return": "approved",
            "external_reference": user_id,
        }
        if self.config.notification_url:
            request["notification_url"] = self.config.notification_url
        return request

    async def create_intent(self, user_id: str, item: CheckoutItem) -> CheckoutSession:
        """Open a checkout with the provider and return where to send the user.

        No retry is attempted: the user retries by starting checkout again.
        Raises UpstreamError on any provider failure.
        """
        request = self.build_preference(user_id, item)

        try:
            preference = await self.provider.create_preference(**request)
        except PaymentProviderError as exc:
            logger.error("checkout_provider_error", user_id=user_id, detail=exc.detail, status=exc.status)
            raise UpstreamError("Payment provider error") from exc
        except Exception as exc:
            logger.error("checkout_provider_exception", user_id=user_id, error_type=type(exc).__name__, exc_info=True)
            raise UpstreamError("Payment provider error") from exc

        url_key = "sandbox_init_point" if self.config.use_sandbox else "init_point"
        redirect_url = preference.get(url_key) or preference.get("init_point")
        intent_id = preference.get("id")
        if not redirect_url or not intent_id:
            logger.error("checkout_preference_incomplete", user_id=user_id, keys=sorted(preference))
            raise UpstreamError("Payment provider error")

        logger.info("checkout_created", user_id=user_id, intent_id=intent_id, amount=str(item.unit_price))
        return CheckoutSession(redirect_url=redirect_url, intent_id=str(intent_id))
