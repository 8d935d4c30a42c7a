"""Payment routes: checkout creation and the provider webhook."""

import json
from decimal import Decimal

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from paygate.api.deps import get_checkout_service, get_reconciler
from paygate.core.auth import require_auth
from paygate.core.exceptions import ValidationError
from paygate.core.tokens import IdentityClaim
from paygate.services.checkout_service import CheckoutService
from paygate.services.reconciler import WebhookReconciler, parse_notification

logger = structlog.get_logger(__name__)

router = APIRouter()


# ── Request / Response schemas ──────────────────────────────────────


class CheckoutRequest(BaseModel):
    title: str | None = None
    price: Decimal | None = None
    quantity: int | None = None
    currency: str | None = None


class CheckoutResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    redirect_url: str = Field(alias="redirectUrl")
    id: str


# ── Endpoints ───────────────────────────────────────────────────────


@router.post("/create", response_model=CheckoutResponse)
async def create_payment(
    body: CheckoutRequest | None = None,
    claim: IdentityClaim = Depends(require_auth),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    """Open a provider checkout for the caller and return the redirect URL."""
    body = body or CheckoutRequest()
    item = checkout.build_item(
        title=body.title,
        price=body.price,
        quantity=body.quantity,
        currency=body.currency,
    )
    session = await checkout.create_intent(claim.user_id, item)
    return CheckoutResponse(redirect_url=session.redirect_url, id=session.intent_id)


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    reconciler: WebhookReconciler = Depends(get_reconciler),
):
    """Receive a provider notification.

    Always answers 200 once the body is readable, whatever the outcome, so the
    provider does not retry deliveries it has already made. Only a body that
    is not a JSON object is rejected.
    """
    raw = await request.body()
    body: dict = {}
    if raw.strip():
        try:
            body = json.loads(raw)
        except ValueError:
            raise ValidationError("Invalid notification body")
        if not isinstance(body, dict):
            raise ValidationError("Invalid notification body")

    notification = parse_notification(body, dict(request.query_params))
    outcome = await reconciler.reconcile(notification)

    logger.info("webhook_acknowledged", payment_id=notification.payment_id, outcome=outcome.value)
    return {"status": "ok"}
