"""Request-scoped service construction.

Long-lived collaborators (token service, payment provider, checkout service,
settings) are built once in create_app and read from ``app.state``; nothing
here reaches for module-level configuration.
"""

from fastapi import Request

from paygate.db.base import get_session_factory
from paygate.services.account_service import AccountService
from paygate.services.checkout_service import CheckoutService
from paygate.services.reconciler import WebhookReconciler


def get_account_service(request: Request) -> AccountService:
    state = request.app.state
    return AccountService(
        tokens=state.token_service,
        session_factory=get_session_factory(),
        bcrypt_rounds=state.settings.bcrypt_rounds,
    )


def get_checkout_service(request: Request) -> CheckoutService:
    return request.app.state.checkout_service


def get_reconciler(request: Request) -> WebhookReconciler:
    return WebhookReconciler(
        provider=request.app.state.payment_provider,
        session_factory=get_session_factory(),
    )
