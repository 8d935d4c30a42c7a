"""Mercado Pago integration: checkout preferences and payment lookups.

Only the two calls the entitlement flow needs are implemented:
- POST /checkout/preferences to open a checkout for one line item
- GET /v1/payments/{id} to fetch the authoritative payment record
"""

import uuid
from typing import Protocol
from urllib.parse import quote

import httpx
import structlog

from paygate.core.exceptions import PaymentProviderError

logger = structlog.get_logger(__name__)


class PaymentProvider(Protocol):
    """Remote payment service the checkout and webhook flows depend on."""

    async def create_preference(self, items: list[dict], back_urls: dict, metadata: dict, **extra) -> dict: ...

    async def fetch_payment(self, payment_id: str) -> dict: ...


class MercadoPagoClient:
    """Client for the Mercado Pago REST API."""

    BASE_URL = "https://api.mercadopago.com"

    def __init__(
        self,
        access_token: str,
        base_url: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            access_token: Mercado Pago private access token
            base_url: API root, overridable for tests and proxies
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.access_token = access_token
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self, idempotency_key: str | None = None) -> dict:
        if not self.access_token:
            raise PaymentProviderError("Mercado Pago access token not configured")
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: dict | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        """Make an authenticated request and return the decoded JSON body."""
        headers = self._headers(idempotency_key)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{endpoint}",
                    headers=headers,
                    json=data,
                )
        except httpx.HTTPError as exc:
            logger.warning("mercadopago_transport_error", endpoint=endpoint, error=str(exc))
            raise PaymentProviderError(f"Transport error calling {endpoint}: {exc}") from exc

        if response.status_code >= 400:
            logger.warning(
                "mercadopago_request_failed",
                endpoint=endpoint,
                status_code=response.status_code,
            )
            raise PaymentProviderError(
                f"{method} {endpoint} returned {response.status_code}: {response.text[:500]}",
                status=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise PaymentProviderError(f"{method} {endpoint} returned non-JSON body") from exc

        if not isinstance(body, dict):
            raise PaymentProviderError(f"{method} {endpoint} returned unexpected body type")
        return body

    async def create_preference(self, items: list[dict], back_urls: dict, metadata: dict, **extra) -> dict:
        """Create a checkout preference.

        Args:
            items: Line items (title, quantity, unit_price, currency_id)
            back_urls: success/failure/pending redirect targets
            metadata: Free-form metadata echoed back on the payment
            **extra: Additional preference fields (auto_return, notification_url, ...)

        Returns:
            Preference dict including ``id``, ``init_point`` and ``sandbox_init_point``
        """
        payload = {"items": items, "back_urls": back_urls, "metadata": metadata, **extra}
        return await self._request(
            "POST",
            "/checkout/preferences",
            data=payload,
            idempotency_key=str(uuid.uuid4()),
        )

    async def fetch_payment(self, payment_id: str) -> dict:
        """Fetch the authoritative payment record by id."""
        return await self._request("GET", f"/v1/payments/{quote(str(payment_id), safe='')}")
