class PaygateError(Exception):
    """Base exception for Paygate.

    ``message`` is safe to return to callers; anything sensitive belongs in the
    log entry, never in the message.
    """

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(PaygateError):
    """Raised when request input is missing or malformed."""

    status_code = 400
    message = "Invalid request"


class AuthError(PaygateError):
    """Raised for any identity failure: bad credentials, missing or bad token."""

    status_code = 401
    message = "Unauthorized"


class TokenExpiredError(AuthError):
    """Raised when a token's exp claim is in the past."""

    pass


class InvalidSignatureError(AuthError):
    """Raised when a token's signature does not match the signing secret."""

    pass


class MalformedTokenError(AuthError):
    """Raised when a token cannot be decoded or lacks required claims."""

    pass


class EntitlementError(PaygateError):
    """Raised when a valid identity lacks the paid entitlement."""

    status_code = 402
    message = "Payment required"


class ConflictError(PaygateError):
    """Raised when a unique key already exists."""

    status_code = 409
    message = "Conflict"


class UpstreamError(PaygateError):
    """Raised when the payment provider or the store fails."""

    status_code = 500
    message = "Upstream service error"


class PaymentProviderError(UpstreamError):
    """Raised when a payment provider call fails."""

    message = "Payment provider error"

    def __init__(self, detail: str = "", status: int | None = None):
        # detail is for logs only; callers always see the generic message
        self.detail = detail
        self.status = status
        super().__init__()
