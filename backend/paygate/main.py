"""Paygate backend: FastAPI application entry point."""

import uuid
from contextlib import asynccontextmanager
from datetime import timedelta

# configure_structlog must run before the other paygate imports; structlog
# caches the processor chain on first use.
from paygate.core.logging import configure_structlog
from paygate.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=not _early_settings.debug,
)

import structlog

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from paygate.api.routes import api_router
from paygate.core.config import DEFAULT_JWT_SECRET, Settings, get_settings
from paygate.core.exceptions import PaygateError
from paygate.core.tokens import TokenService
from paygate.db import close_db, init_db
from paygate.integrations.mercadopago import MercadoPagoClient, PaymentProvider
from paygate.middleware.correlation import get_correlation_id, setup_correlation_middleware
from paygate.services.checkout_service import CheckoutConfig, CheckoutService

logger = structlog.get_logger(__name__)


def validate_signing_secret(settings: Settings) -> None:
    """Fail fast if production is about to sign tokens with the placeholder secret."""
    if settings.debug:
        return  # Skip in dev/test mode
    if not settings.jwt_secret or settings.jwt_secret == DEFAULT_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set to a non-default value outside debug mode")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings: Settings = app.state.settings
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    validate_signing_secret(settings)

    await init_db(settings.database_url)
    logger.info("db_initialized")

    yield

    logger.info("shutdown_begin")
    await close_db()
    logger.info("shutdown_complete")


def _log_context(request: Request) -> dict:
    return {
        "correlation_id": get_correlation_id(),
        "path": request.url.path,
        "method": request.method,
        "user_id": getattr(request.state, "user_id", None),
    }


async def paygate_exception_handler(request: Request, exc: PaygateError) -> JSONResponse:
    """Map domain errors to their status with a generic, caller-safe message."""
    debug_id = str(uuid.uuid4())

    logger.warning(
        "paygate_error",
        status_code=exc.status_code,
        error_type=type(exc).__name__,
        debug_id=debug_id,
        cause=repr(exc.__cause__) if exc.__cause__ else None,
        **_log_context(request),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "debug_id": debug_id},
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are a 400, like any other input error."""
    debug_id = str(uuid.uuid4())

    logger.info("request_validation_failed", debug_id=debug_id, errors=exc.errors(), **_log_context(request))

    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request body", "debug_id": debug_id},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework HTTP errors (unknown route, wrong method) with a debug_id."""
    debug_id = str(uuid.uuid4())

    logger.info(
        "http_exception",
        status_code=exc.status_code,
        debug_id=debug_id,
        detail=exc.detail,
        **_log_context(request),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "debug_id": debug_id},
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors.

    Logs full exception with traceback, returns generic 500 to client.
    """
    debug_id = str(uuid.uuid4())

    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
        **_log_context(request),
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def create_app(
    settings: Settings | None = None,
    payment_provider: PaymentProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Settings are resolved once here and handed to the services that need them;
    route code reads the built services from ``app.state``.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Bearer-token auth with webhook-driven paid entitlement",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    if payment_provider is None:
        payment_provider = MercadoPagoClient(
            access_token=settings.mp_access_token,
            base_url=settings.mp_api_base_url,
            timeout=settings.mp_timeout_seconds,
        )

    app.state.settings = settings
    app.state.token_service = TokenService(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expires_in=timedelta(days=settings.jwt_expires_days),
    )
    app.state.payment_provider = payment_provider
    app.state.checkout_service = CheckoutService(payment_provider, CheckoutConfig.from_settings(settings))

    origins = [o.strip() for o in settings.client_origin.split(",") if o.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers reject credentialed requests against a wildcard origin
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware (runs first on incoming requests)
    setup_correlation_middleware(app)

    # Exception handlers
    app.exception_handler(PaygateError)(paygate_exception_handler)
    app.exception_handler(RequestValidationError)(request_validation_exception_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    app.include_router(api_router, prefix="/api")

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "paygate.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=_early_settings.port,
    )
