"""structlog setup for paygate.

Every record, whether it comes from structlog or from a stdlib logger such as
uvicorn or SQLAlchemy, goes through the same processor chain: correlation id
from asgi-correlation-id, secret redaction, ISO timestamp. Production renders
one JSON object per line; debug mode uses the colored console renderer.
"""

import logging
import logging.config

import structlog
from asgi_correlation_id.context import correlation_id

# Event keys whose values must never reach a log line
SENSITIVE_KEYS = frozenset({
    "password",
    "password_hash",
    "token",
    "authorization",
    "access_token",
    "jwt_secret",
})

REDACTED = "[redacted]"


def add_correlation_id(logger, method, event_dict):
    cid = correlation_id.get(None)
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def redact_secrets(logger, method, event_dict):
    """Blank out credentials passed as log keys, at any casing."""
    for key in list(event_dict):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def configure_structlog(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Install the processor chain and route stdlib logging through it.

    Must run before any module calls ``structlog.get_logger`` and logs,
    because loggers cache the chain on first use.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_correlation_id,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structlog": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer,
                ],
                "foreign_pre_chain": shared_processors,
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "structlog",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"handlers": ["stdout"], "level": log_level},
        "loggers": {
            # One line per request; the handlers log what matters
            "uvicorn.access": {"level": "WARNING"},
            # httpx logs every provider request URL at INFO
            "httpx": {"level": "WARNING"},
            "sqlalchemy.engine": {"level": "WARNING"},
        },
    })

    structlog.configure(
        processors=shared_processors + [
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
