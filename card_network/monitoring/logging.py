"""
Structured logging for the card network.

structlog events are rendered as JSON lines; stdlib records (uvicorn,
SQLAlchemy) go through python-json-logger onto the same stream. Request
scoped context (request id, merchant, payment operation) lives in
contextvars and is merged into every event.
"""
import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from pythonjsonlogger import jsonlogger

from card_network import __version__
from card_network.config import Settings, get_settings

# Chatty third-party loggers kept at WARNING
QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio")


def add_service_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Stamp every event with service name, environment and version."""
    settings = get_settings()
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("app_env", settings.app_env)
    event_dict.setdefault("version", __version__)
    return event_dict


def normalize_merchant(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    # Requests without a merchant header log as anonymous instead of ""
    if "merchant_id" in event_dict and not event_dict["merchant_id"]:
        event_dict["merchant_id"] = "anonymous"
    return event_dict


@contextmanager
def payment_context(operation: str, merchant_id: str, **extra: Any) -> Iterator[None]:
    """
    Bind the payment operation and merchant to every event logged in the block.

    Args:
        operation: Payment operation name (AUTHORIZATION, CAPTURE, ...)
        merchant_id: Requesting merchant account id
        **extra: Further identifiers such as ``order_id`` or ``reference_id``
    """
    with structlog.contextvars.bound_contextvars(
        operation=operation, merchant_id=merchant_id, **extra
    ):
        yield


def _stdlib_handler(settings: Settings) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
            static_fields={"service": settings.app_name},
        )
    )
    return handler


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        settings: Optional settings (defaults to the cached settings)
    """
    settings = settings or get_settings()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            structlog.processors.format_exc_info,
            add_service_context,
            normalize_merchant,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    root_logger.handlers[:] = [_stdlib_handler(settings)]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.get_logger(__name__).info(
        "logging_configured", log_level=settings.log_level, lock_backend=settings.lock_backend
    )
