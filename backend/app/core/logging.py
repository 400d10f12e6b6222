"""
Structured logging for the storefront service.

Every log line is an event name plus keyword context, e.g.
``logger.info("order_created", order_number=..., total_amount=...)``.
Request-scoped values (request id, user id) are bound through
``structlog.contextvars`` by the request context middleware and merged into
every line emitted while the request is in flight, including lines emitted by
services and the payment client.

Console output is used for local development; JSON lines (rendered with
orjson) everywhere else.
"""

import logging
import sys
from typing import Any

import orjson
import structlog
from structlog.types import EventDict, Processor

from app.core.config import settings


def add_service_context(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Attach service name, environment and version to each entry."""
    event_dict["service_name"] = settings.SERVICE_NAME
    event_dict["environment"] = settings.ENVIRONMENT
    event_dict["version"] = settings.SERVICE_VERSION
    return event_dict


def add_log_level(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    if method_name:
        event_dict["level"] = method_name.upper()
    return event_dict


def rename_event_key(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Log shippers index on ``message``, structlog writes ``event``."""
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    return event_dict


def drop_color_message_key(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict.pop("color_message", None)
    return event_dict


def orjson_dumps(obj: Any, **kwargs: Any) -> str:
    # default=str covers UUIDs, Decimals and enums passed as log context
    return orjson.dumps(obj, default=str).decode("utf-8")


def configure_logging() -> None:
    """
    Configure stdlib logging and structlog. Call once at startup, before
    any module logs.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper()),
    )

    # LoggingMiddleware already writes structured access logs
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    # One line per outbound Paystack call is enough; httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosmtplib").setLevel(logging.WARNING)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_log_level,
        structlog.processors.format_exc_info,
        rename_event_key,
        drop_color_message_key,
    ]

    if settings.LOG_FORMAT == "console":
        renderer: Processor = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )
    else:
        renderer = structlog.processors.JSONRenderer(serializer=orjson_dumps)

    structlog.configure(
        processors=shared_processors + [renderer],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("payment_reconciled", order_number=order.order_number)
    """
    return structlog.get_logger(name)
