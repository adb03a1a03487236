"""
Structured logging for the factory API.

Every record carries the correlation context bound by
factory_shared.infrastructure.correlation (request id, acting user) plus
any keyword context passed to the logger call. Production writes one JSON
object per line; other environments write a single readable line.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from factory_shared.config.settings import settings
from factory_shared.infrastructure.correlation import CorrelationIdFilter

UNBOUND = "-"


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Correlation ids that are bound, followed by the call's keyword context."""
    context: dict[str, Any] = {}
    for key in ("request_id", "actor_id"):
        value = getattr(record, key, UNBOUND)
        if value and value != UNBOUND:
            context[key] = value
    context.update(getattr(record, "extra_data", None) or {})
    return context


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_record_context(record),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """`12:00:01 INFO factory_api.audit: Assigned manager (key=value | ...)`"""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        message = f"{timestamp} {record.levelname:8} {record.name}: {record.getMessage()}"

        context = _record_context(record)
        if context:
            message += " (" + " | ".join(f"{k}={v}" for k, v in context.items()) + ")"
        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"
        return message


class StructuredLogger(logging.Logger):
    """
    Logger whose keyword arguments become the record's context:

        logger.info("Manager assigned", line_id=line_id, user_id=user_id)

    exc_info and extra keep their standard meaning.
    """

    def _log_with_data(self, level: int, msg: str, args: tuple, **kwargs: Any) -> None:
        if not self.isEnabledFor(level):
            return
        exc_info = kwargs.pop("exc_info", None)
        extra = kwargs.pop("extra", None) or {}
        extra["extra_data"] = kwargs or None
        super()._log(level, msg, args, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.ERROR, msg, args, **kwargs)


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """Install the stdout handler on the root logger. Call once at startup."""
    log_level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        StructuredFormatter() if settings.environment == "production" else DevelopmentFormatter()
    )

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    for noisy in ("uvicorn.access", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Usage:
        from factory_shared.config.logging import get_logger
        logger = get_logger(__name__)

        logger.info("Line created", line_id=line.id)
    """
    return logging.getLogger(name)  # type: ignore


api_logger = get_logger("factory_api")
audit_logger = get_logger("factory_api.audit")
