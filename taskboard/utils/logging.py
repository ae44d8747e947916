"""
Logging Configuration

JSON output in production, readable lines in development. Modules get
their logger through get_logger(__name__) and pass request context
(tenant_id, user_id, ...) through ``extra``.

The request id is also kept in a context variable for the duration of a
request, and every record passing through the root handler is stamped
with it. Log lines from deep inside the services can
therefore be tied back to one request without threading ids through every
call.
"""
from contextvars import ContextVar
import logging
import sys
from typing import Any, Dict, Optional
import json
from datetime import datetime, timezone

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Extra attributes copied into JSON log lines when set on a record
CONTEXT_FIELDS = (
    "request_id",
    "tenant_id",
    "user_id",
    "target_tenant_id",
    "security_event",
    "event_type",
    "reason",
    "path",
    "method",
)


class RequestContextFilter(logging.Filter):
    """Fill request_id from the current request unless given in ``extra``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure application logging. Call once at startup.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format for structured logging
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))

    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_security_event(event_type: str, details: Dict[str, Any], logger: logging.Logger) -> None:
    """
    Log a security event at WARNING level.

    Event types in use:
    - failed_login: bad credentials, unknown or suspended tenant, inactive user
    - tenant_isolation_violation: a principal asked for another tenant's data
    - quota_exceeded: creation refused by a plan limit
    - rate_limit_exceeded: a tenant or client ran out of tokens
    """
    logger.warning(
        f"SECURITY EVENT: {event_type}",
        extra={"security_event": True, "event_type": event_type, **details}
    )
