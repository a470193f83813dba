"""
Structured JSON logging.

Every record carries the correlation id of the request being served and,
when the gateway forwarded them, the tenant and user the request acts for.
"""
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

# Request-scoped context, set by CorrelationIdMiddleware
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
tenant_id_var: ContextVar[str] = ContextVar("tenant_id", default="")
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

CONTEXT_FIELDS = (
    ("request_id", request_id_var),
    ("tenant_id", tenant_id_var),
    ("user_id", user_id_var),
)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def __init__(self, *args, environment: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.environment = environment

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)

        # Explicit `extra=` values win over the request context
        for name, var in CONTEXT_FIELDS:
            value = var.get()
            if value and not log_record.get(name):
                log_record[name] = value

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        if self.environment:
            log_record["env"] = self.environment


def setup_logging(level: Optional[str] = None, environment: Optional[str] = None):
    """Install the JSON handler on the root logger. Safe to call more than once."""
    from headoffice.core.config import settings

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler.formatter, CustomJsonFormatter):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(CustomJsonFormatter(
        "%(timestamp) %(level) %(name) %(message)",
        environment=environment or settings.environment,
    ))
    root.addHandler(handler)
    root.setLevel((level or settings.log_level).upper())

    # Suppress verbose logs from some libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)
