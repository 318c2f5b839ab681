"""
Structured logging configuration with trace IDs
"""
import logging
import uuid
import contextvars
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from fyndak.utils import utcnow

# Context variable to store trace ID across async calls
trace_id_var = contextvars.ContextVar("trace_id", default=None)

_EXTRA_FIELDS = ("product_id", "bid_id", "bidder_id", "user_id", "duration_ms")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with trace ID and domain fields"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = utcnow().isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "fyndak"

        trace_id = trace_id_var.get()
        if trace_id:
            log_record["trace_id"] = trace_id

        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                log_record[field] = getattr(record, field)


def setup_logging(level: str = "INFO", json_output: bool = True) -> logging.Logger:
    """Configure root logging once"""
    root_logger = logging.getLogger()

    if getattr(root_logger, "_fyndak_configured", False):
        root_logger.setLevel(level)
        return root_logger

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    root_logger._fyndak_configured = True

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return root_logger


def get_trace_id() -> Optional[str]:
    """Get current trace ID"""
    return trace_id_var.get()


def set_trace_id(trace_id: str):
    """Set trace ID for current context"""
    trace_id_var.set(trace_id)


def generate_trace_id() -> str:
    """Generate a new trace ID"""
    return str(uuid.uuid4())
