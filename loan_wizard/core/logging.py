import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Optional

from loan_wizard.core.context import get_request_id, get_session_id
from loan_wizard.core.settings import settings

AUDIT_LOGGER_NAME = "loan_wizard.audit"

# Structured fields callers may pass through ``extra=``.
EXTRA_FIELDS = ("application_id", "phase", "item_index", "from_state", "to_state")


class RequestContextFilter(logging.Filter):
    """Stamp the request id and wizard session id on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        record.session_id = get_session_id()
        return True


class JsonFormatter(logging.Formatter):
    def __init__(self, stream_label: str = "transactional") -> None:
        super().__init__()
        self.stream_label = stream_label

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "stream": self.stream_label,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "session_id": getattr(record, "session_id", "-"),
        }
        for name in EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _stream_handler(formatter: str, level: str) -> dict[str, Any]:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": formatter,
        "filters": ["request_context"],
        "stream": "ext://sys.stdout",
    }


def configure_logging(level: Optional[str] = None) -> None:
    log_level = (level or settings.log_level).upper()
    loggers: dict[str, dict[str, Any]] = {
        "": {"handlers": ["default"], "level": log_level, "propagate": False},
        AUDIT_LOGGER_NAME: {"handlers": ["audit"], "level": log_level, "propagate": False},
        # httpx logs every upstream request at INFO.
        "httpx": {"handlers": ["default"], "level": "WARNING", "propagate": False},
    }
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        loggers[name] = {"handlers": ["default"], "level": log_level, "propagate": False}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_context": {"()": RequestContextFilter}},
            "formatters": {
                "json": {"()": JsonFormatter, "stream_label": "transactional"},
                "audit_json": {"()": JsonFormatter, "stream_label": "audit"},
            },
            "handlers": {
                "default": _stream_handler("json", log_level),
                "audit": _stream_handler("audit_json", log_level),
            },
            "loggers": loggers,
        }
    )
    logging.getLogger(__name__).info(
        "Logging configured for environment=%s upstream=%s",
        settings.environment,
        settings.sacco_api_base_url,
    )


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER_NAME)
