"""
JSON log output tagged with the request's correlation id.
"""
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from appraisal_api.core.config import settings

# Set per request by CorrelationIdMiddleware
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Libraries that are too chatty at INFO
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "urllib3")


class AppraisalJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("timestamp", datetime.fromtimestamp(record.created, timezone.utc).isoformat())
        log_record["level"] = record.levelname
        log_record["service"] = settings.app_name
        log_record["environment"] = settings.environment

        request_id = request_id_var.get()
        if request_id:
            log_record["request_id"] = request_id


def setup_logging(level: Optional[str] = None):
    root = logging.getLogger()
    root.setLevel(level or settings.log_level)
    # Importing the app twice (tests, reloaders) must not double every line
    if any(isinstance(h.formatter, AppraisalJsonFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(AppraisalJsonFormatter("%(timestamp) %(level) %(name) %(message)"))
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
