import logging
import json
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

from .config import settings

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class RequestIdFilter(logging.Filter):
    """Attach the id of the request being served, if any, to each record"""

    def filter(self, record):
        request_id = request_id_var.get()
        if request_id is not None:
            record.request_id = request_id
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
        }

        if hasattr(record, "request_id"):
            log_record["request_id"] = record.request_id

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """Configure the root logger once for the whole service"""
    if json_output is None:
        json_output = settings.LOG_JSON

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(PLAIN_FORMAT))
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel((level or settings.LOG_LEVEL).upper())
