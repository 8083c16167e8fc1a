import datetime
import logging
from logging import Logger
from typing import Any, Optional

from pythonjsonlogger.jsonlogger import JsonFormatter as BaseJsonFormatter

from media_gateway.config import Settings, get_settings


class JsonFormatter(BaseJsonFormatter):
    """One JSON object per line; ``extra=`` fields become top-level keys."""

    def add_fields(self, log_record: Any, record: Any, message_dict: Any) -> None:
        log_record["timestamp"] = datetime.datetime.fromtimestamp(
            record.created, tz=datetime.timezone.utc
        ).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        super().add_fields(log_record, record, message_dict)


def setup_logging(settings: Optional[Settings] = None):
    settings = settings or get_settings()
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler()
    if settings.LOG_FORMAT.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    logging.basicConfig(level=level, handlers=[handler], force=True)
    logging.getLogger("botocore").setLevel(logging.WARNING)


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)
