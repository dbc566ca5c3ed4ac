"""Logging setup with optional JSON output and per-request correlation ids."""

from __future__ import annotations

import contextvars
import datetime
import json
import logging
import logging.handlers
import sys
from typing import List, Optional

REQUEST_ID: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.rid = REQUEST_ID.get("")
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        rid = getattr(record, "rid", "") or REQUEST_ID.get("")
        if rid:
            payload["rid"] = rid
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        rid = getattr(record, "rid", "")
        return f"[rid={rid}] {text}" if rid else text


def _build_handlers(json_logs: bool, log_file: Optional[str]) -> List[logging.Handler]:
    formatter: logging.Formatter = JSONFormatter() if json_logs else TextFormatter(TEXT_FORMAT, datefmt=DATE_FORMAT)
    handlers: List[logging.Handler] = []
    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(formatter)
    handlers.append(stream)
    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            mode="a",
            encoding="utf-8",
            maxBytes=1_000_000,
            backupCount=3,
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    for handler in handlers:
        handler.addFilter(RequestIdFilter())
    return handlers


def setup_logging(level: str = "INFO", json_logs: bool = False, log_file: Optional[str] = None) -> None:
    logging.basicConfig(level=level.upper(), handlers=_build_handlers(json_logs, log_file), force=True)
    logging.getLogger("dual_subtitles").setLevel(level.upper())
    logging.getLogger("httpx").setLevel(logging.WARNING)
    charset_logger = logging.getLogger("charset_normalizer")
    charset_logger.setLevel(logging.WARNING)
    charset_logger.propagate = False


__all__ = ["REQUEST_ID", "JSONFormatter", "setup_logging"]
