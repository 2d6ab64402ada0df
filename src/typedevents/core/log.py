# src/typedevents/core/log.py
from __future__ import annotations

import json
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

_configured = False


class JsonHandler(logging.StreamHandler):
    """One JSON object per log record, written to stdout."""
    def __init__(self, stream=None):
        super().__init__(stream=stream or sys.stdout)

    def format_record(self, record: logging.LogRecord) -> dict:
        obj = {
            "ts": record.created,
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        # dispatcher passes extra={"event": name}
        event = getattr(record, "event", None)
        if event is not None:
            obj["event"] = event
        if record.exc_info:
            obj["exc"] = logging.Formatter().formatException(record.exc_info)
        return obj

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.stream.write(json.dumps(self.format_record(record), ensure_ascii=False, default=str) + "\n")
            self.flush()
        except Exception:  # pragma: no cover
            self.handleError(record)


def setup(level: Optional[str] = None, json_mode: Optional[bool] = None, *, force: bool = False) -> None:
    """Configure the root logger.
    - Reads LOG_LEVEL, LOG_JSON from env (and .env) if args are None
    - If already configured, do nothing unless force=True
    """
    global _configured
    if _configured and not force:
        return

    load_dotenv()

    lvl = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    py_level = getattr(logging, lvl, None)
    if not isinstance(py_level, int):
        py_level = logging.INFO

    json_flag = json_mode if json_mode is not None else (os.getenv("LOG_JSON", "0") == "1")

    root = logging.getLogger()
    # Reset handlers to avoid duplicate logs (pytest re-runs etc.)
    root.handlers.clear()
    root.setLevel(py_level)

    if json_flag:
        root.addHandler(JsonHandler())
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(logging.Formatter(fmt="[%(asctime)s] %(levelname)s %(name)s | %(message)s"))
        root.addHandler(handler)

    _configured = True


def get(name: str) -> logging.Logger:
    """Namespaced logger under ``typedevents``."""
    if name == "typedevents" or name.startswith("typedevents."):
        return logging.getLogger(name)
    return logging.getLogger(f"typedevents.{name}")


def set_level(level: str) -> None:
    """Adjust the root log level at runtime (e.g. during tests)."""
    py_level = getattr(logging, level.upper(), None)
    logging.getLogger().setLevel(py_level if isinstance(py_level, int) else logging.INFO)
