from __future__ import annotations

import logging
import os
import sys
import json
import time
from typing import Optional


class JsonFormatter(logging.Formatter):
    """
    JSON line formatter used by the recognizer node:
      { "t": 1697, "lvl": "DEBUG", "name": "recognizer.detector", "msg": "not located", "extra": {...} }
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "t": int(time.time() * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):  # type: ignore[attr-defined]
            payload["extra"] = record.extra  # type: ignore[attr-defined]
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _level_from_name(name: str) -> int:
    lvl = logging.getLevelName(name.upper())
    return lvl if isinstance(lvl, int) else logging.INFO


def setup_logging(level: Optional[str] = None, *, log_file: Optional[str] = None, force: bool = False) -> None:
    """
    Configure the root logger with JSON formatting.
    Level precedence:
      - explicit `level` arg
      - env LOG_LEVEL (e.g., DEBUG/INFO/WARNING/ERROR)
      - default INFO
    Records go to stdout, and additionally to `log_file` (appended, one
    JSON object per line) when given.

    Idempotent unless `force` is set; an explicit level on a configured
    root only adjusts the level and attaches `log_file`.
    """
    root = logging.getLogger()
    configured = getattr(root, "_recognizer_configured", False)
    if configured and not force:
        if level:
            root.setLevel(_level_from_name(level))
        if log_file:
            _attach_file(root, log_file)
        return

    lvl = _level_from_name(level or os.environ.get("LOG_LEVEL") or "INFO")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    for h in root.handlers:
        h.close()
    root.handlers.clear()
    root.addHandler(handler)
    if log_file:
        _attach_file(root, log_file)
    root.setLevel(lvl)
    root._recognizer_configured = True  # type: ignore[attr-defined]


def _attach_file(root: logging.Logger, log_file: str) -> None:
    path = os.path.abspath(log_file)
    for h in root.handlers:
        if isinstance(h, logging.FileHandler) and h.baseFilename == path:
            return
    parent = os.path.dirname(path)
    os.makedirs(parent, exist_ok=True)
    fh = logging.FileHandler(path, encoding="utf-8")
    fh.setFormatter(JsonFormatter())
    root.addHandler(fh)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger; ensures root is configured."""
    setup_logging()
    return logging.getLogger(name)
