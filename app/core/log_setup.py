from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

_installed_path: Optional[str] = None
_handler: Optional[logging.Handler] = None


class _Rfc3339Formatter(logging.Formatter):
    """`[2024-01-01T12:00:00+00:00] info: message` lines."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="seconds")
        line = f"[{ts}] {record.levelname.lower()}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def install_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Set the `app` logger level and attach a file handler once per path."""
    global _installed_path, _handler
    app_logger = logging.getLogger("app")
    app_logger.setLevel(level.upper())
    if not log_file or log_file == _installed_path:
        return app_logger

    if _handler is not None:
        app_logger.removeHandler(_handler)
        _handler.close()
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(_Rfc3339Formatter())
    app_logger.addHandler(handler)
    _handler = handler
    _installed_path = log_file
    return app_logger
