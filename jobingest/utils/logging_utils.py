from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TextIO


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra_fields"):
            payload.update(getattr(record, "extra_fields"))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(log_dir: str = "data/logs", level: str | int = logging.INFO, stream: TextIO | None = None) -> Path:
    """Route all logging to ``<log_dir>/jobingest.log``, plus ``stream`` when given."""
    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)
    logfile = path / "jobingest.log"
    formatter = JsonFormatter()
    handlers: list[logging.Handler] = [logging.FileHandler(logfile, encoding="utf-8")]
    if stream is not None:
        handlers.append(logging.StreamHandler(stream))
    for handler in handlers:
        handler.setFormatter(formatter)
    root = logging.getLogger()
    root.setLevel(level if isinstance(level, int) else level.upper())
    root.handlers = handlers
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logfile


def stderr_stream(verbose: bool) -> TextIO | None:
    return sys.stderr if verbose else None
