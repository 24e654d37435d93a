"""
Logging setup for the hygiene backend.

Plain text in development, one JSON object per line when LOG_FORMAT=json.
Modules log through ``logging.getLogger(__name__)``.
"""

import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .config import settings


TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


class JSONFormatter(logging.Formatter):
    """Structured formatter for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    if (fmt or settings.LOG_FORMAT).lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())
    root.addHandler(handler)

    # Quiet chatty libraries
    logging.getLogger("passlib").setLevel(logging.ERROR)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    _configured = True


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every request."""

    def __init__(self, app):
        super().__init__(app)
        self.logger = logging.getLogger("hygiene_backend.requests")

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        self.logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response
