"""Logging configuration and the support log ring buffer.

Captures WARN+ log records with associated request_id (if request context) into
an in-memory deque for quick troubleshooting without external log aggregation.
"""

from __future__ import annotations

import collections
import logging
import time

from flask import Flask, g, has_request_context, request

LOG_BUFFER: collections.deque[dict] = collections.deque(maxlen=500)

LOGGER_NAME = "dinner_planner"


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_id = getattr(g, "request_id", "-")
            record.path = request.path
        else:
            record.request_id = "-"
            record.path = "-"
        return True


class SupportLogHandler(logging.Handler):  # pragma: no cover - simple container
    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        LOG_BUFFER.append(
            {
                "ts": time.time(),
                "level": record.levelname,
                "logger": record.name,
                "msg": self.format(record),
                "request_id": getattr(record, "request_id", "-"),
                "path": getattr(record, "path", "-"),
            }
        )


def configure_logging(app: Flask) -> None:
    log = logging.getLogger(LOGGER_NAME)
    log.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    # Avoid duplicate attachment when create_app runs more than once
    if not any(isinstance(h, logging.StreamHandler) for h in log.handlers):
        h = logging.StreamHandler()
        h.addFilter(RequestContextFilter())
        h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"))
        log.addHandler(h)
    if not any(isinstance(h, SupportLogHandler) for h in log.handlers):
        support = SupportLogHandler(level=logging.WARNING)
        support.addFilter(RequestContextFilter())
        support.setFormatter(logging.Formatter("%(message)s"))
        log.addHandler(support)


__all__ = ["LOG_BUFFER", "LOGGER_NAME", "configure_logging"]
