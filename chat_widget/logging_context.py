"""Visitor id tagging for log output.

The controller records the anonymous visitor id in a context variable when
a session starts. A filter on the output handler copies it onto every record
that reaches the handler, so module loggers stay plain ``logging.getLogger``
loggers and ``%(visitor_id)s`` can sit in the shared format string.
"""

import logging
from contextvars import ContextVar
from typing import IO, Optional

NO_VISITOR = "-"

LOG_FORMAT = "%(asctime)s [%(name)s] [%(visitor_id)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_visitor_id: ContextVar[str] = ContextVar("visitor_id", default=NO_VISITOR)


def set_visitor_id(visitor_id: str) -> None:
    _visitor_id.set(visitor_id)


def get_visitor_id() -> str:
    return _visitor_id.get()


class VisitorIdFilter(logging.Filter):
    """Stamps ``visitor_id`` on records passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "visitor_id"):
            record.visitor_id = get_visitor_id()  # type: ignore[attr-defined]
        return True


def visitor_handler(stream: Optional[IO[str]] = None) -> logging.Handler:
    """Stream handler that can format ``LOG_FORMAT`` for records from any logger."""
    handler = logging.StreamHandler(stream)
    handler.addFilter(VisitorIdFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler
