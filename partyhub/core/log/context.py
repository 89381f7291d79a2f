"""Request and job identifiers carried onto every log record."""
from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import Iterator


_context_var: contextvars.ContextVar[dict[str, object]] = contextvars.ContextVar(
    "log_context", default={}
)


class LogContext:
    """Binds values such as ``request_id``, ``party_id`` or ``stage`` for later records."""

    def bind(self, **values: object) -> None:
        current = dict(_context_var.get())
        current.update({k: v for k, v in values.items() if v is not None})
        _context_var.set(current)

    @contextmanager
    def scope(self, **values: object) -> Iterator[None]:
        """Bind ``values`` for one request or one backfill stage."""

        current = dict(_context_var.get())
        current.update({k: v for k, v in values.items() if v is not None})
        token = _context_var.set(current)
        try:
            yield
        finally:
            _context_var.reset(token)


class ContextFilter(logging.Filter):
    """Attach contextual key-value pairs to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _context_var.get()
        if context:
            record.context = " ".join(f"{k}={v}" for k, v in context.items()) + " "
        else:
            record.context = ""
        return True


log_context = LogContext()
