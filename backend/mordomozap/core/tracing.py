"""
Lightweight spans for gateway calls and background sweeps.

A span logs ``span.start`` and ``span.end`` on the ``trace`` logger, plus
``span.error`` when the body raises. The caller can attach what it learns
while the span is open (HTTP status, outcome, resulting connection status)
through ``Span.annotate``; those fields ride on the closing record so one
log line describes the whole gateway round trip.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from time import monotonic
from typing import Any, Iterator
from uuid import uuid4

from mordomozap.core.logging import get_structured_logger


_trace_id: ContextVar[str | None] = ContextVar("trace_id", default=None)
_span_id: ContextVar[str | None] = ContextVar("span_id", default=None)

logger = get_structured_logger("trace")


def set_trace_id(value: str | None) -> None:
    if value:
        _trace_id.set(value)


def get_trace_id() -> str | None:
    return _trace_id.get()


def get_span_id() -> str | None:
    return _span_id.get()


@dataclass
class Span:
    name: str
    span_id: str = field(default_factory=lambda: uuid4().hex[:16])
    fields: dict[str, Any] = field(default_factory=dict)
    started: float = field(default_factory=monotonic)

    def annotate(self, **fields: Any) -> None:
        self.fields.update({key: value for key, value in fields.items() if value is not None})

    @property
    def duration_ms(self) -> float:
        return round((monotonic() - self.started) * 1000.0, 2)

    def record(self) -> dict[str, Any]:
        return {
            "trace_id": get_trace_id(),
            "span_id": self.span_id,
            "span_name": self.name,
            **self.fields,
        }


@contextmanager
def trace_span(name: str, **fields: Any) -> Iterator[Span]:
    span = Span(name=name, fields=dict(fields))
    token = _span_id.set(span.span_id)
    logger.debug("span.start", extra=span.record())
    try:
        yield span
    except Exception as exc:
        # Keep a more specific outcome the caller already set (e.g. "timeout").
        span.fields.setdefault("outcome", "error")
        logger.warning(
            "span.error",
            extra={**span.record(), "duration_ms": span.duration_ms, "error": exc.__class__.__name__},
        )
        raise
    else:
        span.fields.setdefault("outcome", "ok")
    finally:
        logger.debug("span.end", extra={**span.record(), "duration_ms": span.duration_ms})
        _span_id.reset(token)
