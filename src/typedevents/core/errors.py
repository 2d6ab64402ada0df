# src/typedevents/core/errors.py
from __future__ import annotations

__all__ = ["TypedEventsError", "SchemaError", "WiringError"]


class TypedEventsError(Exception):
    """Base exception for typedevents errors."""
    pass


class SchemaError(TypedEventsError):
    """Raised when a schema or wiring document is malformed."""
    pass


class WiringError(TypedEventsError):
    """Raised when a handler/middleware reference cannot be resolved."""
    pass
