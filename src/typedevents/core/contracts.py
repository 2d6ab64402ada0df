# src/typedevents/core/contracts.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from typedevents.core.errors import SchemaError

__all__ = [
    "WILDCARD",
    "NAMESPACE_MARKER",
    "Handler",
    "Middleware",
    "Schema",
    "Event",
    "Settled",
    "define_events",
]


WILDCARD = "*"
NAMESPACE_MARKER = ".*"

# --------- Primitive / aliases ---------
# handler(payload, event_name) -> awaitable result; event_name may be omitted
Handler = Callable[..., Union[Awaitable[Any], Any]]
# middleware(event_name, payload, next) -> None or awaitable
Middleware = Callable[[str, Any, Callable[[], None]], Optional[Awaitable[None]]]
Schema = Mapping[str, Handler]


# --------- Envelope used by group() ---------
@dataclass(slots=True)
class Event:
    """An event name and its payload."""
    name: str
    payload: Any = None

    @classmethod
    def coerce(cls, entry: Any) -> "Event":
        """Accept Event, a (name, payload) pair or {"event": ..., "payload": ...}."""
        if isinstance(entry, Event):
            return entry
        if isinstance(entry, Mapping):
            try:
                return cls(entry["event"], entry.get("payload"))
            except KeyError:
                raise TypeError(f"group entry without 'event' key: {entry!r}") from None
        if isinstance(entry, (tuple, list)) and len(entry) == 2:
            return cls(entry[0], entry[1])
        raise TypeError(f"unsupported group entry: {entry!r}")


# --------- Outcome of a best-effort join ---------
@dataclass(slots=True)
class Settled:
    status: str                          # "fulfilled" | "rejected"
    value: Any = None
    reason: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status == "fulfilled"

    @classmethod
    def fulfilled(cls, value: Any) -> "Settled":
        return cls("fulfilled", value=value)

    @classmethod
    def rejected(cls, reason: BaseException) -> "Settled":
        return cls("rejected", reason=reason)


def define_events(schema: Dict[str, Handler]) -> Dict[str, Handler]:
    """Return ``schema`` unchanged once every handler is known to be callable.

    Event names are not checked: ``"*"`` and keys ending in ``".*"`` are as
    legal as any other string.
    """
    for name, handler in schema.items():
        if not callable(handler):
            raise SchemaError(f"handler for {name!r} is not callable: {handler!r}")
    return schema
