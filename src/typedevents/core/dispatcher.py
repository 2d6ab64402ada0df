# src/typedevents/core/dispatcher.py
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Dict, Iterable, Iterator, List, Tuple

from typedevents.core import log
from typedevents.core.contracts import (
    NAMESPACE_MARKER,
    WILDCARD,
    Event,
    Handler,
    Middleware,
    Schema,
    Settled,
)
from typedevents.core.metrics import Timer, inc_counter

__all__ = ["TypedEvents", "Dispatcher"]


def _takes_event_name(handler: Handler) -> bool:
    """True unless the handler's signature only has room for the payload."""
    try:
        sig = inspect.signature(handler)
    except (TypeError, ValueError):
        return True
    positional = 0
    for p in sig.parameters.values():
        if p.kind is p.VAR_POSITIONAL:
            return True
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD):
            positional += 1
    return positional >= 2


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or getattr(handler, "__name__", None) or repr(handler)


class TypedEvents:
    """
    In-process event dispatcher.

    - handlers come from schemas given at construction and never change after
    - middleware added with use() runs, in order, before every dispatch
    - an event reaches exact-name handlers, then ``ns.*`` handlers whose
      prefix it starts with, then ``*`` handlers

    emit()/group() isolate handler failures; call() returns handler results
    and raises the first failure.

    Register middleware before dispatching; use() concurrent with in-flight
    dispatches is not supported.
    """

    def __init__(self, schemas: Iterable[Schema] = (), *, name: str = "dispatcher"):
        self.name = name
        self.l = log.get(name)
        self._handlers: Dict[str, List[Handler]] = {}
        self._middleware: List[Middleware] = []
        # id(handler) -> whether it is called with the event name too
        self._passes_name: Dict[int, bool] = {}
        for schema in schemas:
            for event, handler in schema.items():
                self._handlers.setdefault(event, []).append(handler)
                self._passes_name[id(handler)] = _takes_event_name(handler)
        self.l.debug("registered events=%d handlers=%d",
                     len(self._handlers), sum(len(v) for v in self._handlers.values()))

    # -------------------- registry --------------------
    @property
    def event_names(self) -> Tuple[str, ...]:
        return tuple(self._handlers)

    def handlers_for(self, event: str) -> Tuple[Handler, ...]:
        return tuple(self._handlers.get(event, ()))

    @property
    def middleware_count(self) -> int:
        return len(self._middleware)

    def use(self, middleware: Middleware) -> None:
        """Append ``middleware(event_name, payload, next)`` to the chain."""
        self._middleware.append(middleware)
        self.l.debug("middleware added fn=%s total=%d", _handler_name(middleware), len(self._middleware))

    # -------------------- public operations --------------------
    async def emit(self, event: str, payload: Any = None) -> None:
        """Broadcast ``event``; handler failures are logged, never raised."""
        await self._process_event(event, payload, False)

    async def call(self, event: str, payload: Any = None) -> List[Any]:
        """Dispatch ``event`` and return handler results in match order."""
        return await self._process_event(event, payload, True)

    async def group(self, events: Iterable[Any]) -> None:
        """Broadcast several events concurrently.

        Entries may be ``Event`` objects, ``(name, payload)`` tuples or
        ``{"event": name, "payload": payload}`` mappings.
        """
        batch = [Event.coerce(e) for e in events]
        await asyncio.gather(*(self._process_event(ev.name, ev.payload, False) for ev in batch))

    # -------------------- dispatch --------------------
    async def _run_middleware(self, event_name: str, payload: Any) -> None:
        loop = asyncio.get_running_loop()
        for mw in list(self._middleware):
            proceed = loop.create_future()

            def next_(fut: asyncio.Future = proceed) -> None:
                if not fut.done():
                    fut.set_result(None)

            result = mw(event_name, payload, next_)
            if inspect.isawaitable(result):
                await result
            # no timeout: a middleware that never calls next() stalls here
            await proceed

    def _phases(self, event_name: str) -> Iterator[List[Handler]]:
        exact = self._handlers.get(event_name)
        if exact:
            yield list(exact)

        namespaced: List[Handler] = []
        for key, handlers in self._handlers.items():
            if key.endswith(NAMESPACE_MARKER) and event_name.startswith(key[: -len(NAMESPACE_MARKER)]):
                namespaced.extend(handlers)
        if namespaced:
            yield namespaced

        wildcard = self._handlers.get(WILDCARD)
        if wildcard:
            yield list(wildcard)

    async def _invoke(self, handler: Handler, payload: Any, event_name: str) -> Any:
        inc_counter("handler_calls_total")
        if self._passes_name[id(handler)]:
            result = handler(payload, event_name)
        else:
            result = handler(payload)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _run_phase(self, handlers: List[Handler], payload: Any, event_name: str,
                         collect_results: bool) -> List[Any]:
        # start every handler before awaiting any of them
        tasks = [asyncio.ensure_future(self._invoke(h, payload, event_name)) for h in handlers]

        if collect_results:
            try:
                return list(await asyncio.gather(*tasks))
            except Exception as e:
                inc_counter("calls_aborted_total")
                self.l.debug("call aborted event=%s err=%r", event_name, e, extra={"event": event_name})
                raise

        await asyncio.gather(*tasks, return_exceptions=True)
        outcomes: List[Settled] = []
        for handler, task in zip(handlers, tasks):
            if task.cancelled():
                outcomes.append(Settled.rejected(asyncio.CancelledError()))
                continue
            exc = task.exception()
            if exc is None:
                outcomes.append(Settled.fulfilled(task.result()))
                continue
            inc_counter("handler_errors_total", mode="broadcast")
            self.l.error("handler error event=%s fn=%s err=%s", event_name, _handler_name(handler), exc,
                         exc_info=exc, extra={"event": event_name})
            outcomes.append(Settled.rejected(exc))
        return outcomes

    async def _process_event(self, event_name: str, payload: Any, collect_results: bool) -> List[Any]:
        """Run middleware then every matching phase.

        Returns handler values when ``collect_results`` is true, otherwise the
        ``Settled`` outcome of every invoked handler.
        """
        mode = "call" if collect_results else "broadcast"
        inc_counter("events_dispatched_total", mode=mode)
        results: List[Any] = []
        with Timer("dispatch_latency_ms", mode=mode):
            await self._run_middleware(event_name, payload)
            matched = 0
            for handlers in self._phases(event_name):
                matched += len(handlers)
                results.extend(await self._run_phase(handlers, payload, event_name, collect_results))
        if not matched:
            inc_counter("events_unmatched_total")
        self.l.debug("dispatched event=%s mode=%s handlers=%d", event_name, mode, matched,
                     extra={"event": event_name})
        return results


Dispatcher = TypedEvents
