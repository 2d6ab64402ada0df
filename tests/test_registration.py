# tests/test_registration.py
import pytest

from typedevents.core.contracts import define_events
from typedevents.core.dispatcher import Dispatcher, TypedEvents
from typedevents.core.errors import SchemaError


async def _noop(payload, event_name=None):
    return None


def test_schemas_merge_in_order_and_accumulate_duplicates():
    async def a(p): return "a"
    async def b(p): return "b"
    async def c(p): return "c"

    ev = TypedEvents([{"user.created": a, "*": c}, {"user.created": b}])

    assert ev.event_names == ("user.created", "*")
    assert ev.handlers_for("user.created") == (a, b)
    assert ev.handlers_for("*") == (c,)
    assert ev.handlers_for("missing") == ()


def test_any_string_is_a_legal_key():
    ev = TypedEvents([{"*": _noop, "user.*": _noop, "": _noop, ".*": _noop}])
    assert set(ev.event_names) == {"*", "user.*", "", ".*"}


def test_empty_construction_and_alias():
    ev = Dispatcher()
    assert isinstance(ev, TypedEvents)
    assert ev.event_names == ()
    assert ev.middleware_count == 0


def test_handlers_for_returns_a_copy():
    ev = TypedEvents([{"x": _noop}])
    got = ev.handlers_for("x")
    assert isinstance(got, tuple)
    assert ev.handlers_for("x") == (_noop,)


def test_define_events_returns_schema_unchanged():
    schema = {"order.placed": _noop, "*": _noop}
    assert define_events(schema) is schema


def test_define_events_rejects_non_callable():
    with pytest.raises(SchemaError):
        define_events({"order.placed": "not a function"})


@pytest.mark.asyncio
async def test_duplicate_names_all_execute_on_emit():
    hits = []

    async def h1(p): hits.append("h1")
    async def h2(p): hits.append("h2")
    async def h3(p): hits.append("h3")

    ev = TypedEvents([{"job.done": h1}, {"job.done": h2}, {"job.done": h3}])
    await ev.emit("job.done", {})
    assert sorted(hits) == ["h1", "h2", "h3"]
