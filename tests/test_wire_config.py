# tests/test_wire_config.py
import textwrap
import pytest

import wiring_targets
from typedevents.core.errors import SchemaError, WiringError
from typedevents.wire_config import build_from_dict, build_from_yaml


@pytest.fixture(autouse=True)
def _clear_calls():
    wiring_targets.calls.clear()
    yield


@pytest.mark.asyncio
async def test_build_from_yaml_wires_schemas_and_middleware(tmp_path):
    path = tmp_path / "events.yaml"
    path.write_text(textwrap.dedent("""
        schemas:
          - user.created: wiring_targets:on_user_created
            "user.*": wiring_targets.on_user_any
          - "*": wiring_targets:Handlers.on_wild
        middleware:
          - wiring_targets:tag
    """), encoding="utf-8")

    ev = build_from_yaml(path)
    assert ev.event_names == ("user.created", "user.*", "*")
    assert ev.middleware_count == 1

    assert await ev.call("user.created", {}) == ["created", "ns", "wild"]
    assert wiring_targets.calls[0] == ("mw", "user.created")


def test_empty_document_gives_empty_dispatcher(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    ev = build_from_yaml(path)
    assert ev.event_names == ()


def test_invalid_yaml_is_a_schema_error(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("schemas: [unclosed", encoding="utf-8")
    with pytest.raises(SchemaError):
        build_from_yaml(path)


@pytest.mark.parametrize("data", [
    ["not", "a", "mapping"],
    {"schemas": {"a": "b"}},
    {"schemas": ["a-string"]},
    {"middleware": "wiring_targets:tag"},
    {"schemas": [{"e": "wiring_targets:NOT_CALLABLE"}]},
    {"middleware": ["wiring_targets:NOT_CALLABLE"]},
])
def test_malformed_documents(data):
    with pytest.raises(SchemaError):
        build_from_dict(data)


@pytest.mark.parametrize("ref", [
    "no_such_module_anywhere:handler",
    "wiring_targets:missing",
    "nodots",
])
def test_unresolvable_references(ref):
    with pytest.raises(WiringError):
        build_from_dict({"schemas": [{"e": ref}]})
