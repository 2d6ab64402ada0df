# src/typedevents/wire_config.py
from __future__ import annotations

import importlib
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

from typedevents.core import log
from typedevents.core.contracts import Handler, define_events
from typedevents.core.dispatcher import TypedEvents
from typedevents.core.errors import SchemaError, WiringError

l = log.get("wire_config")


def _imp(ref: str) -> Any:
    """Resolve ``pkg.module:attr`` (or ``pkg.module.attr``) to an object."""
    if not isinstance(ref, str) or not ref:
        raise SchemaError(f"reference must be a non-empty string, got {ref!r}")
    if ":" in ref:
        module, _, attr = ref.partition(":")
    else:
        module, _, attr = ref.rpartition(".")
    if not module or not attr:
        raise WiringError(f"cannot split reference {ref!r} into module and attribute")
    try:
        mod = importlib.import_module(module)
    except ImportError as e:
        raise WiringError(f"cannot import {module!r} for {ref!r}: {e}") from e
    obj = mod
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError:
            raise WiringError(f"{module!r} has no attribute {attr!r}") from None
    return obj


def build_from_dict(data: Mapping[str, Any]) -> TypedEvents:
    """Assemble a dispatcher from ``{"schemas": [...], "middleware": [...]}``."""
    if not isinstance(data, Mapping):
        raise SchemaError("wiring document must be a mapping")

    raw_schemas = data.get("schemas") or []
    if not isinstance(raw_schemas, list):
        raise SchemaError("'schemas' must be a list of mappings")

    schemas: List[Dict[str, Handler]] = []
    for i, raw in enumerate(raw_schemas):
        if not isinstance(raw, Mapping):
            raise SchemaError(f"schemas[{i}] must be a mapping of event name to handler reference")
        schemas.append(define_events({str(event): _imp(ref) for event, ref in raw.items()}))

    raw_mw = data.get("middleware") or []
    if not isinstance(raw_mw, list):
        raise SchemaError("'middleware' must be a list")

    dispatcher = TypedEvents(schemas)
    for ref in raw_mw:
        mw = _imp(ref)
        if not callable(mw):
            raise SchemaError(f"middleware {ref!r} is not callable")
        dispatcher.use(mw)

    l.info("wired schemas=%d events=%d middleware=%d",
           len(schemas), len(dispatcher.event_names), dispatcher.middleware_count)
    return dispatcher


def build_from_yaml(yaml_path: str | Path) -> TypedEvents:
    """Read a wiring YAML file and build the dispatcher it describes."""
    try:
        data = yaml.safe_load(Path(yaml_path).read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise SchemaError(f"invalid YAML in {yaml_path}: {e}") from e
    return build_from_dict(data or {})
