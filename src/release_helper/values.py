"""Schema-less value trees for the renderer.

The release payload is converted into plain strings, numbers, lists and
dicts before rendering, so template filters can query fields by name
(``labels``, ``epic_id``, ``stats.num_stories_done``) without knowing the
pydantic models behind them.
"""

from __future__ import annotations

from collections.abc import Mapping, Set
from pathlib import PurePath
from typing import Any, Union

from pydantic import BaseModel

from release_helper.errors import FilterError

Value = Union[str, int, float, bool, None, list["Value"], dict[str, "Value"]]


def to_value(obj: Any) -> Value:
    """Convert models, mappings, sequences and scalars into a value tree.

    Sets are turned into sorted lists so the output is deterministic.
    """
    if isinstance(obj, BaseModel):
        return to_value(obj.model_dump(mode="json"))
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, PurePath):
        return str(obj)
    if isinstance(obj, Mapping):
        return {str(key): to_value(value) for key, value in obj.items()}
    if isinstance(obj, Set):
        return [to_value(item) for item in sorted(obj)]
    if isinstance(obj, (list, tuple)):
        return [to_value(item) for item in obj]
    raise FilterError(f"cannot convert {type(obj).__name__} to a value")


def get_attr(value: Value, name: str) -> Value:
    """Look up ``name`` in a mapping value."""
    if not isinstance(value, dict):
        raise FilterError(f"cannot look up '{name}' on {type(value).__name__}")
    try:
        return value[name]
    except KeyError:
        raise FilterError(f"missing attribute '{name}'") from None


def as_sequence(value: Value) -> list[Value]:
    if not isinstance(value, list):
        raise FilterError(f"expected a list, got {type(value).__name__}")
    return value
