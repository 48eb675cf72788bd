"""Field-by-field differences between two dataclass instances."""

from __future__ import annotations

import base64
import dataclasses
import datetime
import enum
import json
from typing import Any


@dataclasses.dataclass(frozen=True)
class Entry:
    """One differing field: its name and the value from the second object."""

    name: str
    value: Any


class Entries(list):
    """An ordered list of Entry items."""

    def __str__(self) -> str:
        parts = []
        for entry in self:
            if isinstance(entry.value, Entries):
                parts.append(f"{entry.name}: {{{entry.value}}}")
            else:
                parts.append(f"{entry.name}: {entry.value}")
        return "; ".join(parts)

    def to_json(self) -> str:
        """Render as a compact JSON object keyed by field name."""
        members = []
        for entry in self:
            if isinstance(entry.value, Entries):
                encoded = entry.value.to_json()
            else:
                encoded = json.dumps(entry.value, separators=(",", ":"), default=_json_default)
            members.append(f"{json.dumps(entry.name)}:{encoded}")
        return "{" + ",".join(members) + "}"


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _is_instance(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def diff(a: Any, b: Any) -> Entries:
    """List the public fields whose values differ, with values taken from ``b``.

    Nested dataclass fields are diffed recursively. Objects of different
    types yield no entries.
    """
    if not _is_instance(a) or not _is_instance(b):
        raise TypeError("diff expects dataclass instances")

    result = Entries()
    if type(a) is not type(b):
        return result

    for field in dataclasses.fields(b):
        if field.name.startswith("_"):
            continue
        value_a = getattr(a, field.name)
        value_b = getattr(b, field.name)
        if value_a == value_b:
            continue
        value = diff(value_a, value_b) if _is_instance(value_b) and _is_instance(value_a) else value_b
        result.append(Entry(field.name, value))

    return result