"""
JSON value model and structural locations.

Documents are plain Python JSON values (dict, list, str, int, float, bool,
None) as produced by json.loads(). kind_of() classifies a value so every
traversal dispatches on an explicit JsonKind instead of duck typing.

A Location is a tuple of Field/Index steps from the document root. It is
used to navigate the sanitized clone directly; a step that does not fit the
document raises LookupError rather than being skipped.
"""

import copy
import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Union


class JsonKind(Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


def kind_of(value: Any) -> JsonKind:
    """Classify a JSON value. Raises TypeError for anything json can't hold."""
    if value is None:
        return JsonKind.NULL
    # bool before number: bool is an int subclass
    if isinstance(value, bool):
        return JsonKind.BOOL
    if isinstance(value, (int, float)):
        return JsonKind.NUMBER
    if isinstance(value, str):
        return JsonKind.STRING
    if isinstance(value, list):
        return JsonKind.ARRAY
    if isinstance(value, dict):
        return JsonKind.OBJECT
    raise TypeError(f"Not a JSON value: {type(value).__name__}")


# ──────────────────────────────────────────────
# Locations
# ──────────────────────────────────────────────


@dataclass(frozen=True)
class Field:
    """Object member step."""

    name: str


@dataclass(frozen=True)
class Index:
    """Array element step."""

    position: int


Step = Union[Field, Index]
Location = tuple[Step, ...]

ROOT: Location = ()

_PLAIN_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def format_location(location: Location) -> str:
    """
    Render a location for reports and logs.

    >>> format_location((Field("images"), Index(1)))
    '$.images[1]'
    """
    parts = ["$"]
    for step in location:
        if isinstance(step, Index):
            parts.append(f"[{step.position}]")
        elif _PLAIN_KEY_RE.match(step.name):
            parts.append(f".{step.name}")
        else:
            parts.append(f"[{json.dumps(step.name, ensure_ascii=False)}]")
    return "".join(parts)


def _step_into(node: Any, step: Step) -> Any:
    if isinstance(step, Field):
        if kind_of(node) is not JsonKind.OBJECT or step.name not in node:
            raise LookupError(f"No field {step.name!r} at this location")
        return node[step.name]

    if kind_of(node) is not JsonKind.ARRAY or not 0 <= step.position < len(node):
        raise LookupError(f"No index {step.position} at this location")
    return node[step.position]


def get_at(document: Any, location: Location) -> Any:
    """Return the value at `location`."""
    node = document
    for step in location:
        node = _step_into(node, step)
    return node


def set_at(document: Any, location: Location, value: Any) -> Any:
    """
    Replace the value at `location` in place.

    Returns the document root, which is `value` itself when the location
    is the root.
    """
    if not location:
        return value

    parent = get_at(document, location[:-1])
    last = location[-1]
    # Validates the final step exists before writing
    _step_into(parent, last)

    if isinstance(last, Field):
        parent[last.name] = value
    else:
        parent[last.position] = value
    return document


def members(node: dict) -> list[tuple[str, Any]]:
    """Object members in insertion order. Raises TypeError on non-string keys."""
    items = list(node.items())
    for key, _ in items:
        if not isinstance(key, str):
            raise TypeError(f"Object keys must be strings, got {type(key).__name__}")
    return items


def clone(document: Any) -> Any:
    """Independent deep copy of a JSON document."""
    return copy.deepcopy(document)


def iter_strings(document: Any) -> Iterator[tuple[Location, str]]:
    """
    Yield (location, value) for every string leaf, in document order.

    Object members in insertion order, array elements by index. Uses an
    explicit stack, so nesting depth is not bounded by the recursion limit.
    """
    stack: list[tuple[Location, Any]] = [(ROOT, document)]
    while stack:
        location, node = stack.pop()
        kind = kind_of(node)
        if kind is JsonKind.STRING:
            yield location, node
        elif kind is JsonKind.ARRAY:
            for i in reversed(range(len(node))):
                stack.append((location + (Index(i),), node[i]))
        elif kind is JsonKind.OBJECT:
            for key, value in reversed(members(node)):
                stack.append((location + (Field(key),), value))
