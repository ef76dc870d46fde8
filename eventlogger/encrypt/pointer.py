"""Pointer paths for reading and writing values inside nested data."""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any

from eventlogger.encrypt.classification import DataClassification, FilterOperation
from eventlogger.event import InvalidParameterError

_SCALARS = (str, bytes, bytearray, int, float, complex, bool)


class PointerNotFoundError(LookupError):
    """Raised when a pointer names a key, index or field that does not exist."""


@dataclass(frozen=True)
class PointerTag:
    """A pointer into a taggable value with its classification and operation."""

    pointer: str
    classification: DataClassification
    filter: FilterOperation = FilterOperation.NONE


def parse_pointer(pointer: str) -> list[str]:
    """Split a pointer such as "/a/b" into its unescaped parts."""
    if pointer == "":
        return []
    if not pointer.startswith("/"):
        raise InvalidParameterError(f"pointer must start with '/': {pointer!r}")
    return [part.replace("~1", "/").replace("~0", "~") for part in pointer[1:].split("/")]


def _attribute_names(obj: Any) -> set[str]:
    names = set(getattr(obj, "__dataclass_fields__", ()))
    names.update(getattr(obj, "__dict__", {}))
    return {name for name in names if not name.startswith("_")}


def _index(part: str, length: int, pointer: str, position: int) -> int:
    if not part.isdigit():
        raise InvalidParameterError(
            f"{pointer} at part {position}: invalid index {part!r}"
        )
    idx = int(part)
    if idx >= length:
        raise PointerNotFoundError(
            f"{pointer} at part {position}: index out of range {idx}"
        )
    return idx


def _not_found(pointer: str, position: int, part: str) -> PointerNotFoundError:
    return PointerNotFoundError(f"{pointer} at part {position}: couldn't find key {part!r}")


def _step(current: Any, part: str, position: int, pointer: str) -> Any:
    if isinstance(current, Mapping):
        if part in current:
            return current[part]
        raise _not_found(pointer, position, part)
    if isinstance(current, (list, tuple)):
        return current[_index(part, len(current), pointer, position)]
    if current is None or isinstance(current, _SCALARS):
        raise _not_found(pointer, position, part)
    if part in _attribute_names(current):
        return getattr(current, part)
    raise _not_found(pointer, position, part)


def pointer_get(obj: Any, pointer: str) -> Any:
    """Return the value ``pointer`` addresses inside ``obj``."""
    current = obj
    for position, part in enumerate(parse_pointer(pointer)):
        current = _step(current, part, position, pointer)
    return current


def pointer_set(obj: Any, pointer: str, value: Any) -> Any:
    """Set the value ``pointer`` addresses inside ``obj`` and return ``obj``.

    An empty pointer addresses the root, so ``value`` itself is returned.
    """
    parts = parse_pointer(pointer)
    if not parts:
        return value
    parent = obj
    for position, part in enumerate(parts[:-1]):
        parent = _step(parent, part, position, pointer)

    last, position = parts[-1], len(parts) - 1
    if isinstance(parent, MutableMapping):
        parent[last] = value
    elif isinstance(parent, Mapping):
        raise InvalidParameterError(f"{pointer} at part {position}: mapping is read-only")
    elif isinstance(parent, list):
        parent[_index(last, len(parent), pointer, position)] = value
    elif isinstance(parent, tuple):
        raise InvalidParameterError(f"{pointer} at part {position}: tuple is read-only")
    elif parent is not None and not isinstance(parent, _SCALARS) and last in _attribute_names(parent):
        setattr(parent, last, value)
    else:
        raise _not_found(pointer, position, last)
    return obj