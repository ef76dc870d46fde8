"""Tracking of maps found while filtering an event, so none goes unfiltered."""

from __future__ import annotations

import dataclasses
import threading
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

from eventlogger.encrypt.classification import (
    DataClassification,
    FilterOperation,
    Overrides,
    TagInfo,
)
from eventlogger.encrypt.pointer import PointerNotFoundError, pointer_get
from eventlogger.encrypt.values import FilterOptions, ValueFilter
from eventlogger.event import InvalidParameterError

__all__ = ["PointerTag", "Taggable", "TrackedMap", "TrackedMaps"]

_TEXT_TYPES = (str, bytes, bytearray)


@dataclass
class PointerTag:
    """A pointer into a mapping with the classification of what it points to.

    ``filter`` is optional; when None the default operation (or an
    override) for the classification applies.
    """

    pointer: str
    classification: DataClassification
    filter: Optional[FilterOperation] = None


@runtime_checkable
class Taggable(Protocol):
    """A value that declares pointer tags for the data it holds."""

    def tags(self) -> list[PointerTag]:
        """Return the pointer tags; raise when they cannot be produced."""


@runtime_checkable
class _FieldFilter(Protocol):
    def filter_fields(
        self,
        obj: Any,
        overrides: Optional[Overrides],
        maps: "TrackedMaps",
        options: Optional[FilterOptions],
        ignore_taggable: bool,
    ) -> None: ...


@dataclass
class TrackedMap:
    """A mapping met during filtering and how much of it is already filtered.

    ``filtered`` is true once every field has been filtered;
    ``filtered_fields`` names fields filtered individually so far.
    """

    value: Any = None
    filtered: bool = False
    filtered_fields: Optional[set[str]] = None
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def mark_field_filtered(self, field_name: str) -> None:
        """Record that ``field_name`` has already been filtered."""
        with self._lock:
            if self.filtered_fields is None:
                self.filtered_fields = set()
            self.filtered_fields.add(field_name)


def _is_struct(value: Any) -> bool:
    if isinstance(value, type) or callable(value):
        return False
    return dataclasses.is_dataclass(value) or hasattr(value, "__dict__")


def _unescape(part: str) -> str:
    return part.replace("~1", "/").replace("~0", "~")


class TrackedMaps:
    """The mappings tracked while one event is processed, keyed by identity."""

    def __init__(self, *args: Optional[TrackedMap]) -> None:
        self.tracked: dict[int, TrackedMap] = {}
        self._lock = threading.RLock()
        for position, tracked_map in enumerate(args):
            try:
                self.track_map(tracked_map)
            except InvalidParameterError as exc:
                raise InvalidParameterError(
                    f"new map parameter #{position} is not a valid: {exc}"
                ) from exc

    def __repr__(self) -> str:
        return f"TrackedMaps(tracked={self.tracked!r})"

    def track_map(self, tracked_map: Optional[TrackedMap]) -> None:
        """Start tracking a mapping; one already tracked is left as it is."""
        op = "track_map"
        if tracked_map is None:
            raise InvalidParameterError(f"{op}: missing map")
        if tracked_map.value is None:
            raise InvalidParameterError(f"{op}: map value is missing")
        if not isinstance(tracked_map.value, Mapping):
            raise InvalidParameterError(
                f"{op}: {type(tracked_map.value).__name__} is not a valid parameter type"
            )
        with self._lock:
            self.tracked.setdefault(id(tracked_map.value), tracked_map)

    def get_tracked(self, key: Any) -> Optional[TrackedMap]:
        """Return the entry tracking the mapping ``key``, or None."""
        with self._lock:
            return self.tracked.get(id(key))

    def unfiltered(self) -> list[TrackedMap]:
        """Return the tracked maps not yet marked as filtered."""
        with self._lock:
            return [m for m in self.tracked.values() if not m.filtered]

    def track_taggable(self, taggable: Any, pointer: str) -> None:
        """Track the mapping ``pointer`` refers to and mark its last field filtered."""
        op = "track_taggable"
        if taggable is None:
            raise InvalidParameterError(f"{op}: missing taggable")
        if not pointer:
            raise InvalidParameterError(f"{op}: missing pointer")

        segs = pointer.split("/")
        if len(segs) == 1:
            raise InvalidParameterError(f"{op}: invalid taggable pointer")

        if len(segs) == 2:
            container = taggable
            failure = "unable to track taggable map"
        else:
            try:
                container = pointer_get(taggable, "/".join(segs[:-1]))
            except PointerNotFoundError as exc:
                raise PointerNotFoundError(f"{op}: {exc}") from exc
            failure = "unable to track map from pointer struct"

        with self._lock:
            if self.get_tracked(container) is None:
                try:
                    self.track_map(TrackedMap(value=container, filtered_fields=set()))
                except InvalidParameterError as exc:
                    raise InvalidParameterError(f"{op}: {failure}: {exc}") from exc
            tracked_map = self.get_tracked(container)
        if tracked_map is None:
            raise LookupError(f"{op}: unable to get tracked map")
        tracked_map.mark_field_filtered(_unescape(segs[-1]))

    def process_unfiltered(
        self,
        value_filter: Optional[ValueFilter],
        overrides: Optional[Overrides] = None,
        options: Optional[FilterOptions] = None,
    ) -> None:
        """Filter every unfiltered tracked map and mark it filtered.

        Fields already marked filtered are skipped. Values are treated as
        of unknown classification, so they are redacted.
        """
        op = "process_unfiltered"
        if value_filter is None:
            raise InvalidParameterError(f"{op}: missing filter node")
        opts = dataclasses.replace(
            options or FilterOptions(), pointer=None, pointer_target=None
        )
        tag = TagInfo(DataClassification.UNKNOWN, FilterOperation.UNKNOWN)

        for tracked_map in self.unfiltered():
            mapping = tracked_map.value
            if not isinstance(mapping, MutableMapping):
                raise InvalidParameterError(
                    f"{op}: unfiltered value ({type(mapping).__name__}) is a not a map"
                )
            skipped = tracked_map.filtered_fields
            for key in list(mapping):
                if skipped is not None and str(key) in skipped:
                    continue
                item = mapping[key]
                if item is None:
                    continue
                if isinstance(item, _TEXT_TYPES):
                    mapping[key] = value_filter.filter_value(item, tag, opts)
                elif isinstance(item, (list, tuple)):
                    if all(e is None or isinstance(e, _TEXT_TYPES) for e in item):
                        mapping[key] = value_filter.filter_slice(item, tag, opts)
                    else:
                        for element in item:
                            self._filter_element(value_filter, element, overrides, opts)
                elif isinstance(item, Mapping):
                    TrackedMaps(TrackedMap(value=item)).process_unfiltered(
                        value_filter, overrides, opts
                    )
                elif _is_struct(item):
                    self._filter_struct(value_filter, item, overrides, opts)
            tracked_map.filtered = True
            tracked_map.filtered_fields = None

    @classmethod
    def _filter_element(
        cls,
        value_filter: ValueFilter,
        element: Any,
        overrides: Optional[Overrides],
        opts: FilterOptions,
    ) -> None:
        if isinstance(element, Mapping):
            TrackedMaps(TrackedMap(value=element)).process_unfiltered(
                value_filter, overrides, opts
            )
        elif element is not None and not isinstance(element, _TEXT_TYPES) and _is_struct(element):
            cls._filter_struct(value_filter, element, overrides, opts)

    @staticmethod
    def _filter_struct(
        value_filter: ValueFilter,
        obj: Any,
        overrides: Optional[Overrides],
        opts: FilterOptions,
    ) -> None:
        if not isinstance(value_filter, _FieldFilter):
            raise InvalidParameterError(
                f"process_unfiltered: filter cannot filter fields of {type(obj).__name__}"
            )
        nested = TrackedMaps()
        value_filter.filter_fields(
            obj, overrides, nested, opts.with_ignore_taggable(False), opts.ignore_taggable
        )
        nested.process_unfiltered(value_filter, overrides, opts)