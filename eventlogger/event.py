"""Events flowing through pipelines, node types and shared errors."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class NodeType(enum.Enum):
    """The role a node plays in a pipeline."""

    FILTER = "filter"
    FORMATTER = "formatter"
    SINK = "sink"


class InvalidParameterError(ValueError):
    """Raised when a function is given a missing or unusable argument."""

    def __init__(self, message: str = "invalid parameter") -> None:
        super().__init__(message)


@dataclass
class Event:
    """A single log entry travelling through a pipeline.

    ``formatted`` maps a format name (json, text, ...) to the bytes a
    formatter produced for it; sinks read from it when writing.
    """

    event_type: str = ""
    created_at: datetime | None = None
    formatted: dict[str, bytes] | None = field(default_factory=dict)
    payload: Any = None
    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )

    def formatted_as(self, format_type: str, value: bytes) -> None:
        """Store ``value`` as the event's representation in ``format_type``."""
        with self._lock:
            if self.formatted is None:
                self.formatted = {}
            self.formatted[format_type] = value

    def format(self, format_type: str) -> bytes | None:
        """Return the representation for ``format_type``, or None if absent."""
        with self._lock:
            if self.formatted is None:
                return None
            return self.formatted.get(format_type)