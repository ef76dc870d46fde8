"""A node that drops events failing a predicate."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from eventlogger.event import Event, InvalidParameterError, NodeType

Predicate = Callable[[Event], bool]


@dataclass
class Filter:
    """Keeps an event when ``predicate`` returns true, drops it otherwise."""

    predicate: Predicate | None = None
    name: str = ""

    def process(self, event: Event) -> Event | None:
        """Return the event to keep it, or None to discard it.

        Exceptions raised by the predicate propagate to the caller.
        """
        if self.predicate is None:
            raise InvalidParameterError("missing predicate")
        if not self.predicate(event):
            return None
        return event

    def reopen(self) -> None:
        """Filters hold no resources, so there is nothing to reopen."""

    def node_type(self) -> NodeType:
        return NodeType.FILTER