# supertags/events.py
"""
Registry lifecycle events.

Every successful state-mutating registry operation emits exactly one
event, synchronously and in mutation order. Events carry only the
semantic payload; transaction ids and ordering positions are attached
by the host (see supertags.ledger).

Event types:
- Registered: a tag was created
- Destroyed: a tag was burned
- ApprovalChanged: single-tag operator approval was set or cleared
- ApprovalForAllChanged: owner-wide operator approval was toggled
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """Base class for registry events."""
    name: ClassVar[str] = "Event"

    def to_dict(self) -> Dict[str, Any]:
        data = {"event": self.name}
        data.update(asdict(self))
        return data


@dataclass(frozen=True)
class Registered(Event):
    name: ClassVar[str] = "Registered"
    tag_id: int
    creator: str
    metadata_pointer: str


@dataclass(frozen=True)
class Destroyed(Event):
    name: ClassVar[str] = "Destroyed"
    tag_id: int
    actor: str


@dataclass(frozen=True)
class ApprovalChanged(Event):
    """operator is None when the approval was cleared."""
    name: ClassVar[str] = "ApprovalChanged"
    tag_id: int
    owner: str
    operator: Optional[str]


@dataclass(frozen=True)
class ApprovalForAllChanged(Event):
    name: ClassVar[str] = "ApprovalForAllChanged"
    owner: str
    operator: str
    approved: bool


EVENT_TYPES: Dict[str, Type[Event]] = {
    cls.name: cls
    for cls in (Registered, Destroyed, ApprovalChanged, ApprovalForAllChanged)
}


def event_from_dict(data: Dict[str, Any]) -> Event:
    """Deserialize an event produced by Event.to_dict()."""
    fields = dict(data)
    name = fields.pop("event", None)
    cls = EVENT_TYPES.get(name)
    if cls is None:
        raise ValueError(f"Unknown event type: {name!r}")
    return cls(**fields)


EventHandler = Callable[[Event], None]


class EventBus:
    """
    Synchronous, best-effort event dispatcher.

    Handlers are called in subscription order. A failing handler is
    logged and skipped; it never fails the operation that emitted the
    event.
    """

    def __init__(self):
        self._handlers: List[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> bool:
        if handler not in self._handlers:
            return False
        self._handlers.remove(handler)
        return True

    def emit(self, event: Event) -> None:
        logger.debug(f"Emitting {event.name}: {event}")
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Event handler {handler!r} failed on {event.name}")

    def __len__(self) -> int:
        return len(self._handlers)
