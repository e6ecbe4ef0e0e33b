# tests/test_events.py
"""Tests for event payloads and the event bus."""

import pytest

from supertags.events import (
    ApprovalChanged,
    ApprovalForAllChanged,
    Destroyed,
    EventBus,
    Registered,
    event_from_dict,
)


class TestEventPayloads:
    """Tests for event serialization."""

    def test_to_dict_names_event(self):
        event = Registered(tag_id=1, creator="alice", metadata_pointer="ipfs://a")
        assert event.to_dict() == {
            "event": "Registered",
            "tag_id": 1,
            "creator": "alice",
            "metadata_pointer": "ipfs://a",
        }

    def test_from_dict_restores_type(self):
        for event in (
            Destroyed(tag_id=3, actor="carol"),
            ApprovalChanged(tag_id=3, owner="alice", operator=None),
            ApprovalForAllChanged(owner="alice", operator="op", approved=False),
        ):
            assert event_from_dict(event.to_dict()) == event

    def test_unknown_event_rejected(self):
        with pytest.raises(ValueError):
            event_from_dict({"event": "OwnershipTransferred", "tag_id": 1})

    def test_events_are_immutable(self):
        event = Destroyed(tag_id=1, actor="alice")
        with pytest.raises(AttributeError):
            event.actor = "mallory"


class TestEventBus:
    """Tests for EventBus."""

    def test_handlers_called_in_order(self):
        bus = EventBus()
        calls = []
        bus.subscribe(lambda e: calls.append(("first", e.tag_id)))
        bus.subscribe(lambda e: calls.append(("second", e.tag_id)))

        bus.emit(Destroyed(tag_id=1, actor="alice"))
        assert calls == [("first", 1), ("second", 1)]

    def test_failing_handler_is_isolated(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(received.append)
        bus.emit(Destroyed(tag_id=1, actor="alice"))

        assert received == [Destroyed(tag_id=1, actor="alice")]

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append)
        assert bus.unsubscribe(received.append)
        assert not bus.unsubscribe(received.append)

        bus.emit(Destroyed(tag_id=1, actor="alice"))
        assert received == []
        assert len(bus) == 0
