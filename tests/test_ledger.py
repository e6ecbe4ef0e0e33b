# tests/test_ledger.py
"""Tests for the host ledger and the event log."""

import tempfile
from pathlib import Path

import pytest

from supertags import (
    Destroyed,
    EventLog,
    InvalidInput,
    Ledger,
    Registered,
    StorageError,
    TagRegistry,
    Unauthorized,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class FakeClock:
    """Clock advancing 12 seconds per reading."""

    def __init__(self, start: int = 1_700_000_000):
        self.now = start

    def __call__(self) -> float:
        self.now += 12
        return self.now


@pytest.fixture
def ledger():
    return Ledger(TagRegistry(), clock=FakeClock())


class TestTransactions:
    """Tests for Ledger.submit() and its wrappers."""

    def test_register_receipt(self, ledger):
        receipt = ledger.register("ipfs://a", caller="alice")

        assert receipt.result == 1
        assert receipt.block_number == 1
        assert receipt.tx_hash.startswith("0x")
        assert len(receipt.tx_hash) == 66
        assert len(receipt.records) == 1

        record = receipt.records[0]
        assert record.event == Registered(tag_id=1, creator="alice", metadata_pointer="ipfs://a")
        assert record.tx_hash == receipt.tx_hash
        assert record.log_index == 0
        assert record.block_number == 1
        assert record.timestamp == receipt.timestamp

    def test_one_block_per_transaction(self, ledger):
        blocks = [
            ledger.register("ipfs://a", caller="alice").block_number,
            ledger.delegate_register("dave", "ipfs://d", caller="alice").block_number,
            ledger.destroy(1, caller="alice").block_number,
        ]
        assert blocks == [1, 2, 3]
        assert ledger.block_number == 3

    def test_timestamps_do_not_decrease(self, ledger):
        first = ledger.register("ipfs://a", caller="alice")
        second = ledger.register("ipfs://b", caller="alice")
        assert second.timestamp > first.timestamp

    def test_tx_hashes_unique(self, ledger):
        hashes = {ledger.register("ipfs://a", caller="alice").tx_hash for _ in range(5)}
        assert len(hashes) == 5

    def test_reverted_transaction_consumes_no_block(self, ledger):
        ledger.register("ipfs://a", caller="alice")
        with pytest.raises(Unauthorized):
            ledger.destroy(1, caller="mallory")

        assert ledger.block_number == 1
        assert len(ledger.log) == 1
        assert ledger.destroy(1, caller="alice").block_number == 2

    def test_unknown_method_rejected(self, ledger):
        with pytest.raises(InvalidInput):
            ledger.submit("alice", "transfer_from", tag_id=1)

    def test_approval_wrappers(self, ledger):
        ledger.register("ipfs://a", caller="alice")
        receipt = ledger.approve(1, "carol", caller="alice")
        assert receipt.records[0].event.operator == "carol"

        receipt = ledger.set_approval_for_all("alice", "op", True)
        assert receipt.records[0].event.approved is True
        assert ledger.registry.is_approved_for_all("alice", "op")


class TestDelivery:
    """Tests for record subscribers."""

    def test_subscribers_receive_records_in_order(self, ledger):
        received = []
        ledger.subscribe(received.append)

        ledger.register("ipfs://a", caller="alice")
        ledger.destroy(1, caller="alice")

        assert [r.event for r in received] == [
            Registered(tag_id=1, creator="alice", metadata_pointer="ipfs://a"),
            Destroyed(tag_id=1, actor="alice"),
        ]

    def test_failing_subscriber_does_not_revert(self, ledger):
        def broken(record):
            raise RuntimeError("indexer down")

        ledger.subscribe(broken)
        receipt = ledger.register("ipfs://a", caller="alice")

        assert ledger.registry.owner_of(receipt.result) == "alice"
        assert len(ledger.log) == 1

    def test_direct_registry_calls_are_not_recorded(self, ledger):
        ledger.registry.register("ipfs://a", "alice")
        assert len(ledger.log) == 0
        assert ledger.block_number == 0


class TestEventLog:
    """Tests for EventLog persistence and queries."""

    def test_numbering_resumes_from_log(self, temp_dir):
        first = Ledger(TagRegistry(temp_dir / "registry"), log=EventLog(temp_dir / "events"))
        first.register("ipfs://a", caller="alice")
        first.register("ipfs://b", caller="bob")

        second = Ledger(TagRegistry(temp_dir / "registry"), log=EventLog(temp_dir / "events"))
        receipt = second.register("ipfs://c", caller="carol")

        assert receipt.block_number == 3
        assert receipt.result == 3
        assert len(second.log) == 3

    def test_queries(self, ledger):
        r1 = ledger.register("ipfs://a", caller="alice")
        ledger.register("ipfs://b", caller="bob")
        ledger.destroy(1, caller="alice")

        log = ledger.log
        assert [r.block_number for r in log.find_by_tag(1)] == [1, 3]
        assert log.find_by_tx(r1.tx_hash) == r1.records
        assert log.get(r1.records[0].record_id) is r1.records[0]
        assert [r.block_number for r in log.since(2)] == [2, 3]
        assert log.last_block == 3

    def test_records_survive_reload(self, temp_dir):
        log = EventLog(temp_dir / "events")
        ledger = Ledger(TagRegistry(), log=log)
        receipt = ledger.register("ipfs://a", caller="alice")

        reloaded = EventLog(temp_dir / "events").list()
        assert len(reloaded) == 1
        assert reloaded[0].to_dict() == receipt.records[0].to_dict()

    def test_corrupt_log_is_refused(self, temp_dir):
        (temp_dir / "events.json").write_text('{"records": [')
        with pytest.raises(StorageError, match="events.json"):
            EventLog(temp_dir)


class TestUnrecordedTransactions:
    """A transaction whose records cannot be written is undone."""

    def test_registry_rolled_back(self, temp_dir):
        registry = TagRegistry(temp_dir / "registry")
        ledger = Ledger(registry, log=EventLog(temp_dir / "events"), clock=FakeClock())
        ledger.register("ipfs://a", caller="alice")
        delivered = []
        ledger.subscribe(delivered.append)

        log_path = temp_dir / "events" / "events.json"
        log_path.unlink()
        log_path.mkdir()

        with pytest.raises(StorageError):
            ledger.register("ipfs://b", caller="bob")

        assert ledger.block_number == 1
        assert len(ledger.log) == 1
        assert delivered == []
        assert registry.next_id == 1
        assert 2 not in registry
        assert TagRegistry(temp_dir / "registry").next_id == 1

        log_path.rmdir()
        receipt = ledger.register("ipfs://b", caller="bob")
        assert receipt.block_number == 2
        assert receipt.result == 2
