# tests/test_service.py
"""Tests for TagService wiring and persistence."""

import logging
import tempfile
from pathlib import Path

import pytest

from supertags import Config, NotFound, Signer, StorageError, TagRegistry, TagService, Unauthorized


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class TestTagService:
    """Tests for TagService."""

    def test_in_memory(self):
        service = TagService()
        receipt = service.register("ipfs://a", "alice")

        assert service.describe(receipt.result) == {
            "tag_id": 1,
            "owner": "alice",
            "metadata_pointer": "ipfs://a",
            "approved": None,
        }
        assert service.indexer.tag(1).owner == "alice"
        assert service.data_dir is None

    def test_describe_missing(self):
        with pytest.raises(NotFound):
            TagService().describe(1)

    def test_tags_of(self):
        service = TagService()
        service.register("ipfs://a", "alice")
        service.register("ipfs://b", "bob")
        service.delegate_register("alice", "ipfs://c", "bob")

        assert [t.tag_id for t in service.tags_of("alice")] == [1, 3]

    def test_restart_rebuilds_index(self, temp_dir):
        first = TagService(temp_dir)
        first.register("ipfs://a", "alice")
        first.register("ipfs://b", "bob")
        first.destroy(1, "alice")

        second = TagService(temp_dir)
        assert second.registry.next_id == 2
        assert second.indexer.tag(1).destroyed
        assert second.indexer.tag(2).owner == "bob"
        assert len(second.events()) == 3

        receipt = second.register("ipfs://c", "carol")
        assert receipt.result == 3
        assert receipt.block_number == 4
        assert second.indexer.tag(3).owner == "carol"
        assert (temp_dir / "registry" / "registry.json").exists()
        assert (temp_dir / "events" / "events.json").exists()

    def test_events_from_block(self):
        service = TagService()
        service.register("ipfs://a", "alice")
        service.register("ipfs://b", "alice")
        assert [r.block_number for r in service.events(from_block=2)] == [2]

    def test_registry_ahead_of_log_warns(self, temp_dir, caplog):
        TagService(temp_dir).register("ipfs://a", "alice")
        TagRegistry(temp_dir / "registry").register("ipfs://b", "bob")

        with caplog.at_level(logging.WARNING, logger="supertags.service"):
            service = TagService(temp_dir)

        assert "next_id is 2" in caplog.text
        assert service.indexer.tag(2) is None

    def test_consistent_stores_do_not_warn(self, temp_dir, caplog):
        TagService(temp_dir).register("ipfs://a", "alice")
        with caplog.at_level(logging.WARNING, logger="supertags.service"):
            TagService(temp_dir)
        assert "next_id" not in caplog.text

    def test_corrupt_registry_store(self, temp_dir):
        (temp_dir / "registry").mkdir()
        (temp_dir / "registry" / "registry.json").write_text("{trunc")
        with pytest.raises(StorageError):
            TagService(temp_dir)


class TestFromConfig:
    """Tests for TagService.from_config()."""

    def test_creators_enable_policy(self, temp_dir):
        service = TagService.from_config(Config(data_dir=temp_dir, creators=["minter"]))

        with pytest.raises(Unauthorized):
            service.register("ipfs://a", "alice")
        assert service.delegate_register("alice", "ipfs://a", "minter").result == 1

    def test_signing_key_signs_and_verifies(self, temp_dir):
        key_path = temp_dir / "host.json"
        Signer.create("host").save(key_path)

        service = TagService.from_config(Config(data_dir=temp_dir / "data", signing_key=key_path))
        receipt = service.register("ipfs://a", "alice")

        assert receipt.records[0].signature["creator"] == "host"
        assert service.indexer.tag(1).owner == "alice"
