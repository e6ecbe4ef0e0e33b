# tests/test_server.py
"""Tests for the HTTP server and client."""

import json
from urllib.request import Request, urlopen
from urllib.error import HTTPError

import pytest

from supertags import InvalidInput, NotFound, TagService, Unauthorized
from supertags.client import SuperTagsClient
from supertags.server import TagServer


@pytest.fixture
def server():
    """Server on a free port, backed by an in-memory service."""
    srv = TagServer(TagService(), port=0)
    srv.start_background()
    yield srv
    srv.stop()


@pytest.fixture
def client(server):
    return SuperTagsClient(server.url, caller="alice", timeout=5)


class TestServer:
    """Round trips through SuperTagsClient."""

    def test_health(self, client):
        assert client.health()

    def test_health_when_down(self):
        assert not SuperTagsClient("http://127.0.0.1:9", timeout=1).health()

    def test_register_and_query(self, client):
        receipt = client.register("ipfs://a")

        assert receipt["result"] == 1
        assert receipt["block_number"] == 1
        assert receipt["records"][0]["event"]["event"] == "Registered"
        assert client.owner_of(1) == "alice"
        assert client.metadata_of(1) == "ipfs://a"

    def test_delegate_register(self, client):
        receipt = client.delegate_register("dave", "ipfs://d", caller="anyone")
        assert client.owner_of(receipt["result"]) == "dave"
        assert [t["tag_id"] for t in client.tags_of("dave")] == [receipt["result"]]

    def test_destroy_errors(self, client):
        client.register("ipfs://a")

        with pytest.raises(Unauthorized):
            client.destroy(1, caller="mallory")
        client.destroy(1)
        with pytest.raises(NotFound):
            client.tag(1)
        with pytest.raises(NotFound):
            client.destroy(1)

    def test_errors_carry_tag_id(self, client):
        client.register("ipfs://a")

        with pytest.raises(NotFound) as not_found:
            client.approve(7, "carol")
        assert not_found.value.tag_id == 7

        with pytest.raises(Unauthorized) as denied:
            client.destroy(1, caller="mallory")
        assert denied.value.tag_id == 1
        assert denied.value.caller == "mallory"

    def test_missing_caller_is_invalid(self, server):
        anonymous = SuperTagsClient(server.url, timeout=5)
        with pytest.raises(InvalidInput):
            anonymous.register("ipfs://a")

    def test_approvals(self, client):
        client.register("ipfs://a")
        client.approve(1, "carol")
        assert client.tag(1)["approved"] == "carol"

        client.set_approval_for_all("op", True)
        assert client.is_approved_for_all("alice", "op")
        client.destroy(1, caller="op")
        assert client.tags_of("alice") == []

    def test_events_and_index(self, client):
        client.register("ipfs://a")
        client.delegate_register("dave", "ipfs://d")

        assert [r["block_number"] for r in client.events()] == [1, 2]
        assert [r["block_number"] for r in client.events(from_block=2)] == [2]
        assert [r["tag_id"] for r in client.registrations(creator="dave")] == [2]

    def test_bad_tag_id(self, client):
        with pytest.raises(InvalidInput):
            client.tag("abc")

    def test_invalid_json_body(self, server):
        req = Request(
            f"{server.url}/tags",
            data=b"{not json",
            headers={"Content-Type": "application/json", "X-Caller": "alice"},
            method="POST",
        )
        with pytest.raises(HTTPError) as exc_info:
            urlopen(req, timeout=5)
        assert exc_info.value.code == 400
        assert "Invalid JSON" in json.loads(exc_info.value.read().decode())["error"]

    def test_unknown_route(self, server):
        with pytest.raises(HTTPError) as exc_info:
            urlopen(f"{server.url}/nope", timeout=5)
        assert exc_info.value.code == 404
