# supertags/client.py
"""
Client SDK for the SuperTags server.

Usage:
    client = SuperTagsClient("http://localhost:8080", caller="alice")

    receipt = client.register("ipfs://cat")
    tag_id = receipt["result"]
    client.tag(tag_id)          # {"tag_id": 1, "owner": "alice", ...}
    client.destroy(tag_id)

Server error kinds are raised as the matching exceptions
(NotFound, Unauthorized, InvalidInput, StorageError).
"""

import json
from typing import Any, Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from .errors import InvalidInput, NotFound, StorageError, TagRegistryError, Unauthorized
from .server import CALLER_HEADER


class SuperTagsClient:
    """
    Client for the SuperTags server.

    Args:
        base_url: Server URL (e.g., "http://localhost:8080")
        caller: Identity sent with every mutating request
        timeout: Request timeout in seconds
    """

    def __init__(self, base_url: str = "http://localhost:8080", caller: str = None,
                 timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.caller = caller
        self.timeout = timeout

    def _request(self, method: str, path: str, data: dict = None,
                 caller: str = None) -> dict:
        """Make HTTP request to server."""
        url = f"{self.base_url}{path}"

        headers = {}
        if data is not None:
            body = json.dumps(data).encode()
            headers["Content-Type"] = "application/json"
        else:
            body = None
        caller = caller or self.caller
        if caller:
            headers[CALLER_HEADER] = caller

        req = Request(url, data=body, headers=headers, method=method)

        try:
            with urlopen(req, timeout=self.timeout) as response:
                return json.loads(response.read().decode())
        except HTTPError as e:
            error_body = e.read().decode()
            try:
                error_data = json.loads(error_body)
            except json.JSONDecodeError:
                raise RuntimeError(f"HTTP {e.code}: {error_body}")
            message = error_data.get("error", str(e))
            kind = error_data.get("kind")
            details = error_data.get("details", {})
            if e.code == 404 and kind == "NotFound":
                raise NotFound(details.get("tag_id"), message)
            if e.code == 403:
                raise Unauthorized(details.get("tag_id"), details.get("caller", caller), message)
            if e.code == 400:
                raise InvalidInput(details.get("field", "request"), data, message)
            if kind == "StorageError":
                raise StorageError(details.get("path"), message)
            raise TagRegistryError(message, {"status": e.code})
        except URLError as e:
            raise ConnectionError(f"Failed to connect to server: {e}")

    def health(self) -> bool:
        """Check if server is healthy."""
        try:
            result = self._request("GET", "/health")
            return result.get("status") == "ok"
        except (ConnectionError, TagRegistryError, RuntimeError):
            return False

    # Mutations (each returns the transaction receipt)

    def register(self, metadata_pointer: str, caller: str = None) -> Dict[str, Any]:
        return self._request("POST", "/tags", {"metadata_pointer": metadata_pointer}, caller)

    def delegate_register(self, beneficiary: str, metadata_pointer: str,
                          caller: str = None) -> Dict[str, Any]:
        return self._request(
            "POST", "/tags/delegate",
            {"beneficiary": beneficiary, "metadata_pointer": metadata_pointer},
            caller,
        )

    def destroy(self, tag_id: int, caller: str = None) -> Dict[str, Any]:
        return self._request("DELETE", f"/tags/{tag_id}", caller=caller)

    def approve(self, tag_id: int, operator: Optional[str], caller: str = None) -> Dict[str, Any]:
        return self._request("POST", f"/tags/{tag_id}/approval", {"operator": operator}, caller)

    def set_approval_for_all(self, operator: str, approved: bool,
                             caller: str = None) -> Dict[str, Any]:
        return self._request(
            "POST", "/operators", {"operator": operator, "approved": approved}, caller
        )

    # Queries

    def tag(self, tag_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/tags/{tag_id}")

    def owner_of(self, tag_id: int) -> str:
        return self.tag(tag_id)["owner"]

    def metadata_of(self, tag_id: int) -> str:
        return self.tag(tag_id)["metadata_pointer"]

    def tags_of(self, owner: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/owners/{quote(owner, safe='')}/tags")["tags"]

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        query = urlencode({"owner": owner, "operator": operator})
        return self._request("GET", f"/operators?{query}")["approved"]

    def events(self, from_block: int = 0) -> List[Dict[str, Any]]:
        return self._request("GET", f"/events?from_block={from_block}")["records"]

    def registrations(self, creator: str = None) -> List[Dict[str, Any]]:
        path = "/index/registrations"
        if creator:
            path += "?" + urlencode({"creator": creator})
        return self._request("GET", path)["registrations"]
