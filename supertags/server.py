# supertags/server.py
"""
HTTP server for the SuperTags service.

JSON API. The calling identity is taken from the X-Caller header.

Endpoints:
    GET    /health                      - Liveness check
    GET    /tags/:id                    - Tag owner, pointer and approval
    GET    /owners/:identity/tags       - Tags held by an identity
    GET    /operators?owner=&operator=  - Approval-for-all status
    GET    /events?from_block=          - Event records
    GET    /index/registrations?creator= - Indexed registrations
    POST   /tags                        - Register {metadata_pointer}
    POST   /tags/delegate               - Delegated register {beneficiary, metadata_pointer}
    POST   /tags/:id/approval           - Approve {operator}
    POST   /operators                   - Set approval for all {operator, approved}
    DELETE /tags/:id                    - Destroy

Errors: 400 invalid input, 403 unauthorized, 404 not found.
"""

import json
import logging
import re
import threading
from dataclasses import asdict
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, unquote, urlparse

from .errors import InvalidInput, NotFound, StorageError, TagRegistryError, Unauthorized
from .service import TagService

logger = logging.getLogger(__name__)

CALLER_HEADER = "X-Caller"

_TAG_PATH = re.compile(r"^/tags/([^/]+)$")
_APPROVAL_PATH = re.compile(r"^/tags/([^/]+)/approval$")
_OWNER_TAGS_PATH = re.compile(r"^/owners/([^/]+)/tags$")


def _parse_tag_id(segment: str) -> int:
    try:
        return int(segment)
    except ValueError:
        raise InvalidInput("tag_id", segment, f"Tag id must be an integer, got {segment!r}")


def _error_status(error: TagRegistryError) -> int:
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, Unauthorized):
        return 403
    if isinstance(error, StorageError):
        return 500
    return 400


class TagServer:
    """
    HTTP server for a TagService.

    Usage:
        server = TagServer(TagService("/var/lib/supertags"), port=8080)
        server.start()  # Blocking
    """

    def __init__(self, service: TagService, host: str = "127.0.0.1", port: int = 8080):
        self.service = service
        self.host = host
        self.port = port
        self._httpd: Optional[ThreadingHTTPServer] = None

    def _create_handler(server_instance):
        """Create request handler with access to server instance."""

        class RequestHandler(BaseHTTPRequestHandler):
            server_ref = server_instance

            def log_message(self, format, *args):
                logger.debug(format % args)

            def _send_json(self, data: Any, status: int = 200):
                body = json.dumps(data).encode()
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def _send_error(self, message: str, status: int = 400, kind: str = None,
                            details: Dict[str, Any] = None):
                data = {"error": message}
                if kind:
                    data["kind"] = kind
                if details:
                    data["details"] = details
                self._send_json(data, status)

            def _caller(self) -> Optional[str]:
                return self.headers.get(CALLER_HEADER)

            def _read_json(self) -> Dict[str, Any]:
                content_length = int(self.headers.get("Content-Length", 0))
                body = self.rfile.read(content_length).decode() if content_length else "{}"
                data = json.loads(body)
                if not isinstance(data, dict):
                    raise InvalidInput("body", data, "Request body must be a JSON object")
                return data

            def _dispatch(self, route):
                try:
                    route()
                except TagRegistryError as e:
                    self._send_error(e.message, _error_status(e), type(e).__name__, e.details)
                except json.JSONDecodeError as e:
                    self._send_error(f"Invalid JSON: {e}")
                except Exception as e:
                    logger.exception(f"{self.command} {self.path} failed")
                    self._send_error(str(e), 500)

            def do_GET(self):
                self._dispatch(self._route_get)

            def do_POST(self):
                self._dispatch(self._route_post)

            def do_DELETE(self):
                self._dispatch(self._route_delete)

            def _route_get(self):
                service = self.server_ref.service
                parsed = urlparse(self.path)
                path = parsed.path
                query = {k: v[0] for k, v in parse_qs(parsed.query).items()}

                if path == "/health":
                    self._send_json({
                        "status": "ok",
                        "block_number": service.ledger.block_number,
                        "next_id": service.registry.next_id,
                    })
                    return

                match = _TAG_PATH.match(path)
                if match:
                    self._send_json(service.describe(_parse_tag_id(match.group(1))))
                    return

                match = _OWNER_TAGS_PATH.match(path)
                if match:
                    owner = unquote(match.group(1))
                    self._send_json({
                        "owner": owner,
                        "tags": [t.to_dict() for t in service.tags_of(owner)],
                    })
                    return

                if path == "/operators":
                    owner = query.get("owner")
                    operator = query.get("operator")
                    self._send_json({
                        "owner": owner,
                        "operator": operator,
                        "approved": service.registry.is_approved_for_all(owner, operator),
                    })
                    return

                if path == "/events":
                    from_block = query.get("from_block", "0")
                    if not from_block.isdigit():
                        raise InvalidInput("from_block", from_block)
                    self._send_json({
                        "records": [r.to_dict() for r in service.events(int(from_block))],
                    })
                    return

                if path == "/index/registrations":
                    entities = service.indexer.registrations(creator=query.get("creator"))
                    self._send_json({"registrations": [asdict(e) for e in entities]})
                    return

                self._send_error("Not found", 404)

            def _route_post(self):
                service = self.server_ref.service
                path = urlparse(self.path).path

                if path == "/tags":
                    data = self._read_json()
                    receipt = service.register(data.get("metadata_pointer"), self._caller())
                    self._send_json(receipt.to_dict(), 201)
                    return

                if path == "/tags/delegate":
                    data = self._read_json()
                    receipt = service.delegate_register(
                        data.get("beneficiary"), data.get("metadata_pointer"), self._caller()
                    )
                    self._send_json(receipt.to_dict(), 201)
                    return

                match = _APPROVAL_PATH.match(path)
                if match:
                    data = self._read_json()
                    receipt = service.approve(
                        _parse_tag_id(match.group(1)), data.get("operator"), self._caller()
                    )
                    self._send_json(receipt.to_dict())
                    return

                if path == "/operators":
                    data = self._read_json()
                    receipt = service.set_approval_for_all(
                        self._caller(), data.get("operator"), data.get("approved")
                    )
                    self._send_json(receipt.to_dict())
                    return

                self._send_error("Not found", 404)

            def _route_delete(self):
                service = self.server_ref.service
                match = _TAG_PATH.match(urlparse(self.path).path)
                if match:
                    receipt = service.destroy(_parse_tag_id(match.group(1)), self._caller())
                    self._send_json(receipt.to_dict())
                    return

                self._send_error("Not found", 404)

        return RequestHandler

    def bind(self) -> ThreadingHTTPServer:
        """Bind the listening socket; port 0 picks a free port."""
        if self._httpd is None:
            self._httpd = ThreadingHTTPServer((self.host, self.port), self._create_handler())
            self.port = self._httpd.server_address[1]
        return self._httpd

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self):
        """Start the HTTP server (blocking)."""
        httpd = self.bind()
        logger.info(f"SuperTags server starting on {self.host}:{self.port}")
        print(f"SuperTags server running on {self.url}")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            print("\nShutting down...")
        finally:
            httpd.server_close()

    def start_background(self) -> threading.Thread:
        """Start the server in a background thread."""
        httpd = self.bind()
        thread = threading.Thread(target=httpd.serve_forever)
        thread.daemon = True
        thread.start()
        logger.info(f"SuperTags server running in background on {self.url}")
        return thread

    def stop(self):
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
