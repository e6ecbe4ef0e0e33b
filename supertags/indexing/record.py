# supertags/indexing/record.py
"""
Event records and the event log.

A record is a registry event wrapped in the envelope the host supplies:
originating transaction hash, position of the event within that
transaction, block number and block timestamp. Records are what an
off-chain indexer consumes.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from ..errors import StorageError
from ..events import Event, event_from_dict

logger = logging.getLogger(__name__)


@dataclass
class EventRecord:
    """
    A registry event plus its ordering envelope.

    Attributes:
        tx_hash: Hash of the originating transaction
        log_index: Position of the event within the transaction
        block_number: Block that included the transaction
        timestamp: Block timestamp (seconds since epoch)
        event: The semantic payload
        signature: Host signature (added after signing)
    """
    tx_hash: str
    log_index: int
    block_number: int
    timestamp: int
    event: Event
    signature: Optional[Dict[str, Any]] = None

    @property
    def record_id(self) -> str:
        """Unique id: transaction hash and log index."""
        return f"{self.tx_hash}-{self.log_index}"

    def payload(self) -> Dict[str, Any]:
        """Everything except the signature (the signed document)."""
        return {
            "tx_hash": self.tx_hash,
            "log_index": self.log_index,
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "event": self.event.to_dict(),
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.payload()
        data["signature"] = self.signature
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventRecord":
        return cls(
            tx_hash=data["tx_hash"],
            log_index=data["log_index"],
            block_number=data["block_number"],
            timestamp=data["timestamp"],
            event=event_from_dict(data["event"]),
            signature=data.get("signature"),
        )


class EventLog:
    """
    Append-only log of event records.

    Records are kept in emission order. When store_dir is given the log
    is persisted to store_dir/events.json after every append.
    """

    def __init__(self, store_dir: Path | str = None):
        self.store_dir = Path(store_dir) if store_dir is not None else None
        if self.store_dir is not None:
            self.store_dir.mkdir(parents=True, exist_ok=True)
        self._records: List[EventRecord] = []
        self._load()

    def _log_path(self) -> Optional[Path]:
        if self.store_dir is None:
            return None
        return self.store_dir / "events.json"

    def _load(self):
        """Load records from disk."""
        log_path = self._log_path()
        if log_path is None or not log_path.exists():
            return
        try:
            with open(log_path) as f:
                data = json.load(f)
            self._records = [EventRecord.from_dict(r) for r in data.get("records", [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Unreadable event store {log_path}: {e}")
            raise StorageError(log_path, f"Cannot read event store {log_path}: {e}") from e

    def _save(self):
        """Save records to disk, replacing the old file in one step."""
        log_path = self._log_path()
        if log_path is None:
            return
        data = {
            "version": "1.0",
            "records": [r.to_dict() for r in self._records],
        }
        tmp_path = log_path.with_name(log_path.name + ".tmp")
        try:
            with open(tmp_path, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, log_path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(log_path, f"Cannot write event store {log_path}: {e}") from e

    def append(self, record: EventRecord) -> None:
        """Add a record to the log."""
        self.extend([record])

    def extend(self, records: List[EventRecord]) -> None:
        """Add several records with a single write; nothing is kept if it fails."""
        size = len(self._records)
        self._records.extend(records)
        try:
            self._save()
        except StorageError:
            del self._records[size:]
            raise

    def get(self, record_id: str) -> Optional[EventRecord]:
        for r in self._records:
            if r.record_id == record_id:
                return r
        return None

    def list(self) -> List[EventRecord]:
        return list(self._records)

    def find_by_tx(self, tx_hash: str) -> List[EventRecord]:
        return [r for r in self._records if r.tx_hash == tx_hash]

    def find_by_tag(self, tag_id: int) -> List[EventRecord]:
        """Records whose event concerns tag_id."""
        return [r for r in self._records if getattr(r.event, "tag_id", None) == tag_id]

    def since(self, block_number: int) -> List[EventRecord]:
        """Records from block_number onwards (inclusive)."""
        return [r for r in self._records if r.block_number >= block_number]

    @property
    def last_block(self) -> int:
        """Highest block number in the log (0 when empty)."""
        if not self._records:
            return 0
        return self._records[-1].block_number

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[EventRecord]:
        return iter(list(self._records))
