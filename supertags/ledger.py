# supertags/ledger.py
"""
Host ledger for the tag registry.

The registry emits semantic events only. The ledger plays the part of
the external ordering authority: it runs each mutating operation as a
transaction, assigns it a block number, timestamp and transaction
hash, and turns the events it produced into EventRecords that are
logged and delivered to indexers.

One transaction per block. A reverted transaction consumes no block
and produces no records.
"""

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .errors import InvalidInput, StorageError, TagRegistryError
from .events import Event
from .indexing.record import EventLog, EventRecord
from .indexing.signatures import Signer, sign_record
from .registry import TagRegistry

logger = logging.getLogger(__name__)

METHODS = ("register", "delegate_register", "destroy", "approve", "set_approval_for_all")

RecordHandler = Callable[[EventRecord], None]


def _stable_hash(data: Any, algorithm: str = "sha3_256") -> str:
    """Create stable hash from arbitrary data."""
    json_str = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    hasher = hashlib.new(algorithm)
    hasher.update(json_str.encode())
    return hasher.hexdigest()


@dataclass
class Receipt:
    """Outcome of a mined transaction."""
    tx_hash: str
    block_number: int
    timestamp: int
    caller: str
    method: str
    result: Any = None
    records: List[EventRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "caller": self.caller,
            "method": self.method,
            "result": self.result,
            "records": [r.to_dict() for r in self.records],
        }


class Ledger:
    """
    Serializes registry mutations into numbered blocks.

    Usage:
        ledger = Ledger(TagRegistry())
        ledger.subscribe(indexer.handle)
        receipt = ledger.register("ipfs://a", caller="alice")
        receipt.result        # 1
        receipt.records[0]    # Registered, with tx hash and block number
    """

    def __init__(
        self,
        registry: TagRegistry,
        log: EventLog = None,
        signer: Signer = None,
        clock: Callable[[], float] = None,
    ):
        """
        Args:
            registry: The registry whose operations become transactions
            log: Record log (in-memory when None); numbering resumes
                 after its last block
            signer: Optional host key; records are signed when set
            clock: Timestamp source (default time.time)
        """
        self.registry = registry
        self.log = log if log is not None else EventLog()
        self.signer = signer
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self._block_number = self.log.last_block
        self._pending: Optional[List[Event]] = None
        self._pending_thread: Optional[int] = None
        self._subscribers: List[RecordHandler] = []
        registry.events.subscribe(self._capture)

    @property
    def block_number(self) -> int:
        """Number of the last mined block."""
        return self._block_number

    def subscribe(self, handler: RecordHandler) -> None:
        if handler not in self._subscribers:
            self._subscribers.append(handler)

    def unsubscribe(self, handler: RecordHandler) -> bool:
        if handler not in self._subscribers:
            return False
        self._subscribers.remove(handler)
        return True

    def _capture(self, event: Event) -> None:
        if self._pending is None or self._pending_thread != threading.get_ident():
            logger.warning(f"{event.name} emitted outside a ledger transaction; not recorded")
            return
        self._pending.append(event)

    def _deliver(self, record: EventRecord) -> None:
        for handler in list(self._subscribers):
            try:
                handler(record)
            except Exception:
                logger.exception(f"Record handler {handler!r} failed on {record.record_id}")

    def submit(self, caller: str, method: str, **params) -> Receipt:
        """
        Execute one registry operation as a transaction.

        Args:
            caller: Identity submitting the transaction
            method: Registry operation name (see METHODS)
            **params: Operation arguments other than the caller

        Returns:
            Receipt with the operation's result and its records

        Raises:
            TagRegistryError: the operation was rejected (reverted)
            StorageError: the records could not be written; the registry
                          change was rolled back
        """
        if method not in METHODS:
            raise InvalidInput("method", method, f"Unknown ledger method: {method}")
        operation = getattr(self.registry, method)

        with self._lock:
            block_number = self._block_number + 1
            timestamp = int(self._clock())
            tx_hash = "0x" + _stable_hash({
                "block_number": block_number,
                "timestamp": timestamp,
                "caller": caller,
                "method": method,
                "params": params,
            })

            checkpoint = self.registry.checkpoint()
            self._pending = []
            self._pending_thread = threading.get_ident()
            try:
                result = operation(caller=caller, **params)
            except TagRegistryError as e:
                logger.info(f"Transaction {tx_hash[:12]} ({method}) reverted: {e}")
                raise
            finally:
                events = self._pending
                self._pending = None
                self._pending_thread = None

            records = [
                EventRecord(
                    tx_hash=tx_hash,
                    log_index=index,
                    block_number=block_number,
                    timestamp=timestamp,
                    event=event,
                )
                for index, event in enumerate(events)
            ]
            if self.signer is not None:
                for record in records:
                    sign_record(record, self.signer)
            try:
                self.log.extend(records)
            except StorageError:
                logger.error(f"Transaction {tx_hash[:12]} ({method}) could not be recorded; rolling back")
                self.registry.rollback(checkpoint)
                raise
            self._block_number = block_number
            logger.debug(f"Block {block_number}: {method} by {caller} -> {len(records)} record(s)")

            for record in records:
                self._deliver(record)

            return Receipt(
                tx_hash=tx_hash,
                block_number=block_number,
                timestamp=timestamp,
                caller=caller,
                method=method,
                result=result,
                records=records,
            )

    def register(self, metadata_pointer: str, caller: str) -> Receipt:
        return self.submit(caller, "register", metadata_pointer=metadata_pointer)

    def delegate_register(self, beneficiary: str, metadata_pointer: str, caller: str) -> Receipt:
        return self.submit(caller, "delegate_register",
                           beneficiary=beneficiary, metadata_pointer=metadata_pointer)

    def destroy(self, tag_id: int, caller: str) -> Receipt:
        return self.submit(caller, "destroy", tag_id=tag_id)

    def approve(self, tag_id: int, operator: Optional[str], caller: str) -> Receipt:
        return self.submit(caller, "approve", tag_id=tag_id, operator=operator)

    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> Receipt:
        return self.submit(caller, "set_approval_for_all", operator=operator, approved=approved)
