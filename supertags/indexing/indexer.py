# supertags/indexing/indexer.py
"""
Off-chain indexer for registry events.

Consumes event records and maintains two kinds of entities:
- Immutable event entities, one per record (registrations,
  destructions, approvals), keyed by record id
- A derived IndexedTag per tag id reflecting its latest known state

Records are applied at most once. With a public key configured, only
records carrying a valid host signature are indexed.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..events import ApprovalChanged, ApprovalForAllChanged, Destroyed, Registered
from .record import EventRecord
from .signatures import verify_record

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TagRegisteredEntity:
    id: str
    tag_id: int
    creator: str
    metadata_pointer: str
    block_number: int
    block_timestamp: int
    transaction_hash: str


@dataclass(frozen=True)
class TagDestroyedEntity:
    id: str
    tag_id: int
    actor: str
    block_number: int
    block_timestamp: int
    transaction_hash: str


@dataclass(frozen=True)
class ApprovalEntity:
    id: str
    tag_id: int
    owner: str
    operator: Optional[str]
    block_number: int
    block_timestamp: int
    transaction_hash: str


@dataclass(frozen=True)
class ApprovalForAllEntity:
    id: str
    owner: str
    operator: str
    approved: bool
    block_number: int
    block_timestamp: int
    transaction_hash: str


@dataclass
class IndexedTag:
    """Latest indexed state of one tag."""
    tag_id: int
    owner: Optional[str]
    creator: str
    metadata_pointer: str
    registered_at_block: int
    approved: Optional[str] = None
    destroyed: bool = False
    destroyed_at_block: Optional[int] = None


@dataclass
class IndexStats:
    indexed: int = 0
    duplicates: int = 0
    rejected: int = 0


class TagIndexer:
    """
    Builds queryable entities from event records.

    Usage:
        indexer = TagIndexer()
        ledger.subscribe(indexer.handle)
        indexer.tags(owner="alice")
    """

    def __init__(self, public_key: bytes = None):
        """
        Args:
            public_key: PEM public key of the host; when set, records
                        without a valid signature are rejected
        """
        self.public_key = public_key
        self.stats = IndexStats()
        self._seen: Set[str] = set()
        self._last_block = 0
        self._tags: Dict[int, IndexedTag] = {}
        self._registrations: List[TagRegisteredEntity] = []
        self._destructions: List[TagDestroyedEntity] = []
        self._approvals: List[ApprovalEntity] = []
        self._operators: Dict[Tuple[str, str], ApprovalForAllEntity] = {}
        self._handlers: Dict[str, Callable[[EventRecord], None]] = {
            Registered.name: self._handle_registered,
            Destroyed.name: self._handle_destroyed,
            ApprovalChanged.name: self._handle_approval,
            ApprovalForAllChanged.name: self._handle_approval_for_all,
        }

    def handle(self, record: EventRecord) -> bool:
        """
        Index one record.

        Returns:
            True if the record was indexed, False if it was a duplicate
            or was rejected
        """
        if record.record_id in self._seen:
            self.stats.duplicates += 1
            logger.debug(f"Skipping duplicate record {record.record_id}")
            return False

        if self.public_key is not None and not verify_record(record, self.public_key):
            self.stats.rejected += 1
            logger.warning(f"Rejected record {record.record_id}: bad or missing signature")
            return False

        handler = self._handlers.get(record.event.name)
        if handler is None:
            self.stats.rejected += 1
            logger.warning(f"Rejected record {record.record_id}: unknown event {record.event.name}")
            return False

        if record.block_number < self._last_block:
            logger.warning(
                f"Record {record.record_id} from block {record.block_number} "
                f"arrived after block {self._last_block}"
            )

        handler(record)
        self._seen.add(record.record_id)
        self._last_block = max(self._last_block, record.block_number)
        self.stats.indexed += 1
        return True

    def replay(self, records: Iterable[EventRecord]) -> int:
        """Index a sequence of records; returns how many were indexed."""
        return sum(1 for record in records if self.handle(record))

    # -- handlers --------------------------------------------------------

    def _handle_registered(self, record: EventRecord):
        event = record.event
        self._registrations.append(TagRegisteredEntity(
            id=record.record_id,
            tag_id=event.tag_id,
            creator=event.creator,
            metadata_pointer=event.metadata_pointer,
            block_number=record.block_number,
            block_timestamp=record.timestamp,
            transaction_hash=record.tx_hash,
        ))
        self._tags[event.tag_id] = IndexedTag(
            tag_id=event.tag_id,
            owner=event.creator,
            creator=event.creator,
            metadata_pointer=event.metadata_pointer,
            registered_at_block=record.block_number,
        )

    def _handle_destroyed(self, record: EventRecord):
        event = record.event
        self._destructions.append(TagDestroyedEntity(
            id=record.record_id,
            tag_id=event.tag_id,
            actor=event.actor,
            block_number=record.block_number,
            block_timestamp=record.timestamp,
            transaction_hash=record.tx_hash,
        ))
        tag = self._tags.get(event.tag_id)
        if tag is None:
            logger.warning(f"Destroyed event for unindexed tag {event.tag_id}")
            return
        tag.owner = None
        tag.approved = None
        tag.destroyed = True
        tag.destroyed_at_block = record.block_number

    def _handle_approval(self, record: EventRecord):
        event = record.event
        self._approvals.append(ApprovalEntity(
            id=record.record_id,
            tag_id=event.tag_id,
            owner=event.owner,
            operator=event.operator,
            block_number=record.block_number,
            block_timestamp=record.timestamp,
            transaction_hash=record.tx_hash,
        ))
        tag = self._tags.get(event.tag_id)
        if tag is not None:
            tag.approved = event.operator

    def _handle_approval_for_all(self, record: EventRecord):
        event = record.event
        self._operators[(event.owner, event.operator)] = ApprovalForAllEntity(
            id=record.record_id,
            owner=event.owner,
            operator=event.operator,
            approved=event.approved,
            block_number=record.block_number,
            block_timestamp=record.timestamp,
            transaction_hash=record.tx_hash,
        )

    # -- queries ---------------------------------------------------------

    def tag(self, tag_id: int) -> Optional[IndexedTag]:
        return self._tags.get(tag_id)

    def tags(self, owner: str = None, include_destroyed: bool = False) -> List[IndexedTag]:
        """Indexed tags in id order, optionally filtered by owner."""
        return [
            t for _, t in sorted(self._tags.items())
            if (include_destroyed or not t.destroyed)
            and (owner is None or t.owner == owner)
        ]

    def registrations(self, creator: str = None) -> List[TagRegisteredEntity]:
        return [r for r in self._registrations if creator is None or r.creator == creator]

    def destructions(self, actor: str = None) -> List[TagDestroyedEntity]:
        return [d for d in self._destructions if actor is None or d.actor == actor]

    def approvals(self, tag_id: int = None) -> List[ApprovalEntity]:
        return [a for a in self._approvals if tag_id is None or a.tag_id == tag_id]

    def operators_of(self, owner: str) -> List[str]:
        """Operators currently approved for all of owner's tags."""
        return sorted(
            entity.operator for (own, _), entity in self._operators.items()
            if own == owner and entity.approved
        )

    @property
    def last_block(self) -> int:
        return self._last_block

    def __len__(self) -> int:
        return len(self._seen)
