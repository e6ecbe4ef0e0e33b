# supertags/indexing/__init__.py
"""
Event indexing for SuperTags.

Core concepts:
- EventRecord: a registry event with its transaction envelope
- EventLog: append-only record store
- Signer: host key used to sign records
- TagIndexer: builds queryable entities from records
"""

from .record import EventRecord, EventLog
from .signatures import Signer, sign_record, verify_record
from .indexer import (
    ApprovalEntity,
    ApprovalForAllEntity,
    IndexedTag,
    TagDestroyedEntity,
    TagIndexer,
    TagRegisteredEntity,
)

__all__ = [
    "EventRecord",
    "EventLog",
    "Signer",
    "sign_record",
    "verify_record",
    "TagIndexer",
    "IndexedTag",
    "TagRegisteredEntity",
    "TagDestroyedEntity",
    "ApprovalEntity",
    "ApprovalForAllEntity",
]
