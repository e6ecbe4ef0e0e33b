# supertags - Non-fungible tag registry with event indexing
#
# A registry that issues sequential tag ids, binds each tag to an
# immutable metadata pointer and an owner, and lets owners or their
# approved operators destroy tags. Every mutation emits an event that
# the host ledger records and an off-chain indexer consumes.
#
# Core concepts:
# - TagRegistry: ids, owners, approvals, metadata pointers
# - EventBus: synchronous delivery of lifecycle events
# - Ledger: orders mutations into blocks and records their events
# - TagIndexer: queryable entities built from event records

from .errors import (
    ConfigError,
    InvalidInput,
    NotFound,
    StorageError,
    TagRegistryError,
    Unauthorized,
)
from .events import (
    ApprovalChanged,
    ApprovalForAllChanged,
    Destroyed,
    Event,
    EventBus,
    Registered,
)
from .identity import ZERO_IDENTITY
from .policy import allow_all, make_creator_policy
from .registry import Tag, TagRegistry
from .indexing import EventLog, EventRecord, Signer, TagIndexer
from .ledger import Ledger, Receipt
from .config import Config, load_config
from .service import TagService

__all__ = [
    # Registry
    "Tag",
    "TagRegistry",
    "ZERO_IDENTITY",
    "allow_all",
    "make_creator_policy",
    # Errors
    "TagRegistryError",
    "NotFound",
    "Unauthorized",
    "InvalidInput",
    "ConfigError",
    "StorageError",
    # Events
    "Event",
    "EventBus",
    "Registered",
    "Destroyed",
    "ApprovalChanged",
    "ApprovalForAllChanged",
    # Host and indexing
    "Ledger",
    "Receipt",
    "EventLog",
    "EventRecord",
    "Signer",
    "TagIndexer",
    # Service
    "Config",
    "load_config",
    "TagService",
]

__version__ = "0.1.0"
