# supertags/registry/registry.py
"""
The SuperTags registry.

Holds every tag's owner, approvals and metadata pointer, and exposes
the register / delegate_register / destroy / approve operations.

Rules:
- Ids are issued sequentially from 1 and never reused, even after destroy
- A tag exists exactly while it has an owner
- The metadata pointer is bound once, together with creation
- Destroy requires the owner, the tag's approved operator, or an
  operator the owner approved for all tags
- Every successful mutation emits one event, in mutation order
"""

import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from ..errors import InvalidInput, NotFound, StorageError, Unauthorized
from ..events import (
    ApprovalChanged,
    ApprovalForAllChanged,
    Destroyed,
    Event,
    EventBus,
    Registered,
)
from ..identity import is_null_identity, normalize_identity, require_identity
from ..policy import MintPolicy, allow_all
from .tables import ApprovalTable, OperatorTable, OwnershipTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tag:
    """
    Snapshot of a live tag.

    Attributes:
        tag_id: Sequential identifier (starts at 1)
        owner: Current holder
        metadata_pointer: Opaque pointer (usually a URI) bound at creation
        approved: Operator approved for this tag only, if any
    """
    tag_id: int
    owner: str
    metadata_pointer: str
    approved: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag_id": self.tag_id,
            "owner": self.owner,
            "metadata_pointer": self.metadata_pointer,
            "approved": self.approved,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tag":
        return cls(
            tag_id=int(data["tag_id"]),
            owner=data["owner"],
            metadata_pointer=data["metadata_pointer"],
            approved=data.get("approved"),
        )


def _check_tag_id(tag_id: Any) -> int:
    # bool is an int subclass but never a valid id
    if isinstance(tag_id, bool) or not isinstance(tag_id, int):
        raise InvalidInput("tag_id", tag_id, f"Tag id must be an integer, got {tag_id!r}")
    return tag_id


class TagRegistry:
    """
    Tag registry with ownership and approval bookkeeping.

    All mutations, and the queries, run under one re-entrant lock, so
    concurrent callers observe some total order of operations.

    Structure (when registry_dir is given):
        registry_dir/
            registry.json     # counter, owners, pointers, approvals

    Usage:
        registry = TagRegistry()
        tag_id = registry.register("ipfs://a", "alice")
        registry.destroy(tag_id, "alice")
    """

    def __init__(
        self,
        registry_dir: Path | str = None,
        mint_policy: MintPolicy = None,
        events: EventBus = None,
    ):
        """
        Initialize the registry.

        Args:
            registry_dir: Directory for registry.json; in-memory when None
            mint_policy: Pre-mint authorization hook (default: allow all)
            events: Bus that receives lifecycle events
        """
        self.registry_dir = Path(registry_dir) if registry_dir is not None else None
        if self.registry_dir is not None:
            self.registry_dir.mkdir(parents=True, exist_ok=True)
        self.mint_policy = mint_policy or allow_all
        self.events = events if events is not None else EventBus()

        self._lock = threading.RLock()
        self._next_id = 0
        self._owners = OwnershipTable()
        self._approvals = ApprovalTable()
        self._operators = OperatorTable()
        self._pointers: Dict[int, str] = {}
        self._load()

    # -- persistence -----------------------------------------------------

    def _index_path(self) -> Optional[Path]:
        if self.registry_dir is None:
            return None
        return self.registry_dir / "registry.json"

    def _to_data(self) -> Dict[str, Any]:
        return {
            "version": "1.0",
            "next_id": self._next_id,
            "tags": {
                str(tag_id): {
                    "owner": owner,
                    "metadata_pointer": self._pointers[tag_id],
                }
                for tag_id, owner in self._owners.items()
            },
            "approvals": {str(tag_id): op for tag_id, op in self._approvals.items()},
            "operators": [list(pair) for pair in self._operators.items()],
        }

    def _from_data(self, data: Dict[str, Any]) -> None:
        owners = OwnershipTable()
        approvals = ApprovalTable()
        operators = OperatorTable()
        pointers: Dict[int, str] = {}
        for key, tag_data in data.get("tags", {}).items():
            tag_id = int(key)
            owners.assign(tag_id, tag_data["owner"])
            pointers[tag_id] = tag_data["metadata_pointer"]
        for key, operator in data.get("approvals", {}).items():
            approvals.set(int(key), operator)
        for owner, operator in data.get("operators", []):
            operators.set(owner, operator, True)

        self._next_id = int(data.get("next_id", 0))
        self._owners = owners
        self._approvals = approvals
        self._operators = operators
        self._pointers = pointers

    def _load(self):
        """Load registry state from disk."""
        index_path = self._index_path()
        if index_path is None or not index_path.exists():
            return
        try:
            with open(index_path) as f:
                self._from_data(json.load(f))
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Unreadable registry store {index_path}: {e}")
            raise StorageError(index_path, f"Cannot read registry store {index_path}: {e}") from e
        logger.debug(f"Loaded {len(self._owners)} tags from {index_path}")

    def _save(self):
        """Save registry state to disk, replacing the old file in one step."""
        index_path = self._index_path()
        if index_path is None:
            return
        tmp_path = index_path.with_name(index_path.name + ".tmp")
        try:
            with open(tmp_path, "w") as f:
                json.dump(self._to_data(), f, indent=2)
            os.replace(tmp_path, index_path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(index_path, f"Cannot write registry store {index_path}: {e}") from e

    def _commit(self, event: Event, checkpoint: Dict[str, Any]) -> None:
        """
        Persist the mutation, then announce it.

        If the write fails the in-memory state goes back to checkpoint
        and no event is emitted.
        """
        try:
            self._save()
        except StorageError:
            self._from_data(checkpoint)
            logger.error(f"{event.name} not applied: registry store is unwritable")
            raise
        self.events.emit(event)

    def checkpoint(self) -> Dict[str, Any]:
        """Capture the full registry state for a later rollback()."""
        with self._lock:
            return self._to_data()

    def rollback(self, checkpoint: Dict[str, Any]) -> None:
        """
        Restore state captured by checkpoint() and persist it.

        Used by the ledger when a mutation could not be recorded. No
        events are emitted for the undone changes.
        """
        with self._lock:
            self._from_data(checkpoint)
            logger.warning(f"Registry rolled back to next_id {self._next_id}")
            self._save()

    # -- authorization ---------------------------------------------------

    def _require_owner(self, tag_id: Any) -> str:
        tag_id = _check_tag_id(tag_id)
        owner = self._owners.owner_of(tag_id)
        if owner is None:
            raise NotFound(tag_id)
        return owner

    def _is_approved_or_owner(self, tag_id: int, owner: str, caller: str) -> bool:
        return (
            caller == owner
            or self._approvals.get(tag_id) == caller
            or self._operators.is_approved(owner, caller)
        )

    # -- mutations -------------------------------------------------------

    def register(self, metadata_pointer: str, caller: str) -> int:
        """
        Create a tag owned by the caller.

        Args:
            metadata_pointer: Opaque pointer (empty string allowed)
            caller: Identity performing the call; becomes the owner

        Returns:
            The new tag id
        """
        caller = require_identity(caller, "caller")
        return self._mint(caller, metadata_pointer, caller)

    def delegate_register(self, beneficiary: str, metadata_pointer: str, caller: str) -> int:
        """
        Create a tag owned by beneficiary on the caller's behalf.

        The Registered event names the beneficiary as creator. The
        caller is only checked by the mint policy.
        """
        caller = require_identity(caller, "caller")
        beneficiary = require_identity(beneficiary, "beneficiary")
        return self._mint(beneficiary, metadata_pointer, caller)

    def _mint(self, owner: str, metadata_pointer: str, caller: str) -> int:
        if not isinstance(metadata_pointer, str):
            raise InvalidInput("metadata_pointer", metadata_pointer,
                               "Metadata pointer must be a string")

        with self._lock:
            if not self.mint_policy(caller, owner):
                raise Unauthorized(None, caller, f"{caller} is not permitted to mint")

            checkpoint = self._to_data()
            self._next_id += 1
            tag_id = self._next_id
            self._owners.assign(tag_id, owner)
            self._pointers[tag_id] = metadata_pointer

            self._commit(Registered(tag_id=tag_id, creator=owner,
                                    metadata_pointer=metadata_pointer), checkpoint)
            logger.info(f"Registered tag {tag_id} for {owner} (caller {caller})")
            return tag_id

    def destroy(self, tag_id: int, caller: str) -> None:
        """
        Destroy a tag. Terminal: the id is retired for good.

        Raises:
            NotFound: tag never existed or is already destroyed
            Unauthorized: caller is not owner, approved, or operator-for-all
        """
        caller = require_identity(caller, "caller")
        with self._lock:
            owner = self._require_owner(tag_id)
            if not self._is_approved_or_owner(tag_id, owner, caller):
                raise Unauthorized(tag_id, caller)

            checkpoint = self._to_data()
            self._approvals.clear(tag_id)
            self._owners.remove(tag_id)
            del self._pointers[tag_id]

            self._commit(Destroyed(tag_id=tag_id, actor=caller), checkpoint)
            logger.info(f"Destroyed tag {tag_id} (owner {owner}, actor {caller})")

    def approve(self, tag_id: int, operator: Optional[str], caller: str) -> None:
        """
        Approve an operator for one tag; None or the zero identity clears it.

        Only the owner or an operator approved for all of the owner's
        tags may change the approval.
        """
        caller = require_identity(caller, "caller")
        operator = None if is_null_identity(operator) else require_identity(operator, "operator")
        with self._lock:
            owner = self._require_owner(tag_id)
            if caller != owner and not self._operators.is_approved(owner, caller):
                raise Unauthorized(tag_id, caller)

            checkpoint = self._to_data()
            self._approvals.set(tag_id, operator)
            self._commit(ApprovalChanged(tag_id=tag_id, owner=owner, operator=operator), checkpoint)
            logger.debug(f"Tag {tag_id} approval -> {operator}")

    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> None:
        """Grant or revoke operator rights over every tag the caller owns."""
        caller = require_identity(caller, "caller")
        operator = require_identity(operator, "operator")
        if not isinstance(approved, bool):
            raise InvalidInput("approved", approved, "approved must be a bool")
        with self._lock:
            checkpoint = self._to_data()
            self._operators.set(caller, operator, approved)
            self._commit(ApprovalForAllChanged(owner=caller, operator=operator,
                                               approved=approved), checkpoint)
            logger.debug(f"Operator {operator} for {caller}: {approved}")

    # -- queries ---------------------------------------------------------

    def owner_of(self, tag_id: int) -> str:
        with self._lock:
            return self._require_owner(tag_id)

    def metadata_of(self, tag_id: int) -> str:
        with self._lock:
            self._require_owner(tag_id)
            return self._pointers[tag_id]

    def get_approved(self, tag_id: int) -> Optional[str]:
        with self._lock:
            self._require_owner(tag_id)
            return self._approvals.get(tag_id)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        with self._lock:
            return self._operators.is_approved(
                normalize_identity(owner), normalize_identity(operator)
            )

    def operators_of(self, owner: str) -> List[str]:
        """Operators the owner approved for all tags."""
        with self._lock:
            return self._operators.operators_of(normalize_identity(owner))

    def balance_of(self, owner: str) -> int:
        owner = require_identity(owner, "owner")
        with self._lock:
            return self._owners.balance_of(owner)

    def tokens_of(self, owner: str) -> List[int]:
        owner = require_identity(owner, "owner")
        with self._lock:
            return self._owners.tokens_of(owner)

    def total_supply(self) -> int:
        """Number of live tags."""
        with self._lock:
            return len(self._owners)

    @property
    def next_id(self) -> int:
        """Highest id ever issued (0 before the first register)."""
        with self._lock:
            return self._next_id

    def exists(self, tag_id: int) -> bool:
        tag_id = _check_tag_id(tag_id)
        with self._lock:
            return tag_id in self._owners

    def get(self, tag_id: int) -> Optional[Tag]:
        """Get a tag snapshot, or None when it does not exist."""
        tag_id = _check_tag_id(tag_id)
        with self._lock:
            owner = self._owners.owner_of(tag_id)
            if owner is None:
                return None
            return Tag(
                tag_id=tag_id,
                owner=owner,
                metadata_pointer=self._pointers[tag_id],
                approved=self._approvals.get(tag_id),
            )

    def list(self) -> List[Tag]:
        """List all live tags in id order."""
        with self._lock:
            return [self.get(tag_id) for tag_id in self._owners]

    def __contains__(self, tag_id: object) -> bool:
        if isinstance(tag_id, bool) or not isinstance(tag_id, int):
            return False
        with self._lock:
            return tag_id in self._owners

    def __len__(self) -> int:
        return self.total_supply()

    def __iter__(self) -> Iterator[Tag]:
        return iter(self.list())
