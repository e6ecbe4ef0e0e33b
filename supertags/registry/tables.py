# supertags/registry/tables.py
"""
Lookup tables behind the tag registry.

Ownership, single-tag approval and owner-wide operator approval are
kept in three independent tables. None of them validates or locks;
TagRegistry does both before touching them.
"""

from typing import Dict, Iterator, List, Optional, Set, Tuple


class OwnershipTable:
    """tag id -> owner, plus per-owner holdings for balance queries."""

    def __init__(self):
        self._owners: Dict[int, str] = {}
        self._holdings: Dict[str, Set[int]] = {}

    def owner_of(self, tag_id: int) -> Optional[str]:
        return self._owners.get(tag_id)

    def assign(self, tag_id: int, owner: str) -> None:
        previous = self._owners.get(tag_id)
        if previous is not None:
            self._drop_holding(previous, tag_id)
        self._owners[tag_id] = owner
        self._holdings.setdefault(owner, set()).add(tag_id)

    def remove(self, tag_id: int) -> Optional[str]:
        """Remove a tag; returns its former owner."""
        owner = self._owners.pop(tag_id, None)
        if owner is not None:
            self._drop_holding(owner, tag_id)
        return owner

    def _drop_holding(self, owner: str, tag_id: int) -> None:
        held = self._holdings.get(owner)
        if held is None:
            return
        held.discard(tag_id)
        if not held:
            del self._holdings[owner]

    def balance_of(self, owner: str) -> int:
        return len(self._holdings.get(owner, ()))

    def tokens_of(self, owner: str) -> List[int]:
        return sorted(self._holdings.get(owner, ()))

    def items(self) -> List[Tuple[int, str]]:
        return sorted(self._owners.items())

    def __contains__(self, tag_id: int) -> bool:
        return tag_id in self._owners

    def __len__(self) -> int:
        return len(self._owners)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._owners))


class ApprovalTable:
    """tag id -> the single operator approved for that tag."""

    def __init__(self):
        self._approved: Dict[int, str] = {}

    def get(self, tag_id: int) -> Optional[str]:
        return self._approved.get(tag_id)

    def set(self, tag_id: int, operator: Optional[str]) -> None:
        """Approve an operator; None clears the approval."""
        if operator is None:
            self._approved.pop(tag_id, None)
        else:
            self._approved[tag_id] = operator

    def clear(self, tag_id: int) -> Optional[str]:
        return self._approved.pop(tag_id, None)

    def items(self) -> List[Tuple[int, str]]:
        return sorted(self._approved.items())

    def __len__(self) -> int:
        return len(self._approved)


class OperatorTable:
    """(owner, operator) pairs approved for all of the owner's tags."""

    def __init__(self):
        self._pairs: Set[Tuple[str, str]] = set()

    def is_approved(self, owner: str, operator: str) -> bool:
        return (owner, operator) in self._pairs

    def set(self, owner: str, operator: str, approved: bool) -> None:
        if approved:
            self._pairs.add((owner, operator))
        else:
            self._pairs.discard((owner, operator))

    def operators_of(self, owner: str) -> List[str]:
        return sorted(op for (own, op) in self._pairs if own == owner)

    def items(self) -> List[Tuple[str, str]]:
        return sorted(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)
