# supertags/registry/__init__.py
"""
SuperTags registry.

Maps sequential tag ids to their owner, approvals and metadata pointer.

Example:
    registry = TagRegistry()
    tag_id = registry.register("ipfs://cat", "alice")
    registry.owner_of(tag_id)       # "alice"
    registry.metadata_of(tag_id)    # "ipfs://cat"
"""

from .registry import Tag, TagRegistry
from .tables import ApprovalTable, OperatorTable, OwnershipTable

__all__ = ["Tag", "TagRegistry", "OwnershipTable", "ApprovalTable", "OperatorTable"]
