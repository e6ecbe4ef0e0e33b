# supertags/service.py
"""
SuperTags service.

Wires the registry, the host ledger, the event log and the indexer
together under one data directory:

    data_dir/
        registry/registry.json   # registry state
        events/events.json       # event records

The indexer is not persisted; it is rebuilt from the event log on
start and then follows the ledger.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Config
from .errors import NotFound
from .events import Registered
from .indexing import EventLog, EventRecord, Signer, TagIndexer
from .ledger import Ledger, Receipt
from .policy import MintPolicy, allow_all, make_creator_policy
from .registry import Tag, TagRegistry

logger = logging.getLogger(__name__)


class TagService:
    """
    Registry plus indexing under one roof.

    Mutations go through the ledger so that every event is recorded
    with its transaction envelope; queries read the registry directly.
    """

    def __init__(
        self,
        data_dir: Path | str = None,
        mint_policy: MintPolicy = None,
        signer: Signer = None,
        verify_key: bytes = None,
    ):
        """
        Args:
            data_dir: Base directory; everything stays in memory when None
            mint_policy: Pre-mint authorization hook (default: allow all)
            signer: Host key for signing records
            verify_key: Public key the indexer requires records to be
                        signed with (defaults to the signer's key)
        """
        self.data_dir = Path(data_dir) if data_dir is not None else None
        if self.data_dir is not None:
            self.data_dir.mkdir(parents=True, exist_ok=True)

        self.registry = TagRegistry(self._subdir("registry"), mint_policy=mint_policy or allow_all)
        self.log = EventLog(self._subdir("events"))
        self.ledger = Ledger(self.registry, log=self.log, signer=signer)

        self._check_consistency()

        if verify_key is None and signer is not None:
            verify_key = signer.public_key
        self.indexer = TagIndexer(public_key=verify_key)
        replayed = self.indexer.replay(self.log)
        if replayed:
            logger.info(f"Indexed {replayed} record(s) from the event log")
        self.ledger.subscribe(self.indexer.handle)

    def _check_consistency(self) -> None:
        """Warn when the registry and the event log disagree on issued ids."""
        logged = max(
            (r.event.tag_id for r in self.log if isinstance(r.event, Registered)),
            default=0,
        )
        if logged != self.registry.next_id:
            logger.warning(
                f"Registry next_id is {self.registry.next_id} but the last registration "
                f"in the event log is tag {logged}; the index will not match the registry"
            )

    @classmethod
    def from_config(cls, config: Config) -> "TagService":
        """Build a service from resolved configuration."""
        mint_policy = make_creator_policy(config.creators) if config.creators else allow_all
        signer = Signer.load(config.signing_key) if config.signing_key else None
        return cls(config.data_dir, mint_policy=mint_policy, signer=signer)

    def _subdir(self, name: str) -> Optional[Path]:
        if self.data_dir is None:
            return None
        return self.data_dir / name

    # Mutations

    def register(self, metadata_pointer: str, caller: str) -> Receipt:
        return self.ledger.register(metadata_pointer, caller)

    def delegate_register(self, beneficiary: str, metadata_pointer: str, caller: str) -> Receipt:
        return self.ledger.delegate_register(beneficiary, metadata_pointer, caller)

    def destroy(self, tag_id: int, caller: str) -> Receipt:
        return self.ledger.destroy(tag_id, caller)

    def approve(self, tag_id: int, operator: Optional[str], caller: str) -> Receipt:
        return self.ledger.approve(tag_id, operator, caller)

    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> Receipt:
        return self.ledger.set_approval_for_all(caller, operator, approved)

    # Queries

    def describe(self, tag_id: int) -> Dict[str, Any]:
        """Live tag details; raises NotFound when absent."""
        tag = self.registry.get(tag_id)
        if tag is None:
            raise NotFound(tag_id)
        return tag.to_dict()

    def tags_of(self, owner: str) -> List[Tag]:
        return [self.registry.get(tag_id) for tag_id in self.registry.tokens_of(owner)]

    def events(self, from_block: int = 0) -> List[EventRecord]:
        return self.log.since(from_block)
