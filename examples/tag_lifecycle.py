#!/usr/bin/env python3
"""
Walk through a tag's lifecycle in memory.

Registers, approves, burns and delegates, then shows what the indexer
saw. No data directory is written.
"""

import sys
from pathlib import Path

# Add supertags to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from supertags import NotFound, TagService, Unauthorized


def main():
    service = TagService()

    first = service.register("ipfs://a", "alice").result
    second = service.register("ipfs://b", "bob").result
    print(f"alice -> tag {first}, bob -> tag {second}")

    try:
        service.destroy(first, "mallory")
    except Unauthorized as e:
        print(f"mallory cannot burn: {e}")

    service.approve(first, "carol", "alice")
    receipt = service.destroy(first, "carol")
    print(f"carol burned tag {first} in block {receipt.block_number} ({receipt.tx_hash[:12]}...)")

    try:
        service.registry.owner_of(first)
    except NotFound as e:
        print(f"after burn: {e}")

    third = service.register("ipfs://c", "carol").result
    print(f"carol -> tag {third} (ids are never reused)")

    delegated = service.delegate_register("dave", "ipfs://d", "anyone").result
    print(f"anyone minted tag {delegated} for {service.registry.owner_of(delegated)}")

    print()
    print("Indexed registrations:")
    for entity in service.indexer.registrations():
        print(f"  block {entity.block_number}: tag {entity.tag_id} by {entity.creator} "
              f"-> {entity.metadata_pointer}")
    print("Indexed destructions:")
    for entity in service.indexer.destructions():
        print(f"  block {entity.block_number}: tag {entity.tag_id} by {entity.actor}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
