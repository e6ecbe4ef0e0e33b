#!/usr/bin/env python3
"""
Register a batch of tags on behalf of their beneficiaries.

Batch file (YAML):
    caller: <identity submitting the registrations>
    tags:
      - beneficiary: <owner of the new tag>
        metadata_pointer: <pointer>

Usage:
    delegate_tag_registration.py batch.yaml [--config supertags.yaml] [--data-dir DIR]
"""

import argparse
import logging
import sys
from pathlib import Path

import yaml

# Add supertags to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from supertags import TagRegistryError, TagService, load_config


def load_batch(path: Path) -> tuple[str, list[dict]]:
    """Read and validate a batch file; raises ValueError on any problem."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ValueError(f"{path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{path}: batch must be a mapping")

    caller = data.get("caller")
    tags = data.get("tags") or []
    if not caller:
        raise ValueError(f"{path}: missing 'caller'")
    if not isinstance(tags, list):
        raise ValueError(f"{path}: 'tags' must be a list")
    for i, entry in enumerate(tags):
        if not isinstance(entry, dict) or "beneficiary" not in entry or "metadata_pointer" not in entry:
            raise ValueError(f"{path}: entry {i} needs beneficiary and metadata_pointer")
    return caller, tags


def main(argv=None):
    parser = argparse.ArgumentParser(description="Delegated tag registration")
    parser.add_argument("batch", help="Batch YAML file")
    parser.add_argument("--config", help="SuperTags config file")
    parser.add_argument("--data-dir", help="Data directory (overrides config)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        caller, tags = load_batch(Path(args.batch))
        config = load_config(args.config)
        if args.data_dir:
            config.data_dir = Path(args.data_dir)
        service = TagService.from_config(config)
    except (ValueError, TagRegistryError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    print(f"Registering {len(tags)} tag(s) as {caller}")

    failures = 0
    for entry in tags:
        try:
            receipt = service.delegate_register(
                entry["beneficiary"], entry["metadata_pointer"], caller
            )
        except TagRegistryError as e:
            failures += 1
            print(f"  [FAILED] {entry['beneficiary']}: {e}")
            continue
        print(f"  [DONE] tag {receipt.result} -> {entry['beneficiary']} (tx {receipt.tx_hash[:12]}...)")

    print(f"\nRegistered: {len(tags) - failures}, failed: {failures}")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
