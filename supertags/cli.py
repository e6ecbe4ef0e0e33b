#!/usr/bin/env python3
"""
SuperTags CLI

Operates on a local data directory (see supertags.config):
  supertags register <pointer> --caller <id>
  supertags delegate-register <beneficiary> <pointer> --caller <id>
  supertags destroy <tag_id> --caller <id>
  supertags approve <tag_id> <operator|-> --caller <id>
  supertags approve-all <operator> [--revoke] --caller <id>
  supertags show <tag_id>
  supertags tokens <owner>
  supertags events [--from-block N]
  supertags serve [--host H] [--port P]
  supertags keygen <path> [--key-id ID]
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import Config, load_config
from .errors import TagRegistryError
from .indexing import Signer
from .ledger import Receipt
from .service import TagService


def _print_receipt(receipt: Receipt):
    print(f"tx {receipt.tx_hash} (block {receipt.block_number})")
    for record in receipt.records:
        print(f"  {json.dumps(record.event.to_dict())}")


def cmd_register(args, service: TagService):
    receipt = service.register(args.pointer, args.caller)
    print(f"Registered tag {receipt.result}")
    _print_receipt(receipt)


def cmd_delegate_register(args, service: TagService):
    receipt = service.delegate_register(args.beneficiary, args.pointer, args.caller)
    print(f"Registered tag {receipt.result} for {args.beneficiary}")
    _print_receipt(receipt)


def cmd_destroy(args, service: TagService):
    receipt = service.destroy(args.tag_id, args.caller)
    print(f"Destroyed tag {args.tag_id}")
    _print_receipt(receipt)


def cmd_approve(args, service: TagService):
    operator = None if args.operator == "-" else args.operator
    receipt = service.approve(args.tag_id, operator, args.caller)
    if operator:
        print(f"Approved {operator} for tag {args.tag_id}")
    else:
        print(f"Cleared approval for tag {args.tag_id}")
    _print_receipt(receipt)


def cmd_approve_all(args, service: TagService):
    approved = not args.revoke
    receipt = service.set_approval_for_all(args.caller, args.operator, approved)
    verb = "Approved" if approved else "Revoked"
    print(f"{verb} {args.operator} for all tags of {args.caller}")
    _print_receipt(receipt)


def cmd_show(args, service: TagService):
    print(json.dumps(service.describe(args.tag_id), indent=2))


def cmd_tokens(args, service: TagService):
    tags = service.tags_of(args.owner)
    print(f"{args.owner} holds {len(tags)} tag(s)")
    for tag in tags:
        print(f"  {tag.tag_id}: {tag.metadata_pointer}")


def cmd_events(args, service: TagService):
    for record in service.events(args.from_block):
        print(json.dumps(record.to_dict() if args.full else {
            "block": record.block_number,
            "tx": record.tx_hash,
            **record.event.to_dict(),
        }))


def cmd_serve(args, service: TagService, config: Config):
    from .server import TagServer

    server = TagServer(
        service,
        host=args.host or config.host,
        port=args.port if args.port is not None else config.port,
    )
    server.start()


def cmd_keygen(args):
    path = Path(args.path)
    if path.exists():
        raise TagRegistryError(f"Refusing to overwrite existing key: {path}")
    signer = Signer.create(args.key_id)
    signer.save(path)
    print(f"Wrote signing key {signer.key_id} to {path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="supertags",
        description="SuperTags - tag registry with mint, delegated mint and burn",
    )
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--data-dir", help="Data directory (overrides config)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    register_parser = subparsers.add_parser("register", help="Register a tag owned by the caller")
    register_parser.add_argument("pointer", help="Metadata pointer (e.g. ipfs://...)")
    register_parser.add_argument("--caller", required=True, help="Calling identity")

    delegate_parser = subparsers.add_parser("delegate-register",
                                            help="Register a tag on behalf of a beneficiary")
    delegate_parser.add_argument("beneficiary", help="Owner of the new tag")
    delegate_parser.add_argument("pointer", help="Metadata pointer")
    delegate_parser.add_argument("--caller", required=True, help="Calling identity")

    destroy_parser = subparsers.add_parser("destroy", help="Destroy a tag")
    destroy_parser.add_argument("tag_id", type=int, help="Tag id")
    destroy_parser.add_argument("--caller", required=True, help="Calling identity")

    approve_parser = subparsers.add_parser("approve", help="Approve an operator for one tag")
    approve_parser.add_argument("tag_id", type=int, help="Tag id")
    approve_parser.add_argument("operator", help="Operator identity, or - to clear")
    approve_parser.add_argument("--caller", required=True, help="Calling identity")

    approve_all_parser = subparsers.add_parser("approve-all",
                                               help="Approve an operator for all caller's tags")
    approve_all_parser.add_argument("operator", help="Operator identity")
    approve_all_parser.add_argument("--revoke", action="store_true", help="Revoke instead")
    approve_all_parser.add_argument("--caller", required=True, help="Calling identity")

    show_parser = subparsers.add_parser("show", help="Show a tag")
    show_parser.add_argument("tag_id", type=int, help="Tag id")

    tokens_parser = subparsers.add_parser("tokens", help="List tags held by an owner")
    tokens_parser.add_argument("owner", help="Owner identity")

    events_parser = subparsers.add_parser("events", help="Print event records")
    events_parser.add_argument("--from-block", type=int, default=0, help="First block")
    events_parser.add_argument("--full", action="store_true", help="Include envelope and signature")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, help="Port to bind to")

    keygen_parser = subparsers.add_parser("keygen", help="Generate a record signing key")
    keygen_parser.add_argument("path", help="Where to write the key (JSON)")
    keygen_parser.add_argument("--key-id", default="supertags-host", help="Key identifier")

    return parser


COMMANDS = {
    "register": cmd_register,
    "delegate-register": cmd_delegate_register,
    "destroy": cmd_destroy,
    "approve": cmd_approve,
    "approve-all": cmd_approve_all,
    "show": cmd_show,
    "tokens": cmd_tokens,
    "events": cmd_events,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
        if args.data_dir:
            config.data_dir = Path(args.data_dir)

        logging.basicConfig(
            level=logging.DEBUG if args.verbose else getattr(logging, config.log_level, logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )

        if args.command == "keygen":
            cmd_keygen(args)
            return 0

        service = TagService.from_config(config)
        if args.command == "serve":
            cmd_serve(args, service, config)
        else:
            COMMANDS[args.command](args, service)
    except TagRegistryError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
