# supertags/policy.py
"""
Mint policies.

A mint policy decides whether `caller` may create a tag owned by
`beneficiary`. The registry consults it once per register /
delegate_register, before any id is allocated.

The default policy allows everyone: neither register nor
delegate_register checks the caller, so any caller may mint on behalf
of anyone. make_creator_policy() restricts minting to a set of
creator identities.
"""

from typing import Callable, Iterable

from .identity import normalize_identity

MintPolicy = Callable[[str, str], bool]


def allow_all(caller: str, beneficiary: str) -> bool:
    """Permit every mint."""
    return True


def make_creator_policy(creators: Iterable[str]) -> MintPolicy:
    """
    Create a policy that only lets listed creators mint.

    Args:
        creators: Identities holding the creator role

    Returns:
        Policy checking the caller (not the beneficiary) against the list
    """
    allowed = frozenset(normalize_identity(c) for c in creators)

    def is_creator(caller: str, beneficiary: str) -> bool:
        return normalize_identity(caller) in allowed
    return is_creator
