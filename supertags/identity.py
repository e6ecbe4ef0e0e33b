# supertags/identity.py
"""
Identity helpers.

Identities are opaque strings naming an external actor (an account
address, a username). Hex account addresses are compared
case-insensitively; every other identity is compared as given.
"""

import re
from typing import Any, Optional

from .errors import InvalidInput

ZERO_IDENTITY = "0x" + "0" * 40

_HEX_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")


def normalize_identity(value: Optional[str]) -> Optional[str]:
    """Return the canonical form of an identity (lowercased hex addresses)."""
    if value is None:
        return None
    value = value.strip()
    if _HEX_ADDRESS.match(value):
        return value.lower()
    return value


def is_null_identity(value: Any) -> bool:
    """True for None, the empty string and the zero address."""
    if value is None:
        return True
    if not isinstance(value, str):
        return False
    return normalize_identity(value) in ("", ZERO_IDENTITY)


def require_identity(value: Any, field: str) -> str:
    """
    Validate and normalize an identity that must refer to a real actor.

    Raises:
        InvalidInput: if the value is not a string or is the null identity
    """
    if not isinstance(value, str) or is_null_identity(value):
        raise InvalidInput(field, value, f"{field} must be a non-null identity")
    return normalize_identity(value)
