# supertags/errors.py
"""
Error kinds raised by the tag registry.

Hierarchy:
    TagRegistryError (base)
    ├── NotFound       - referenced tag id does not exist
    ├── Unauthorized   - caller lacks ownership/approval rights
    ├── InvalidInput   - malformed identity, pointer or id
    ├── ConfigError    - unusable configuration
    └── StorageError   - a store file could not be read or written
"""

from typing import Any, Dict, Optional


class TagRegistryError(Exception):
    """Base error for all registry failures."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFound(TagRegistryError):
    """The tag was never registered or has been destroyed."""

    def __init__(self, tag_id: Any, message: str = None):
        super().__init__(message or f"Tag {tag_id} does not exist", {"tag_id": tag_id})
        self.tag_id = tag_id


class Unauthorized(TagRegistryError):
    """The caller is neither owner nor an approved operator."""

    def __init__(self, tag_id: Any, caller: str, message: str = None):
        super().__init__(
            message or f"{caller} is not authorized for tag {tag_id}",
            {"tag_id": tag_id, "caller": caller},
        )
        self.tag_id = tag_id
        self.caller = caller


class InvalidInput(TagRegistryError):
    """An argument is malformed (null identity, non-string pointer, bad id)."""

    def __init__(self, field: str, value: Any, message: str = None):
        super().__init__(message or f"Invalid {field}: {value!r}", {"field": field})
        self.field = field
        self.value = value


class ConfigError(TagRegistryError):
    """Configuration could not be loaded or is inconsistent."""


class StorageError(TagRegistryError):
    """A registry or event store file could not be read or written."""

    def __init__(self, path: Any, message: str):
        super().__init__(message, {"path": str(path)})
        self.path = path
