"""Storage key sanitizer.

Document stores reserve ``$``-prefixed keys for operators and use ``.``
for path traversal, so neither may appear in a stored key. Applied to
model field names at build time, to EmbeddedMap keys at dump time, and to
every document the memory driver writes.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from doc_query.core.exceptions import ValidationError

_FORBIDDEN_CHARS = (".", "\x00")


def check_key(key: Any) -> str:
    """Validate a single storage key and return it.

    Raises:
        ValidationError: If the key is not a string, is empty, starts with
            ``$`` or contains a forbidden character.
    """
    if not isinstance(key, str):
        raise ValidationError(f"document keys must be strings, got {type(key).__name__}")
    if not key:
        raise ValidationError("document keys must not be empty")
    if key.startswith("$"):
        raise ValidationError(f"document key {key!r} must not start with '$'")
    for char in _FORBIDDEN_CHARS:
        if char in key:
            raise ValidationError(f"document key {key!r} contains forbidden character {char!r}")
    return key


def check_document_keys(document: Mapping[str, Any]) -> None:
    """Recursively validate every key of a nested document."""
    for key, value in document.items():
        check_key(key)
        check_nested_keys(value)


def check_nested_keys(value: Any) -> None:
    """Validate the keys of any documents nested in *value*."""
    if isinstance(value, Mapping):
        check_document_keys(value)
    elif isinstance(value, list):
        for item in value:
            check_nested_keys(item)
