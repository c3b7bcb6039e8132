"""Identifier and Reference value types.

Identifiers are ``bson.ObjectId`` values: two identifiers built from the
same 24-hex string or 12 raw bytes compare and hash equal, whether they
were constructed by the client or returned by storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId

from doc_query.core.exceptions import ValidationError

Identifier = ObjectId


def to_identifier(value: Any) -> ObjectId:
    """Normalize an ObjectId, 24-hex string or 12-byte value to an ObjectId.

    Raises:
        ValidationError: If the value is not a valid identifier form.
    """
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, (str, bytes)):
        try:
            return ObjectId(value)
        except InvalidId as e:
            raise ValidationError(f"malformed identifier {value!r}") from e
    raise ValidationError(f"cannot build an identifier from {type(value).__name__}")


def new_identifier() -> ObjectId:
    """Generate a storage-compatible identifier."""
    return ObjectId()


@dataclass(frozen=True)
class Reference:
    """Typed pointer to another document by identifier.

    The target is never resolved here; traversal belongs to the engine's
    association helpers.
    """

    target_id: ObjectId
    target_collection: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "target_id", to_identifier(self.target_id))
        if self.target_collection is not None and not isinstance(self.target_collection, str):
            raise ValidationError("reference collection must be a string")

    def __str__(self) -> str:
        if self.target_collection is None:
            return str(self.target_id)
        return f"{self.target_collection}/{self.target_id}"
