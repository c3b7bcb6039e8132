"""Storage driver protocol.

Every driver module MUST implement this protocol. The engine only ever
talks to storage through these operations on raw documents.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from bson import ObjectId

from doc_query.core.connection import ConnectionConfig


@runtime_checkable
class Driver(Protocol):
    """Document store driver protocol."""

    def connect(self, config: ConnectionConfig) -> None:
        """Open the connection described by *config*."""
        ...

    def close(self) -> None:
        """Release the connection."""
        ...

    def find(
        self,
        collection: str,
        selector: dict[str, Any],
        sort: list[tuple[str, int]] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Return matching documents, fully materialized, in sort order."""
        ...

    def insert(self, collection: str, document: dict[str, Any]) -> ObjectId:
        """Insert a document and return its ``_id``."""
        ...

    def update(self, collection: str, selector: dict[str, Any], document: dict[str, Any]) -> int:
        """Apply a ``$set``/``$unset`` modifier or a replacement; return the matched count."""
        ...

    def remove(self, collection: str, selector: dict[str, Any]) -> int:
        """Delete matching documents and return how many were removed."""
        ...

    def drop_collection(self, collection: str) -> None:
        """Drop a whole collection."""
        ...
