"""In-process memory driver.

Keeps collections as lists of documents and evaluates selectors with the
query matcher. Documents are deep-copied on the way in and out, so callers
never share state with the store.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from bson import ObjectId

from doc_query.core.connection import ConnectionConfig
from doc_query.core.sanitizer import check_document_keys, check_nested_keys
from doc_query.query.matcher import matches

logger = logging.getLogger(__name__)

# Cross-type ordering used when sorting mixed values
_TYPE_ORDER: list[tuple[type | tuple[type, ...], int]] = [
    (bool, 7),
    ((int, float), 1),
    (str, 2),
    (Mapping, 3),
    (list, 4),
    (bytes, 5),
    (ObjectId, 6),
    (datetime, 8),
]


class DuplicateKeyError(Exception):
    """Raised when a document with the same ``_id`` already exists."""


def _sort_key(value: Any) -> tuple[int, Any]:
    if value is None:
        return (0, 0)
    for kind, rank in _TYPE_ORDER:
        if isinstance(value, kind):
            if rank in (3, 4):
                return (rank, repr(value))
            return (rank, value)
    return (9, repr(value))


def _field_value(document: Mapping[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _set_path(document: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = document
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


def _unset_path(document: dict[str, Any], path: str) -> None:
    parts = path.split(".")
    current: Any = document
    for part in parts[:-1]:
        current = current.get(part)
        if not isinstance(current, dict):
            return
    current.pop(parts[-1], None)


class MemoryDriver:
    """Driver storing documents in process memory."""

    def __init__(self) -> None:
        self._collections: dict[str, list[dict[str, Any]]] = {}

    def connect(self, config: ConnectionConfig) -> None:
        logger.debug("Memory driver ready for database %r", config.database)

    def close(self) -> None:
        """Nothing to release; stored documents survive until dropped."""

    def _documents(self, collection: str) -> list[dict[str, Any]]:
        return self._collections.setdefault(collection, [])

    def find(
        self,
        collection: str,
        selector: dict[str, Any],
        sort: list[tuple[str, int]] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        found = [doc for doc in self._documents(collection) if matches(doc, selector)]
        # Stable sorts applied from the last key to the first
        for field, direction in reversed(sort or []):
            found.sort(key=lambda doc: _sort_key(_field_value(doc, field)), reverse=direction < 0)
        found = found[offset:]
        if limit:
            found = found[:limit]
        return copy.deepcopy(found)

    def insert(self, collection: str, document: dict[str, Any]) -> ObjectId:
        check_document_keys(document)
        stored = copy.deepcopy(document)
        stored.setdefault("_id", ObjectId())
        documents = self._documents(collection)
        if any(doc["_id"] == stored["_id"] for doc in documents):
            raise DuplicateKeyError(f"duplicate _id {stored['_id']} in {collection}")
        documents.append(stored)
        return stored["_id"]

    def update(self, collection: str, selector: dict[str, Any], document: dict[str, Any]) -> int:
        matched = [doc for doc in self._documents(collection) if matches(doc, selector)]
        is_modifier = bool(document) and all(key.startswith("$") for key in document)
        if is_modifier:
            # $set paths may be dotted; only the values are documents
            for value in document.get("$set", {}).values():
                check_nested_keys(value)
        else:
            check_document_keys(document)
        for doc in matched:
            if is_modifier:
                for path, value in document.get("$set", {}).items():
                    _set_path(doc, path, copy.deepcopy(value))
                for path in document.get("$unset", {}):
                    _unset_path(doc, path)
            else:
                key = doc["_id"]
                doc.clear()
                doc.update(copy.deepcopy(document))
                doc["_id"] = key
        return len(matched)

    def remove(self, collection: str, selector: dict[str, Any]) -> int:
        documents = self._documents(collection)
        kept = [doc for doc in documents if not matches(doc, selector)]
        removed = len(documents) - len(kept)
        self._collections[collection] = kept
        return removed

    def drop_collection(self, collection: str) -> None:
        self._collections.pop(collection, None)

    @property
    def collection_names(self) -> list[str]:
        return sorted(self._collections)
