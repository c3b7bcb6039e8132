"""Repository layer - DDD repository pattern and association collections."""

from __future__ import annotations

from doc_query.repository.associations import ChildCollection
from doc_query.repository.base import Repository

__all__ = [
    "Repository",
    "ChildCollection",
]
