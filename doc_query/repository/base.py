"""Repository base class.

Thin wrapper over Engine for DDD-oriented usage.
"""

from __future__ import annotations

from typing import Any, ClassVar, Generic, TypeVar

from bson import ObjectId

from doc_query.core.exceptions import ModelDefinitionError
from doc_query.mapping.descriptors import ModelMetadata
from doc_query.query.translator import Query

T = TypeVar("T")


class Repository(Generic[T]):
    """Base repository class bound to one top-level model.

    Subclasses either set ``model`` or receive it in the constructor, and
    add concrete data access methods that delegate to the engine.
    """

    model: ClassVar[type | None] = None

    def __init__(self, engine: Any, model: type[T] | None = None) -> None:
        self.engine = engine
        resource_class = model or type(self).model
        metadata: ModelMetadata | None = getattr(resource_class, "__model__", None)
        if metadata is None:
            raise ModelDefinitionError(f"{type(self).__name__} has no built model")
        self.metadata = metadata

    def query(self) -> Query:
        return Query(self.metadata)

    def get(self, key: ObjectId | str) -> T:
        return self.engine.get(self.metadata, key)

    def find(self, query: Query | None = None, **criteria: Any) -> list[T]:
        return self.engine.read(self.metadata, query, **criteria)

    def first(self, query: Query | None = None, **criteria: Any) -> T | None:
        return self.engine.first(self.metadata, query, **criteria)

    def create(self, **attributes: Any) -> T:
        """Instantiate and insert a new resource."""
        resource = self.metadata.resource_class(**attributes)
        self.engine.create(resource)
        return resource

    def save(self, resource: T) -> ObjectId:
        return self.engine.save(resource)

    def delete(self, resource: T) -> bool:
        return self.engine.delete(resource)
