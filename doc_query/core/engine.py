"""Persistence engine.

The Engine orchestrates create/read/update/delete against a storage
driver: it marshals resources through the codec registry, renders
queries through the translator, and hydrates stored documents (including
their embedded resources) back into resources.

Marshalling and translation happen before any driver call, so invalid
input never causes a partial write. Driver failures surface as
StorageError without retries.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from bson import ObjectId

from doc_query.core.codecs import CodecRegistry, default_codecs
from doc_query.core.connection import ConnectionConfig, ConnectionManager
from doc_query.core.enums import LogicalType, Operator
from doc_query.core.exceptions import (
    DocQueryError,
    ModelDefinitionError,
    ModelNotFoundError,
    NotFoundError,
    StorageError,
    TranslationError,
    ValidationError,
)
from doc_query.core.registry import ModelRegistry
from doc_query.core.types import to_identifier
from doc_query.mapping.descriptors import AssociationDescriptor, ModelMetadata, PropertyDescriptor
from doc_query.mapping.resource import Resource
from doc_query.query.condition import Condition
from doc_query.query.translator import Query, QueryTranslator

logger = logging.getLogger(__name__)


class Engine:
    """Synchronous persistence engine.

    Creating an Engine ends the bootstrap phase: the codec registry and the
    model registry it is given are frozen.

    Args:
        connection_manager: Manager owning the storage driver.
        registry: Optional model registry, used to resolve association
            targets given by name.
        codecs: Codec registry. Defaults to the process-wide registry.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        registry: ModelRegistry | None = None,
        codecs: CodecRegistry | None = None,
    ) -> None:
        self._connection_manager = connection_manager
        self._registry = registry
        self._codecs = codecs or default_codecs
        self._translator = QueryTranslator(self._codecs)
        self._codecs.freeze()
        if registry is not None:
            registry.freeze()

    @classmethod
    def from_config(
        cls,
        config: ConnectionConfig,
        registry: ModelRegistry | None = None,
        codecs: CodecRegistry | None = None,
    ) -> Engine:
        """Create an Engine from a ConnectionConfig."""
        return cls(ConnectionManager(config), registry, codecs)

    @property
    def codecs(self) -> CodecRegistry:
        return self._codecs

    @property
    def translator(self) -> QueryTranslator:
        return self._translator

    def close(self) -> None:
        self._connection_manager.close()

    # --- Helpers ---

    def _metadata(self, model: Any) -> ModelMetadata:
        if self._registry is not None:
            metadata = self._registry.resolve(model)
        elif isinstance(model, ModelMetadata):
            metadata = model
        else:
            metadata = getattr(model, "__model__", None)
            if metadata is None:
                raise ModelNotFoundError(model if isinstance(model, str) else repr(model))
        if metadata.embedded or not metadata.collection:
            raise ValidationError(
                f"{metadata.name} is an embedded model and is persisted through its parent"
            )
        return metadata

    def _call(self, operation: str, collection: str, *args: Any) -> Any:
        """Invoke a driver operation, wrapping driver failures in StorageError."""
        driver = self._connection_manager.driver
        logger.debug("%s %s %r", operation, collection, args)
        try:
            return getattr(driver, operation)(collection, *args)
        except DocQueryError:
            raise
        except Exception as e:
            logger.debug("%s on %s failed: %s", operation, collection, e)
            raise StorageError(operation, collection, e) from e

    @staticmethod
    def _require_saved(resource: Resource, action: str) -> ObjectId:
        if resource.is_new or resource.key is None:
            raise ValidationError(f"cannot {action} {type(resource).__name__}: it has not been created")
        return resource.key

    # --- Create / read / update / delete ---

    def query(self, model: Any) -> Query:
        """Start an empty Query for *model*."""
        return Query(self._metadata(model))

    def create(self, resource: Resource) -> ObjectId:
        """Insert a new resource, embedded state inline, and return its identifier.

        Raises:
            ValidationError: If the resource was already created or a value
                cannot be stored.
            StorageError: If the driver fails.
        """
        if not resource.is_new:
            raise ValidationError(f"{type(resource).__name__} {resource.key!s} was already created")
        metadata = self._metadata(type(resource))
        document = resource.to_document(self._codecs)
        key = to_identifier(self._call("insert", metadata.collection, document))
        resource.mark_saved(key)
        logger.debug("Created %s %s", metadata.name, key)
        return key

    def read(self, model: Any, query: Query | None = None, **criteria: Any) -> list[Any]:
        """Return all resources of *model* matching *query* and *criteria*."""
        metadata = self._metadata(model)
        query = query or Query(metadata)
        if query.model is not metadata:
            raise TranslationError(f"Query for {query.model.name} used to read {metadata.name}")
        if criteria:
            query = query.where(**criteria)
        query = self._resolve_links(query)
        if query.limit == 0:
            return []

        storage = self._translator.translate(query)
        documents = self._call(
            "find", metadata.collection, storage.selector, storage.sort, storage.limit, storage.offset
        )
        return [metadata.resource_class.load(document, self._codecs) for document in documents]

    def first(self, model: Any, query: Query | None = None, **criteria: Any) -> Any | None:
        metadata = self._metadata(model)
        query = (query or Query(metadata)).where(**criteria)
        found = self.read(metadata, query.paginate(limit=1, offset=query.offset))
        return found[0] if found else None

    def get(self, model: Any, key: Any) -> Any:
        """Fetch one resource by identifier.

        Raises:
            ValidationError: If *key* is not a valid identifier.
            NotFoundError: If no stored document has this identifier.
        """
        metadata = self._metadata(model)
        key = to_identifier(key)
        key_prop = self._key_property(metadata)
        found = self.first(metadata, Query(metadata).where(Condition(key_prop, Operator.EQ, key)))
        if found is None:
            raise NotFoundError(metadata.collection or metadata.name, key)
        return found

    def reload(self, resource: Resource) -> Resource:
        """Discard local changes and re-read the stored document.

        Raises:
            NotFoundError: If the document no longer exists.
        """
        key = self._require_saved(resource, "reload")
        fresh = self.get(type(resource), key)
        resource.populate(fresh.to_document(self._codecs), self._codecs)
        return resource

    def update(self, resource: Resource, attributes: dict[str, Any] | None = None) -> bool:
        """Assign *attributes*, then write every dirty field with ``$set``.

        Returns False when nothing changed.

        Raises:
            ValidationError: If the resource was never created or a value
                cannot be stored.
            NotFoundError: If the stored document no longer exists.
        """
        key = self._require_saved(resource, "update")
        metadata = self._metadata(type(resource))
        for name, value in (attributes or {}).items():
            if not metadata.has_property(name) and metadata.get_embedment(name) is None:
                raise ValidationError(f"unknown attribute for {metadata.name}", name)
            setattr(resource, name, value)

        changes = resource.dirty_document(self._codecs)
        changes.pop("_id", None)
        if not changes:
            return False
        matched = self._call("update", metadata.collection, {"_id": key}, {"$set": changes})
        if not matched:
            raise NotFoundError(metadata.collection or metadata.name, key)
        resource.mark_saved()
        return True

    def save(self, resource: Resource) -> ObjectId:
        """Create a new resource or update a loaded one."""
        if resource.is_new:
            return self.create(resource)
        self.update(resource)
        return self._require_saved(resource, "save")

    def delete(self, resource: Resource) -> bool:
        """Remove a resource's document; embedded resources go with it.

        Returns False if the resource was never created or was already gone.
        """
        if resource.is_new or resource.key is None:
            return False
        metadata = self._metadata(type(resource))
        removed = self._call("remove", metadata.collection, {"_id": resource.key})
        resource.mark_destroyed()
        return bool(removed)

    def drop(self, model: Any) -> None:
        """Drop the whole collection of *model*."""
        metadata = self._metadata(model)
        self._call("drop_collection", metadata.collection)

    # --- Associations ---

    def _association(self, metadata: ModelMetadata, name: str, kind: str) -> AssociationDescriptor:
        association = metadata.get_association(name)
        if association is None or association.kind != kind:
            raise ModelDefinitionError(f"{metadata.name} has no {kind} association '{name}'")
        return association

    def _target(self, association: AssociationDescriptor) -> ModelMetadata:
        return self._metadata(association.target)

    @staticmethod
    def _key_property(metadata: ModelMetadata) -> PropertyDescriptor:
        key_prop = metadata.key
        if key_prop is None:
            raise ModelDefinitionError(f"{metadata.name} has no key property")
        return key_prop

    @staticmethod
    def _foreign_key(metadata: ModelMetadata, association: AssociationDescriptor) -> PropertyDescriptor:
        fk = metadata.get_property(association.foreign_key)
        if fk is None or fk.logical_type is not LogicalType.REFERENCE:
            raise ModelDefinitionError(
                f"{metadata.name}.{association.foreign_key} must be a reference property"
            )
        return fk

    def reference_to(self, fk: PropertyDescriptor, key: Any) -> Any:
        """The Reference value *fk* holds when pointing at *key*."""
        return self._codecs.typecast(fk, key)

    def _resolve_links(self, query: Query) -> Query:
        """Turn link directives into ``in`` conditions on foreign keys."""
        if not query.links:
            return query
        conditions = list(query.conditions)
        for link in query.links:
            association = self._association(query.model, link.association, "belongs_to")
            target = self._target(association)
            fk = self._foreign_key(query.model, association)
            target_query = Query(target).where(*link.conditions, **link.criteria)
            keys = [resource.key for resource in self.read(target, target_query)]
            conditions.append(
                Condition(fk, Operator.IN, [self.reference_to(fk, key) for key in keys])
            )
        return replace(query, conditions=tuple(conditions), links=())

    def parent(self, resource: Resource, name: str) -> Any | None:
        """Resolve a belongs_to association; None if unset or the target is gone."""
        metadata = self._metadata(type(resource))
        association = self._association(metadata, name, "belongs_to")
        reference = getattr(resource, association.foreign_key)
        if reference is None:
            return None
        target = self._target(association)
        key_prop = self._key_property(target)
        return self.first(target, Query(target).where(Condition(key_prop, Operator.EQ, reference.target_id)))

    def set_parent(self, resource: Resource, name: str, target: Resource | None) -> None:
        """Point a belongs_to association at *target* (not saved until ``save``)."""
        metadata = self._metadata(type(resource))
        association = self._association(metadata, name, "belongs_to")
        if target is None:
            setattr(resource, association.foreign_key, None)
            return
        if target.key is None:
            raise ValidationError(f"{type(target).__name__} must be created before it is referenced", name)
        setattr(resource, association.foreign_key, target.key)

    def children(self, resource: Resource, name: str) -> Any:
        """Return the has_many child collection of *resource*."""
        from doc_query.repository.associations import ChildCollection

        metadata = self._metadata(type(resource))
        association = self._association(metadata, name, "has_many")
        target = self._target(association)
        return ChildCollection(self, resource, target, self._foreign_key(target, association))
