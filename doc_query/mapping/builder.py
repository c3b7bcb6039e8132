"""Model definition DSL builder.

Provides a fluent builder that compiles a model definition into frozen
ModelMetadata and attaches it to the resource class:

    zoo_model = (
        model(Zoo)
        .key("id")
        .embedded_array("animals")
        .embeds_one("address", Address)
        .build()
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from doc_query.core.enums import Cardinality, LogicalType
from doc_query.core.exceptions import ModelDefinitionError, ValidationError
from doc_query.core.sanitizer import check_key
from doc_query.mapping.descriptors import (
    KEY_FIELD,
    AssociationDescriptor,
    EmbedmentDescriptor,
    ModelMetadata,
    PropertyDescriptor,
)
from doc_query.mapping.resource import EmbeddedResource, Resource

if TYPE_CHECKING:
    from doc_query.core.registry import ModelRegistry


def default_collection(resource_class: type) -> str:
    """Lowercase class name + ``s`` (``Heffalump`` -> ``heffalumps``)."""
    return resource_class.__name__.lower() + "s"


def _metadata_of(target: Any) -> ModelMetadata | None:
    if isinstance(target, ModelMetadata):
        return target
    return getattr(target, "__model__", None)


def model(resource_class: type, collection: str | None = None) -> ModelBuilder:
    """Entry point for defining a top-level model.

    Args:
        resource_class: A Resource subclass.
        collection: Storage collection name. Defaults to the lowercase
            class name + ``s``.
    """
    return ModelBuilder(resource_class, collection or default_collection(resource_class))


def embedded_model(resource_class: type) -> ModelBuilder:
    """Entry point for defining an embedded model (no collection of its own)."""
    return ModelBuilder(resource_class, None, embedded=True)


class ModelBuilder:
    """Fluent builder for model definitions."""

    def __init__(self, resource_class: type, collection: str | None, embedded: bool = False) -> None:
        self._resource_class = resource_class
        self._collection = collection
        self._embedded = embedded
        self._properties: list[PropertyDescriptor] = []
        self._embedments: list[tuple[str, Any, Cardinality, str | None]] = []
        self._associations: list[AssociationDescriptor] = []

    def key(self, name: str = "id") -> ModelBuilder:
        """Declare the identifier key, stored as ``_id``."""
        self._properties.append(
            PropertyDescriptor(name=name, logical_type=LogicalType.IDENTIFIER, key=True)
        )
        return self

    def property(
        self,
        name: str,
        logical_type: LogicalType = LogicalType.SCALAR,
        *,
        primitive: type | None = None,
        nullable: bool = True,
        field: str | None = None,
        default: Any = None,
        target_collection: str | None = None,
    ) -> ModelBuilder:
        """Declare a typed property."""
        self._properties.append(
            PropertyDescriptor(
                name=name,
                logical_type=logical_type,
                nullable=nullable,
                primitive=primitive,
                field=field or "",
                default=default,
                target_collection=target_collection,
            )
        )
        return self

    def identifier(self, name: str, **options: Any) -> ModelBuilder:
        return self.property(name, LogicalType.IDENTIFIER, **options)

    def reference(self, name: str, collection: str | None = None, **options: Any) -> ModelBuilder:
        return self.property(name, LogicalType.REFERENCE, target_collection=collection, **options)

    def embedded_array(self, name: str, **options: Any) -> ModelBuilder:
        return self.property(name, LogicalType.EMBEDDED_ARRAY, **options)

    def embedded_map(self, name: str, **options: Any) -> ModelBuilder:
        return self.property(name, LogicalType.EMBEDDED_MAP, **options)

    def embeds_one(self, name: str, target: Any, field: str | None = None) -> ModelBuilder:
        """Declare a one-to-one embedment of an embedded model."""
        self._embedments.append((name, target, Cardinality.ONE, field))
        return self

    def embeds_many(self, name: str, target: Any, field: str | None = None) -> ModelBuilder:
        """Declare a one-to-many embedment of an embedded model."""
        self._embedments.append((name, target, Cardinality.MANY, field))
        return self

    def belongs_to(self, name: str, target: Any, foreign_key: str | None = None) -> ModelBuilder:
        """Declare a parent association through a Reference property on this model.

        The foreign key defaults to ``<name>_id`` and is declared
        automatically if it was not declared explicitly.
        """
        self._associations.append(
            AssociationDescriptor(name, "belongs_to", target, foreign_key or f"{name}_id")
        )
        return self

    def has_many(self, name: str, target: Any, foreign_key: str) -> ModelBuilder:
        """Declare child resources holding a Reference back to this model."""
        self._associations.append(AssociationDescriptor(name, "has_many", target, foreign_key))
        return self

    def build(self, registry: ModelRegistry | None = None) -> ModelMetadata:
        """Compile and validate the definition into ModelMetadata.

        The metadata is attached to the resource class as ``__model__``
        and registered in *registry* when one is given.

        Raises:
            ModelDefinitionError: If the definition is invalid.
        """
        expected_base = EmbeddedResource if self._embedded else Resource
        if not (isinstance(self._resource_class, type) and issubclass(self._resource_class, expected_base)):
            raise ModelDefinitionError(
                f"{getattr(self._resource_class, '__name__', self._resource_class)!r} "
                f"must subclass {expected_base.__name__}"
            )

        properties = list(self._properties)
        for association in self._associations:
            if association.kind == "belongs_to" and not any(
                p.name == association.foreign_key for p in properties
            ):
                target = _metadata_of(association.target)
                properties.append(
                    PropertyDescriptor(
                        name=association.foreign_key,
                        logical_type=LogicalType.REFERENCE,
                        target_collection=target.collection if target is not None else None,
                    )
                )

        embedments = [self._build_embedment(*spec) for spec in self._embedments]
        self._validate(properties, embedments)

        metadata = ModelMetadata(
            name=self._resource_class.__name__,
            resource_class=self._resource_class,
            collection=self._collection,
            properties=tuple(properties),
            embedments=tuple(embedments),
            associations=tuple(self._associations),
            embedded=self._embedded,
        )
        self._resource_class.__model__ = metadata  # type: ignore[attr-defined]
        if registry is not None:
            registry.register(metadata)
        return metadata

    def _build_embedment(
        self, name: str, target: Any, cardinality: Cardinality, field: str | None
    ) -> EmbedmentDescriptor:
        target_metadata = _metadata_of(target)
        if target_metadata is None:
            raise ModelDefinitionError(
                f"Embedment '{name}' targets {target!r}, which has not been built"
            )
        if not target_metadata.embedded:
            raise ModelDefinitionError(
                f"Embedment '{name}' must target an embedded model, "
                f"not top-level model {target_metadata.name}"
            )
        return EmbedmentDescriptor(
            name=name, model=target_metadata, cardinality=cardinality, field=field or ""
        )

    def _validate(
        self, properties: list[PropertyDescriptor], embedments: list[EmbedmentDescriptor]
    ) -> None:
        owner = self._resource_class.__name__
        keys = [p for p in properties if p.key]
        if len(keys) > 1:
            raise ModelDefinitionError(f"{owner} declares more than one key")
        if self._embedded:
            if self._associations:
                raise ModelDefinitionError(f"Embedded model {owner} cannot declare associations")
        else:
            if not keys:
                raise ModelDefinitionError(f"{owner} must declare a key via .key()")
            if not self._collection:
                raise ModelDefinitionError(f"{owner} must have a collection name")

        names: set[str] = set()
        fields: set[str] = set()
        for name, field_name in [(p.name, p.field) for p in properties] + [
            (e.name, e.field) for e in embedments
        ]:
            if name.startswith("_") or not name.isidentifier():
                raise ModelDefinitionError(f"{owner}: invalid attribute name '{name}'")
            if hasattr(self._resource_class, name):
                raise ModelDefinitionError(
                    f"{owner}: attribute '{name}' collides with a {owner} class attribute"
                )
            if name in names:
                raise ModelDefinitionError(f"{owner}: duplicate attribute '{name}'")
            if field_name in fields:
                raise ModelDefinitionError(f"{owner}: duplicate storage field '{field_name}'")
            if field_name != KEY_FIELD:
                try:
                    check_key(field_name)
                except ValidationError as e:
                    raise ModelDefinitionError(f"{owner}: {e}") from e
            names.add(name)
            fields.add(field_name)

        for prop in properties:
            if prop.key and prop.logical_type is not LogicalType.IDENTIFIER:
                raise ModelDefinitionError(f"{owner}: key '{prop.name}' must be an identifier")

        for association in self._associations:
            if association.kind == "belongs_to":
                fk = next(p for p in properties if p.name == association.foreign_key)
                if fk.logical_type is not LogicalType.REFERENCE:
                    raise ModelDefinitionError(
                        f"{owner}: foreign key '{fk.name}' must be a reference property"
                    )
            elif association.kind != "has_many":
                raise ModelDefinitionError(f"{owner}: unknown association kind {association.kind}")
            if association.name in names:
                raise ModelDefinitionError(
                    f"{owner}: association '{association.name}' collides with an attribute"
                )
