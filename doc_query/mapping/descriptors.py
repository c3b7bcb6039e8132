"""Model metadata descriptors.

Frozen dataclasses built once by the model builder and attached to
resource classes. Lookups go through name indexes computed at build time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from doc_query.core.enums import Cardinality, LogicalType
from doc_query.core.exceptions import TranslationError

KEY_FIELD = "_id"


@dataclass(frozen=True)
class PropertyDescriptor:
    """A typed property of a model."""

    name: str
    logical_type: LogicalType = LogicalType.SCALAR
    nullable: bool = True
    primitive: type | None = None
    field: str = ""
    key: bool = False
    default: Any = None
    target_collection: str | None = None

    def __post_init__(self) -> None:
        if not self.field:
            object.__setattr__(self, "field", KEY_FIELD if self.key else self.name)

    @property
    def is_collection(self) -> bool:
        return self.logical_type in (LogicalType.EMBEDDED_ARRAY, LogicalType.EMBEDDED_MAP)


@dataclass(frozen=True)
class EmbedmentDescriptor:
    """A parent property holding one or many embedded resources."""

    name: str
    model: ModelMetadata
    cardinality: Cardinality
    field: str = ""

    def __post_init__(self) -> None:
        if not self.field:
            object.__setattr__(self, "field", self.name)

    @property
    def query_property(self) -> PropertyDescriptor:
        """Descriptor used when conditions target the embedded document(s) as a whole."""
        logical_type = (
            LogicalType.EMBEDDED_ARRAY
            if self.cardinality is Cardinality.MANY
            else LogicalType.EMBEDDED_MAP
        )
        return PropertyDescriptor(name=self.name, logical_type=logical_type, field=self.field)


@dataclass(frozen=True)
class AssociationDescriptor:
    """A foreign-key association between two top-level models.

    ``belongs_to``: the owner holds a Reference property ``foreign_key``.
    ``has_many``: the target holds a Reference property ``foreign_key``.
    """

    name: str
    kind: str  # "belongs_to" | "has_many"
    target: Any  # resource class, ModelMetadata, or registered model name
    foreign_key: str


@dataclass(frozen=True)
class ModelMetadata:
    """Compiled, validated model definition."""

    name: str
    resource_class: type
    collection: str | None
    properties: tuple[PropertyDescriptor, ...] = ()
    embedments: tuple[EmbedmentDescriptor, ...] = ()
    associations: tuple[AssociationDescriptor, ...] = ()
    embedded: bool = False
    _property_index: dict[str, PropertyDescriptor] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _embedment_index: dict[str, EmbedmentDescriptor] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _association_index: dict[str, AssociationDescriptor] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self._property_index.update({p.name: p for p in self.properties})
        self._embedment_index.update({e.name: e for e in self.embedments})
        self._association_index.update({a.name: a for a in self.associations})

    def __hash__(self) -> int:
        return hash((self.name, self.resource_class))

    @property
    def key(self) -> PropertyDescriptor | None:
        for prop in self.properties:
            if prop.key:
                return prop
        return None

    def has_property(self, name: str) -> bool:
        return name in self._property_index

    def get_property(self, name: str) -> PropertyDescriptor | None:
        return self._property_index.get(name)

    def get_embedment(self, name: str) -> EmbedmentDescriptor | None:
        return self._embedment_index.get(name)

    def get_association(self, name: str) -> AssociationDescriptor | None:
        return self._association_index.get(name)

    def query_property(self, name: str) -> PropertyDescriptor:
        """Resolve a name used in query criteria to a property descriptor.

        Raises:
            TranslationError: If the model has no such property or embedment.
        """
        prop = self._property_index.get(name)
        if prop is not None:
            return prop
        embedment = self._embedment_index.get(name)
        if embedment is not None:
            return embedment.query_property
        raise TranslationError(f"Model {self.name} has no property '{name}'")

    def owns_field(self, descriptor: PropertyDescriptor) -> bool:
        prop = self._property_index.get(descriptor.name)
        if prop is not None:
            return prop == descriptor
        embedment = self._embedment_index.get(descriptor.name)
        return embedment is not None and embedment.query_property == descriptor
