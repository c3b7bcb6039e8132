"""Embedment relationships.

An embedment declares that a parent property holds one (``ONE``) or many
(``MANY``) embedded resources. Relationships own the rules for assigning,
dumping and hydrating the nested documents. They never issue storage
calls: embedded state travels inside the parent's document when the
parent is saved.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from doc_query.core.codecs import CodecRegistry, default_codecs
from doc_query.core.enums import Cardinality
from doc_query.core.exceptions import EmbedmentCardinalityError, ValidationError
from doc_query.core.types import new_identifier
from doc_query.query.condition import Condition, parse_criteria
from doc_query.query.matcher import matches
from doc_query.query.translator import build_selector

if TYPE_CHECKING:
    from doc_query.mapping.descriptors import EmbedmentDescriptor, ModelMetadata


class Relationship:
    """Common behaviour of both embedment cardinalities."""

    cardinality: Cardinality

    def __init__(self, descriptor: EmbedmentDescriptor) -> None:
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def model(self) -> ModelMetadata:
        return self.descriptor.model

    def _cardinality_error(self, detail: str) -> EmbedmentCardinalityError:
        return EmbedmentCardinalityError(self.name, self.cardinality.value, detail)

    def coerce(self, value: Any) -> Any:
        """Turn an embedded resource or a raw mapping into an embedded resource."""
        resource_class = self.model.resource_class
        if isinstance(value, resource_class):
            return value
        if isinstance(value, Mapping):
            return resource_class(**value)
        raise ValidationError(
            f"expected {resource_class.__name__} or a mapping, got {type(value).__name__}",
            self.name,
        )

    def attach(self, parent: Any, child: Any) -> None:
        owner = child._parent
        if owner is not None and owner is not parent:
            raise ValidationError(
                f"{type(child).__name__} is already embedded in another resource", self.name
            )
        object.__setattr__(child, "_parent", parent)
        object.__setattr__(child, "_parent_embedment", self.name)
        key = self.model.key
        if key is not None and child._values.get(key.name) is None:
            child._values[key.name] = new_identifier()

    @staticmethod
    def detach(child: Any) -> None:
        object.__setattr__(child, "_parent", None)
        object.__setattr__(child, "_parent_embedment", None)

    def _hydrate(self, parent: Any, raw: Any, codecs: CodecRegistry) -> Any:
        if not isinstance(raw, Mapping):
            raise ValidationError(
                f"stored embedded value is not a document: {type(raw).__name__}", self.name
            )
        child = self.model.resource_class.load(raw, codecs)
        object.__setattr__(child, "_parent", parent)
        object.__setattr__(child, "_parent_embedment", self.name)
        return child

    # Subclass interface

    def initial_value(self, parent: Any) -> Any:
        raise NotImplementedError

    def get(self, parent: Any) -> Any:
        return parent._values[self.name]

    def set(self, parent: Any, value: Any) -> None:
        raise NotImplementedError

    def dump(self, parent: Any, codecs: CodecRegistry) -> Any:
        raise NotImplementedError

    def load(self, parent: Any, raw: Any, codecs: CodecRegistry) -> None:
        raise NotImplementedError

    def mark_clean(self, parent: Any) -> None:
        raise NotImplementedError


class OneToOne(Relationship):
    """A single embedded resource stored as a nested document."""

    cardinality = Cardinality.ONE

    def initial_value(self, parent: Any) -> None:
        return None

    def set(self, parent: Any, value: Any) -> None:
        if isinstance(value, (list, tuple, set, EmbeddedCollection)):
            raise self._cardinality_error("cannot assign a collection to a one-to-one embedment")
        child = None if value is None else self.coerce(value)
        previous = parent._values.get(self.name)
        if previous is not None and previous is not child:
            self.detach(previous)
        if child is not None:
            self.attach(parent, child)
        parent._values[self.name] = child
        parent._mark_dirty(self.name)

    def dump(self, parent: Any, codecs: CodecRegistry) -> dict[str, Any] | None:
        child = parent._values.get(self.name)
        if child is None:
            return None
        return child.to_document(codecs)

    def load(self, parent: Any, raw: Any, codecs: CodecRegistry) -> None:
        if raw is None:
            parent._values[self.name] = None
            return
        if isinstance(raw, list):
            raise self._cardinality_error("stored value is an array")
        parent._values[self.name] = self._hydrate(parent, raw, codecs)

    def mark_clean(self, parent: Any) -> None:
        child = parent._values.get(self.name)
        if child is not None:
            child.mark_clean()


class OneToMany(Relationship):
    """An ordered sequence of embedded resources stored as an array of documents."""

    cardinality = Cardinality.MANY

    def initial_value(self, parent: Any) -> EmbeddedCollection:
        return EmbeddedCollection(parent, self)

    def set(self, parent: Any, value: Any) -> None:
        collection: EmbeddedCollection = parent._values[self.name]
        if value is None:
            collection.clear()
            return
        if isinstance(value, (Mapping, str, bytes)) or isinstance(value, self.model.resource_class):
            raise self._cardinality_error("cannot assign a single value to a one-to-many embedment")
        if not isinstance(value, Iterable):
            raise ValidationError(f"expected an iterable, got {type(value).__name__}", self.name)
        collection.replace(value)

    def dump(self, parent: Any, codecs: CodecRegistry) -> list[dict[str, Any]]:
        return [child.to_document(codecs) for child in parent._values[self.name]]

    def load(self, parent: Any, raw: Any, codecs: CodecRegistry) -> None:
        collection: EmbeddedCollection = parent._values[self.name]
        if raw is None:
            collection._items = []
            return
        if isinstance(raw, Mapping):
            raise self._cardinality_error("stored value is a single document")
        if not isinstance(raw, list):
            raise ValidationError(f"stored value is not an array: {type(raw).__name__}", self.name)
        collection._items = [self._hydrate(parent, item, codecs) for item in raw]

    def mark_clean(self, parent: Any) -> None:
        for child in parent._values[self.name]:
            child.mark_clean()


class EmbeddedCollection:
    """Collection view over a parent's one-to-many embedment.

    Every mutation marks the parent's embedment dirty; the whole sequence
    is written when the parent is saved.
    """

    def __init__(self, parent: Any, relationship: OneToMany) -> None:
        self._parent = parent
        self._relationship = relationship
        self._items: list[Any] = []

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> Any:
        return self._items[index]

    def __contains__(self, item: object) -> bool:
        return any(existing is item or existing == item for existing in self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, EmbeddedCollection):
            return self._items == other._items
        if isinstance(other, (list, tuple)):
            return self._items == list(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"EmbeddedCollection({self._items!r})"

    def _changed(self) -> None:
        self._parent._mark_dirty(self._relationship.name)

    def _check_unique(self, children: list[Any]) -> None:
        key = self._relationship.model.key
        if key is None:
            return
        seen: set[Any] = set()
        for child in children:
            value = child._values.get(key.name)
            if value is None:
                continue
            if value in seen:
                raise ValidationError(
                    f"duplicate embedded identity {value!s}", self._relationship.name
                )
            seen.add(value)

    def append(self, item: Any) -> Any:
        """Embed *item* (a resource or mapping) at the end of the sequence."""
        child = self._relationship.coerce(item)
        if any(existing is child for existing in self._items):
            return child
        self._relationship.attach(self._parent, child)
        try:
            self._check_unique([*self._items, child])
        except ValidationError:
            self._relationship.detach(child)
            raise
        self._items.append(child)
        self._changed()
        return child

    def new(self, **attributes: Any) -> Any:
        return self.append(attributes)

    def extend(self, items: Iterable[Any]) -> None:
        for item in items:
            self.append(item)

    def remove(self, item: Any) -> None:
        """Remove *item*; removal is purely structural.

        Raises:
            ValueError: If *item* is not embedded here.
        """
        for index, existing in enumerate(self._items):
            if existing is item:
                break
        else:
            for index, existing in enumerate(self._items):
                if existing == item:
                    break
            else:
                raise ValueError(f"{item!r} is not in this embedment")
        removed = self._items.pop(index)
        self._relationship.detach(removed)
        self._changed()

    def clear(self) -> None:
        for child in self._items:
            self._relationship.detach(child)
        self._items = []
        self._changed()

    def replace(self, items: Iterable[Any]) -> None:
        """Replace the whole sequence; entries not in *items* are discarded."""
        children = [self._relationship.coerce(item) for item in items]
        self._check_unique(children)
        kept = {id(child) for child in children}
        for child in self._items:
            if id(child) not in kept:
                self._relationship.detach(child)
        for child in children:
            self._relationship.attach(self._parent, child)
        self._items = children
        self._changed()

    def all(self, *conditions: Condition, **criteria: Any) -> list[Any]:
        """Filter the embedded resources in memory.

        Conditions are rendered exactly as for a storage query and evaluated
        against each embedded document.
        """
        model = self._relationship.model
        combined = list(conditions) + parse_criteria(model, criteria)
        if not combined:
            return list(self._items)
        selector = build_selector(model, combined, default_codecs)
        return [
            child for child in self._items if matches(child.to_document(default_codecs), selector)
        ]

    def first(self, *conditions: Condition, **criteria: Any) -> Any | None:
        found = self.all(*conditions, **criteria)
        return found[0] if found else None


_RELATIONSHIPS: dict[Cardinality, type[Relationship]] = {
    Cardinality.ONE: OneToOne,
    Cardinality.MANY: OneToMany,
}


@lru_cache(maxsize=None)
def relationship_for(descriptor: EmbedmentDescriptor) -> Relationship:
    """Return the relationship object for an embedment descriptor."""
    return _RELATIONSHIPS[descriptor.cardinality](descriptor)
