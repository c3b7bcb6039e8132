"""Resource base classes.

Both resource kinds share attribute storage, typecasting, dirty tracking
and document marshalling (the ``PersistableAttributes`` capability).
Only top-level resources carry a storage identity (``StorageIdentity``):
an EmbeddedResource is persisted as part of its parent's document and
never talks to storage itself.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

from doc_query.core.codecs import CodecRegistry, default_codecs
from doc_query.core.exceptions import ModelDefinitionError, ValidationError
from doc_query.mapping.embedment import EmbeddedCollection, relationship_for

if TYPE_CHECKING:
    from bson import ObjectId

    from doc_query.mapping.descriptors import ModelMetadata


@runtime_checkable
class PersistableAttributes(Protocol):
    """Typed attributes that can be marshalled to a document."""

    def attributes(self) -> dict[str, Any]: ...

    def to_document(self, codecs: CodecRegistry | None = None) -> dict[str, Any]: ...

    @property
    def dirty_attributes(self) -> set[str]: ...


@runtime_checkable
class StorageIdentity(Protocol):
    """An identity in a storage collection."""

    @property
    def key(self) -> ObjectId | None: ...

    @property
    def is_new(self) -> bool: ...


class _ModelInstance:
    """Attribute container driven by the class's ``__model__`` metadata."""

    __model__: ClassVar[ModelMetadata]

    def __init__(self, **attributes: Any) -> None:
        metadata = self._metadata()
        self._init_state()
        for prop in metadata.properties:
            if prop.default is not None:
                self._values[prop.name] = default_codecs.typecast(prop, copy.deepcopy(prop.default))
        for name, value in attributes.items():
            if not metadata.has_property(name) and metadata.get_embedment(name) is None:
                raise ValidationError(f"unknown attribute for {metadata.name}", name)
            setattr(self, name, value)

    def _init_state(self) -> None:
        metadata = self._metadata()
        object.__setattr__(self, "_values", {prop.name: None for prop in metadata.properties})
        object.__setattr__(self, "_original", {})
        object.__setattr__(self, "_dirty", set())
        for embedment in metadata.embedments:
            self._values[embedment.name] = relationship_for(embedment).initial_value(self)

    @classmethod
    def _metadata(cls) -> ModelMetadata:
        metadata = getattr(cls, "__model__", None)
        if metadata is None:
            raise ModelDefinitionError(f"{cls.__name__} has no model definition; build() it first")
        return metadata

    @classmethod
    def load(cls, document: Mapping[str, Any], codecs: CodecRegistry | None = None) -> Any:
        """Hydrate an instance from a stored document without marking it dirty.

        Fields the model does not declare are ignored.
        """
        instance = cls.__new__(cls)
        instance.populate(document, codecs)
        return instance

    def populate(self, document: Mapping[str, Any], codecs: CodecRegistry | None = None) -> None:
        """Replace all state with the contents of a stored document."""
        codecs = codecs or default_codecs
        metadata = self._metadata()
        self._init_state()
        for prop in metadata.properties:
            self._values[prop.name] = codecs.load_property(prop, document.get(prop.field))
        for embedment in metadata.embedments:
            relationship_for(embedment).load(self, document.get(embedment.field), codecs)
        self._loaded()

    def _loaded(self) -> None:
        self.mark_clean()

    # --- Attribute access ---

    def __getattr__(self, name: str) -> Any:
        if not name.startswith("_"):
            values = self.__dict__.get("_values")
            if values is not None and name in values:
                return values[name]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
            return
        metadata = self._metadata()
        prop = metadata.get_property(name)
        if prop is not None:
            self._values[name] = default_codecs.typecast(prop, value)
            self._mark_dirty(name)
            return
        embedment = metadata.get_embedment(name)
        if embedment is not None:
            relationship_for(embedment).set(self, value)
            return
        object.__setattr__(self, name, value)

    def _mark_dirty(self, name: str) -> None:
        self._dirty.add(name)

    # --- PersistableAttributes ---

    def attributes(self) -> dict[str, Any]:
        """Property and embedment values keyed by name."""
        result = dict(self._values)
        for embedment in self._metadata().embedments:
            value = result[embedment.name]
            if isinstance(value, EmbeddedCollection):
                result[embedment.name] = list(value)
        return result

    @property
    def dirty_attributes(self) -> set[str]:
        """Names changed since the last load or save.

        In-place mutation of an EmbeddedArray or EmbeddedMap value is
        detected by comparing against the snapshot taken at load time. An
        embedment is dirty when any of its embedded resources is, at any
        depth.
        """
        metadata = self._metadata()
        dirty = set(self._dirty)
        for prop in metadata.properties:
            if self._values.get(prop.name) != self._original.get(prop.name):
                dirty.add(prop.name)
        for embedment in metadata.embedments:
            value = self._values.get(embedment.name)
            children = value if isinstance(value, EmbeddedCollection) else [value]
            if any(child is not None and child.is_dirty for child in children):
                dirty.add(embedment.name)
        return dirty

    @property
    def is_dirty(self) -> bool:
        return bool(self.dirty_attributes)

    def mark_clean(self) -> None:
        self._dirty.clear()
        metadata = self._metadata()
        self._original.clear()
        self._original.update(
            {prop.name: copy.deepcopy(self._values.get(prop.name)) for prop in metadata.properties}
        )
        for embedment in metadata.embedments:
            relationship_for(embedment).mark_clean(self)

    def to_document(self, codecs: CodecRegistry | None = None) -> dict[str, Any]:
        """Dump every property and embedment into a storage document.

        Raises:
            ValidationError: If any value cannot be stored.
        """
        codecs = codecs or default_codecs
        return self._dump(codecs, None)

    def dirty_document(self, codecs: CodecRegistry | None = None) -> dict[str, Any]:
        """Dump only the dirty properties and embedments."""
        codecs = codecs or default_codecs
        return self._dump(codecs, self.dirty_attributes)

    def _dump(self, codecs: CodecRegistry, only: set[str] | None) -> dict[str, Any]:
        metadata = self._metadata()
        document: dict[str, Any] = {}
        for prop in metadata.properties:
            if only is not None and prop.name not in only:
                continue
            value = self._values.get(prop.name)
            if prop.key and value is None:
                continue
            document[prop.field] = codecs.dump_property(prop, value)
        for embedment in metadata.embedments:
            if only is not None and embedment.name not in only:
                continue
            document[embedment.field] = relationship_for(embedment).dump(self, codecs)
        return document

    def __repr__(self) -> str:
        attrs = ", ".join(f"{name}={value!r}" for name, value in self.attributes().items())
        return f"{type(self).__name__}({attrs})"


class Resource(_ModelInstance):
    """A top-level resource stored in its model's collection."""

    def __init__(self, **attributes: Any) -> None:
        object.__setattr__(self, "_new", True)
        object.__setattr__(self, "_destroyed", False)
        super().__init__(**attributes)

    def _loaded(self) -> None:
        object.__setattr__(self, "_new", False)
        object.__setattr__(self, "_destroyed", False)
        super()._loaded()

    @property
    def key(self) -> ObjectId | None:
        key = self._metadata().key
        return None if key is None else self._values.get(key.name)

    @property
    def collection(self) -> str | None:
        return self._metadata().collection

    @property
    def is_new(self) -> bool:
        return self._new

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    def mark_saved(self, key: ObjectId | None = None) -> None:
        """Record a successful create/update; called by the engine."""
        key_prop = self._metadata().key
        if key is not None and key_prop is not None:
            self._values[key_prop.name] = key
        object.__setattr__(self, "_new", False)
        self.mark_clean()

    def mark_destroyed(self) -> None:
        object.__setattr__(self, "_destroyed", True)
        object.__setattr__(self, "_new", True)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Resource) or type(other) is not type(self):
            return NotImplemented
        if self.key is None or other.key is None:
            return self is other
        return bool(self.key == other.key)

    def __hash__(self) -> int:
        if self.key is None:
            return id(self)
        return hash((type(self).__name__, self.key))


class EmbeddedResource(_ModelInstance):
    """A resource persisted inside its parent's document.

    Attribute changes mark the owning embedment of the parent dirty.
    Equality is structural.
    """

    def __init__(self, **attributes: Any) -> None:
        object.__setattr__(self, "_parent", None)
        object.__setattr__(self, "_parent_embedment", None)
        super().__init__(**attributes)

    def _init_state(self) -> None:
        if "_parent" not in self.__dict__:
            object.__setattr__(self, "_parent", None)
            object.__setattr__(self, "_parent_embedment", None)
        super()._init_state()

    @property
    def parent(self) -> _ModelInstance | None:
        return self._parent

    @property
    def key(self) -> ObjectId | None:
        key = self._metadata().key
        return None if key is None else self._values.get(key.name)

    def _mark_dirty(self, name: str) -> None:
        super()._mark_dirty(name)
        if self._parent is not None and self._parent_embedment is not None:
            self._parent._mark_dirty(self._parent_embedment)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EmbeddedResource) or type(other) is not type(self):
            return NotImplemented
        return self.attributes() == other.attributes()

    __hash__ = None  # type: ignore[assignment]
