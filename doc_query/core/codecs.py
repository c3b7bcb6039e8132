"""TypeCodec registry.

Each logical type has a codec with three operations:

* ``dump(value)``     in-memory value -> storage representation
* ``load(raw)``       storage representation -> in-memory value
* ``typecast(value)`` assigned value -> normalized in-memory value

Codecs are selected through a dispatch table keyed by LogicalType. Inside
EmbeddedArray and EmbeddedMap values every element is dumped and loaded
by its own kind, so nested Identifiers, References and embedded
resources keep their types instead of degrading to raw scalars.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

from bson import DBRef, ObjectId

from doc_query.core.enums import LogicalType
from doc_query.core.exceptions import RegistryFrozenError, ValidationError
from doc_query.core.sanitizer import check_key
from doc_query.core.types import Reference, to_identifier

if TYPE_CHECKING:
    from doc_query.mapping.descriptors import PropertyDescriptor

_REFERENCE_KEYS = frozenset({"target_id", "target_collection"})


class TypeCodec(Protocol):
    """Codec protocol implemented by every logical type."""

    def dump(self, value: Any) -> Any:
        """Convert an in-memory value to its storage representation."""
        ...

    def load(self, raw: Any) -> Any:
        """Convert a storage representation back to an in-memory value."""
        ...

    def typecast(self, value: Any) -> Any:
        """Normalize a value assigned to a property."""
        ...


def _is_reference_document(raw: Any) -> bool:
    return (
        isinstance(raw, Mapping)
        and "target_id" in raw
        and set(raw.keys()) <= _REFERENCE_KEYS
        and isinstance(raw["target_id"], ObjectId)
    )


class ScalarCodec:
    """Primitive values are stored verbatim."""

    def dump(self, value: Any) -> Any:
        if isinstance(value, (Mapping, list, tuple, set)):
            raise ValidationError(f"{type(value).__name__} is not a scalar value")
        return value

    def load(self, raw: Any) -> Any:
        return raw

    def typecast(self, value: Any) -> Any:
        return value


class IdentifierCodec:
    """ObjectId, 24-hex string and 12-byte forms all normalize to ObjectId."""

    def dump(self, value: Any) -> ObjectId:
        return to_identifier(value)

    def load(self, raw: Any) -> ObjectId:
        return to_identifier(raw)

    def typecast(self, value: Any) -> ObjectId:
        return to_identifier(value)


class ReferenceCodec:
    """Stored as ``{"target_id": ObjectId, "target_collection": str}``."""

    def dump(self, value: Any) -> dict[str, Any]:
        ref = self.typecast(value)
        document: dict[str, Any] = {"target_id": ref.target_id}
        if ref.target_collection is not None:
            document["target_collection"] = ref.target_collection
        return document

    def load(self, raw: Any) -> Reference:
        if isinstance(raw, DBRef):
            return Reference(raw.id, raw.collection)
        if isinstance(raw, Mapping):
            if "target_id" not in raw:
                raise ValidationError("reference document has no target_id")
            return Reference(raw["target_id"], raw.get("target_collection"))
        # Bare identifiers written by other clients.
        return Reference(to_identifier(raw))

    def typecast(self, value: Any, collection: str | None = None) -> Reference:
        if isinstance(value, Reference):
            ref = value
        elif isinstance(value, DBRef):
            ref = Reference(value.id, value.collection)
        elif isinstance(value, Mapping):
            ref = self.load(value)
        else:
            return Reference(to_identifier(value), collection)
        if ref.target_collection is None and collection is not None:
            return Reference(ref.target_id, collection)
        return ref


class EmbeddedArrayCodec:
    """Ordered sequences; elements are marshalled recursively."""

    def __init__(self, registry: CodecRegistry) -> None:
        self._registry = registry

    def dump(self, value: Any) -> list[Any]:
        if not isinstance(value, (list, tuple)):
            raise ValidationError(f"expected a list, got {type(value).__name__}")
        return [self._registry.dump_value(item) for item in value]

    def load(self, raw: Any) -> list[Any]:
        if not isinstance(raw, list):
            raise ValidationError(f"stored value is not an array: {type(raw).__name__}")
        return [self._registry.load_value(item) for item in raw]

    def typecast(self, value: Any) -> list[Any]:
        if isinstance(value, tuple):
            return list(value)
        return value


class EmbeddedMapCodec:
    """String-keyed mappings; values are marshalled recursively."""

    def __init__(self, registry: CodecRegistry) -> None:
        self._registry = registry

    def dump(self, value: Any) -> dict[str, Any]:
        if not isinstance(value, Mapping):
            raise ValidationError(f"expected a mapping, got {type(value).__name__}")
        return {check_key(key): self._registry.dump_value(item) for key, item in value.items()}

    def load(self, raw: Any) -> dict[str, Any]:
        if not isinstance(raw, Mapping):
            raise ValidationError(f"stored value is not a document: {type(raw).__name__}")
        return {key: self._registry.load_value(item) for key, item in raw.items()}

    def typecast(self, value: Any) -> Any:
        if isinstance(value, Mapping) and not isinstance(value, dict):
            return dict(value)
        return value


def _check_primitive(descriptor: PropertyDescriptor, value: Any) -> None:
    primitive = descriptor.primitive
    if primitive is None:
        return
    if isinstance(value, bool) and primitive is not bool:
        ok = False
    elif primitive is float:
        ok = isinstance(value, (int, float))
    elif primitive is datetime:
        ok = isinstance(value, datetime)
    else:
        ok = isinstance(value, primitive)
    if not ok:
        raise ValidationError(
            f"expected {primitive.__name__}, got {type(value).__name__}",
            descriptor.name,
        )


def _check_no_resources(descriptor: PropertyDescriptor, value: Any) -> None:
    """Embedded resources belong in embedments, not in array or map properties."""
    if hasattr(value, "to_document"):
        raise ValidationError(
            f"{type(value).__name__} cannot be stored in a {descriptor.logical_type.value} "
            "property; declare it with embeds_one or embeds_many",
            descriptor.name,
        )
    if isinstance(value, Mapping):
        for item in value.values():
            _check_no_resources(descriptor, item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_no_resources(descriptor, item)

class CodecRegistry:
    """Dispatch table from LogicalType to codec.

    The registry is mutable only until ``freeze()`` is called; creating an
    Engine freezes the registry it is given.
    """

    __slots__ = ("_codecs", "_frozen")

    def __init__(self) -> None:
        self._codecs: dict[LogicalType, Any] = {
            LogicalType.SCALAR: ScalarCodec(),
            LogicalType.IDENTIFIER: IdentifierCodec(),
            LogicalType.REFERENCE: ReferenceCodec(),
            LogicalType.EMBEDDED_ARRAY: EmbeddedArrayCodec(self),
            LogicalType.EMBEDDED_MAP: EmbeddedMapCodec(self),
        }
        self._frozen = False

    def register(self, logical_type: LogicalType, codec: TypeCodec) -> None:
        """Replace the codec for a logical type.

        Raises:
            RegistryFrozenError: If the registry has been frozen.
        """
        if self._frozen:
            raise RegistryFrozenError("CodecRegistry")
        self._codecs[logical_type] = codec

    def freeze(self) -> None:
        """End the bootstrap phase; the registry is read-only afterwards."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def codec(self, logical_type: LogicalType) -> Any:
        return self._codecs[logical_type]

    def dump(self, logical_type: LogicalType, value: Any) -> Any:
        if value is None:
            return None
        return self._codecs[logical_type].dump(value)

    def load(self, logical_type: LogicalType, raw: Any) -> Any:
        if raw is None:
            return None
        return self._codecs[logical_type].load(raw)

    # --- Element-level marshalling for nested structures ---

    def dump_value(self, value: Any) -> Any:
        """Dump a value nested inside an array or map, by its own kind."""
        if value is None:
            return None
        if hasattr(value, "to_document"):
            return value.to_document(self)
        if isinstance(value, Reference):
            return self.dump(LogicalType.REFERENCE, value)
        if isinstance(value, ObjectId):
            return value
        if isinstance(value, Mapping):
            if _is_reference_document(value):
                raise ValidationError(
                    "nested mapping has the stored shape of a reference; use a Reference value"
                )
            return self.dump(LogicalType.EMBEDDED_MAP, value)
        if isinstance(value, (list, tuple)):
            return self.dump(LogicalType.EMBEDDED_ARRAY, value)
        return value

    def load_value(self, raw: Any) -> Any:
        """Load a value nested inside an array or map, by its stored shape."""
        if isinstance(raw, DBRef) or _is_reference_document(raw):
            return self.load(LogicalType.REFERENCE, raw)
        if isinstance(raw, Mapping):
            return self.load(LogicalType.EMBEDDED_MAP, raw)
        if isinstance(raw, list):
            return self.load(LogicalType.EMBEDDED_ARRAY, raw)
        return raw

    # --- Property-level marshalling ---

    def dump_property(self, descriptor: PropertyDescriptor, value: Any) -> Any:
        """Dump a property value, enforcing nullability and primitive type.

        Raises:
            ValidationError: If the value cannot be stored for this property.
        """
        if value is None and not descriptor.nullable:
            raise ValidationError("value is required", descriptor.name)
        if descriptor.is_collection:
            _check_no_resources(descriptor, value)
        return self.dump_operand(descriptor, value)

    def dump_operand(self, descriptor: PropertyDescriptor, value: Any) -> Any:
        """Dump a query operand for *descriptor*; ``None`` is always allowed."""
        if value is None:
            return None
        if descriptor.logical_type is LogicalType.SCALAR:
            _check_primitive(descriptor, value)
        value = self.typecast(descriptor, value)
        try:
            return self.dump(descriptor.logical_type, value)
        except ValidationError as e:
            if e.property_name is not None:
                raise
            raise ValidationError(e.detail, descriptor.name) from e

    def load_property(self, descriptor: PropertyDescriptor, raw: Any) -> Any:
        if raw is None:
            return None
        try:
            return self.load(descriptor.logical_type, raw)
        except ValidationError as e:
            raise ValidationError(e.detail, descriptor.name) from e

    def typecast(self, descriptor: PropertyDescriptor, value: Any) -> Any:
        """Normalize a value assigned to *descriptor*."""
        if value is None:
            return None
        codec = self._codecs[descriptor.logical_type]
        try:
            if descriptor.logical_type is LogicalType.REFERENCE and isinstance(
                codec, ReferenceCodec
            ):
                return codec.typecast(value, descriptor.target_collection)
            return codec.typecast(value)
        except ValidationError as e:
            raise ValidationError(e.detail, descriptor.name) from e


# Process-wide default registry
default_codecs = CodecRegistry()
