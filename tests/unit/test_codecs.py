"""Unit tests for the codec registry."""

from __future__ import annotations

from datetime import datetime

import pytest
from bson import DBRef, ObjectId

from doc_query.core.codecs import CodecRegistry, ScalarCodec
from doc_query.core.enums import LogicalType
from doc_query.core.exceptions import RegistryFrozenError, ValidationError
from doc_query.core.types import Reference
from doc_query.mapping.descriptors import PropertyDescriptor


def prop(name: str, logical_type: LogicalType = LogicalType.SCALAR, **kwargs) -> PropertyDescriptor:
    return PropertyDescriptor(name=name, logical_type=logical_type, **kwargs)


class TestRoundTrip:
    @pytest.mark.parametrize(
        ("logical_type", "value"),
        [
            (LogicalType.SCALAR, "red"),
            (LogicalType.SCALAR, 3.5),
            (LogicalType.SCALAR, datetime(2024, 1, 2, 3, 4, 5)),
            (LogicalType.IDENTIFIER, ObjectId()),
            (LogicalType.REFERENCE, Reference(ObjectId(), "groups")),
            (LogicalType.EMBEDDED_ARRAY, [1, "two", {"three": 3}, [4]]),
            (LogicalType.EMBEDDED_MAP, {"street": "Main", "tags": ["a", "b"]}),
        ],
    )
    def test_load_inverts_dump(self, codecs: CodecRegistry, logical_type, value) -> None:
        assert codecs.load(logical_type, codecs.dump(logical_type, value)) == value

    def test_none_passes_through(self, codecs: CodecRegistry) -> None:
        for logical_type in LogicalType:
            assert codecs.dump(logical_type, None) is None
            assert codecs.load(logical_type, None) is None

    def test_nested_references_survive(self, codecs: CodecRegistry) -> None:
        ref = Reference(ObjectId(), "animals")
        stored = codecs.dump(LogicalType.EMBEDDED_MAP, {"favorite": ref, "ids": [ref]})
        assert stored["favorite"] == {"target_id": ref.target_id, "target_collection": "animals"}
        assert codecs.load(LogicalType.EMBEDDED_MAP, stored) == {"favorite": ref, "ids": [ref]}


class TestIdentifierCodec:
    def test_hex_string_dumps_to_object_id(self, codecs: CodecRegistry) -> None:
        oid = ObjectId()
        assert codecs.dump(LogicalType.IDENTIFIER, str(oid)) == oid

    def test_malformed_identifier_raises(self, codecs: CodecRegistry) -> None:
        with pytest.raises(ValidationError):
            codecs.dump_property(prop("owner", LogicalType.IDENTIFIER), "xyz")


class TestReferenceCodec:
    def test_loads_dbref(self, codecs: CodecRegistry) -> None:
        oid = ObjectId()
        assert codecs.load(LogicalType.REFERENCE, DBRef("groups", oid)) == Reference(oid, "groups")

    def test_loads_bare_identifier(self, codecs: CodecRegistry) -> None:
        oid = ObjectId()
        assert codecs.load(LogicalType.REFERENCE, oid) == Reference(oid)

    def test_typecast_uses_descriptor_collection(self, codecs: CodecRegistry) -> None:
        oid = ObjectId()
        descriptor = prop("group_id", LogicalType.REFERENCE, target_collection="groups")
        assert codecs.typecast(descriptor, oid) == Reference(oid, "groups")

    def test_operand_takes_descriptor_collection(self, codecs: CodecRegistry) -> None:
        oid = ObjectId()
        descriptor = prop("group_id", LogicalType.REFERENCE, target_collection="groups")
        stored = codecs.dump_property(descriptor, Reference(oid, "groups"))
        assert codecs.dump_operand(descriptor, oid) == stored
        assert codecs.dump_operand(descriptor, str(oid)) == stored
        assert codecs.dump_operand(descriptor, Reference(oid)) == stored

    def test_explicit_collection_is_kept(self, codecs: CodecRegistry) -> None:
        oid = ObjectId()
        descriptor = prop("group_id", LogicalType.REFERENCE, target_collection="groups")
        assert codecs.typecast(descriptor, Reference(oid, "teams")) == Reference(oid, "teams")

    def test_document_without_target_id_raises(self, codecs: CodecRegistry) -> None:
        with pytest.raises(ValidationError, match="target_id"):
            codecs.load_property(prop("group_id", LogicalType.REFERENCE), {"collection": "x"})


class TestStructuredCodecs:
    def test_array_rejects_mapping(self, codecs: CodecRegistry) -> None:
        with pytest.raises(ValidationError, match="animals"):
            codecs.dump_property(prop("animals", LogicalType.EMBEDDED_ARRAY), {"a": 1})

    def test_map_rejects_list(self, codecs: CodecRegistry) -> None:
        with pytest.raises(ValidationError):
            codecs.dump_property(prop("address", LogicalType.EMBEDDED_MAP), ["a"])

    def test_map_rejects_operator_keys(self, codecs: CodecRegistry) -> None:
        with pytest.raises(ValidationError, match="must not start with"):
            codecs.dump(LogicalType.EMBEDDED_MAP, {"$where": "1"})

    def test_map_rejects_dotted_nested_keys(self, codecs: CodecRegistry) -> None:
        with pytest.raises(ValidationError):
            codecs.dump(LogicalType.EMBEDDED_MAP, {"outer": {"a.b": 1}})

    def test_reference_shaped_nested_map_rejected(self, codecs: CodecRegistry) -> None:
        with pytest.raises(ValidationError, match="Reference value"):
            codecs.dump(LogicalType.EMBEDDED_ARRAY, [{"target_id": ObjectId()}])

    def test_map_with_string_target_id_round_trips(self, codecs: CodecRegistry) -> None:
        value = [{"target_id": "abc", "target_collection": "x"}]
        stored = codecs.dump(LogicalType.EMBEDDED_ARRAY, value)
        assert codecs.load(LogicalType.EMBEDDED_ARRAY, stored) == value

    def test_resources_rejected_in_collection_properties(self, codecs: CodecRegistry) -> None:
        class Tag:
            def to_document(self, codecs=None):
                return {"label": "x"}

        with pytest.raises(ValidationError, match="embeds_one or embeds_many") as excinfo:
            codecs.dump_property(prop("tags", LogicalType.EMBEDDED_ARRAY), [Tag()])
        assert excinfo.value.property_name == "tags"
        with pytest.raises(ValidationError, match="embeds_one or embeds_many"):
            codecs.dump_property(prop("labels", LogicalType.EMBEDDED_MAP), {"main": Tag()})

    def test_scalar_rejects_structures(self, codecs: CodecRegistry) -> None:
        with pytest.raises(ValidationError, match="color"):
            codecs.dump_property(prop("color"), ["red"])


class TestPropertyMarshalling:
    def test_required_property_rejects_none(self, codecs: CodecRegistry) -> None:
        with pytest.raises(ValidationError, match="required"):
            codecs.dump_property(prop("color", nullable=False), None)

    def test_primitive_mismatch(self, codecs: CodecRegistry) -> None:
        with pytest.raises(ValidationError, match="expected int"):
            codecs.dump_property(prop("num_spots", primitive=int), "five")

    def test_bool_is_not_an_int(self, codecs: CodecRegistry) -> None:
        with pytest.raises(ValidationError):
            codecs.dump_property(prop("num_spots", primitive=int), True)

    def test_float_accepts_int(self, codecs: CodecRegistry) -> None:
        assert codecs.dump_property(prop("weight", primitive=float), 3) == 3

    def test_error_names_property(self, codecs: CodecRegistry) -> None:
        with pytest.raises(ValidationError) as excinfo:
            codecs.dump_property(prop("address", LogicalType.EMBEDDED_MAP), "nope")
        assert excinfo.value.property_name == "address"


class TestRegistryLifecycle:
    def test_register_replaces_codec(self, codecs: CodecRegistry) -> None:
        class UpperCodec(ScalarCodec):
            def dump(self, value):
                return str(value).upper()

        codecs.register(LogicalType.SCALAR, UpperCodec())
        assert codecs.dump(LogicalType.SCALAR, "red") == "RED"

    def test_register_after_freeze_raises(self, codecs: CodecRegistry) -> None:
        codecs.freeze()
        assert codecs.frozen
        with pytest.raises(RegistryFrozenError):
            codecs.register(LogicalType.SCALAR, ScalarCodec())
