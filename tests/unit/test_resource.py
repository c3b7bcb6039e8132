"""Unit tests for Resource attribute handling and marshalling."""

from __future__ import annotations

import pytest
from bson import ObjectId

from doc_query.core.exceptions import ModelDefinitionError, ValidationError
from doc_query.core.types import Reference
from doc_query.mapping.builder import model
from doc_query.mapping.resource import PersistableAttributes, Resource, StorageIdentity


class Group(Resource):
    pass


class User(Resource):
    pass


group_model = model(Group).key().property("name", nullable=False).build()
user_model = (
    model(User)
    .key()
    .property("name", primitive=str)
    .embedded_array("roles", default=["member"])
    .embedded_map("settings")
    .belongs_to("group", Group)
    .build()
)


class TestAttributes:
    def test_assignment_and_defaults(self) -> None:
        user = User(name="John")
        assert user.name == "John"
        assert user.roles == ["member"]
        assert user.settings is None
        assert user.id is None

    def test_defaults_are_not_shared(self) -> None:
        first, second = User(), User()
        first.roles.append("admin")
        assert second.roles == ["member"]

    def test_unknown_attribute_raises(self) -> None:
        with pytest.raises(ValidationError, match="unknown attribute"):
            User(nickname="jj")

    def test_missing_attribute_raises_attribute_error(self) -> None:
        with pytest.raises(AttributeError):
            _ = User().nickname

    def test_reference_typecast_from_identifier(self) -> None:
        oid = ObjectId()
        user = User(group_id=oid)
        assert user.group_id == Reference(oid, "groups")

    def test_unbuilt_model_raises(self) -> None:
        class Orphan(Resource):
            pass

        with pytest.raises(ModelDefinitionError, match="build"):
            Orphan()

    def test_protocols(self) -> None:
        user = User()
        assert isinstance(user, PersistableAttributes)
        assert isinstance(user, StorageIdentity)


class TestDocument:
    def test_to_document_uses_storage_forms(self) -> None:
        oid = ObjectId()
        user = User(name="John", group_id=oid, settings={"theme": "dark"})
        assert user.to_document() == {
            "name": "John",
            "roles": ["member"],
            "settings": {"theme": "dark"},
            "group_id": {"target_id": oid, "target_collection": "groups"},
        }

    def test_new_resource_omits_key(self) -> None:
        assert "_id" not in User().to_document()

    def test_required_property(self) -> None:
        with pytest.raises(ValidationError, match="name"):
            Group().to_document()

    def test_load_round_trip(self) -> None:
        oid = ObjectId()
        document = {"_id": oid, "name": "Jane", "roles": [], "settings": {"a": 1}, "extra": 5}
        user = User.load(document)
        assert user.key == oid
        assert not user.is_new
        assert not user.is_dirty
        assert user.name == "Jane"
        assert user.to_document()["settings"] == {"a": 1}


class TestDirtyTracking:
    def test_new_resource_tracks_assignments(self) -> None:
        user = User(name="John")
        assert "name" in user.dirty_attributes

    def test_loaded_resource_tracks_changes(self) -> None:
        user = User.load({"_id": ObjectId(), "name": "Jane", "roles": ["member"]})
        user.name = "Janet"
        assert user.dirty_attributes == {"name"}
        assert user.dirty_document() == {"name": "Janet"}

    def test_in_place_mutation_is_detected(self) -> None:
        user = User.load({"_id": ObjectId(), "name": "Jane", "settings": {"theme": "dark"}})
        user.settings["theme"] = "light"
        assert user.dirty_attributes == {"settings"}

    def test_mark_clean(self) -> None:
        user = User(name="John")
        user.mark_clean()
        assert not user.is_dirty


class TestIdentity:
    def test_equality_by_key(self) -> None:
        oid = ObjectId()
        assert User.load({"_id": oid}) == User.load({"_id": oid})
        assert hash(User.load({"_id": oid})) == hash(User.load({"_id": oid}))

    def test_unsaved_resources_compare_by_identity(self) -> None:
        assert User() != User()

    def test_mark_saved_and_destroyed(self) -> None:
        user = User()
        oid = ObjectId()
        user.mark_saved(oid)
        assert user.key == oid
        assert not user.is_new
        user.mark_destroyed()
        assert user.is_destroyed
