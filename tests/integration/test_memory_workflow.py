"""Integration tests for the full workflow against the memory driver.

Covers: model definition, create/read/update/delete, criteria queries,
embedded resources, references and has_many/belongs_to associations.
"""

from __future__ import annotations

import re

import pytest

from doc_query.core.engine import Engine
from doc_query.core.exceptions import (
    EmbedmentCardinalityError,
    ModelDefinitionError,
    NotFoundError,
    ValidationError,
)
from doc_query.core.registry import ModelRegistry
from doc_query.core.types import Reference, to_identifier
from doc_query.mapping.builder import embedded_model, model
from doc_query.mapping.resource import EmbeddedResource, Resource

# --- Test models ---


class Heffalump(Resource):
    pass


class Animal(EmbeddedResource):
    pass


class Zoo(Resource):
    pass


class Group(Resource):
    pass


class User(Resource):
    pass


class Exhibit(EmbeddedResource):
    pass


class Park(Resource):
    pass


def define_models(registry: ModelRegistry) -> None:
    model(Heffalump).key().property("color", primitive=str).property(
        "num_spots", primitive=int
    ).property("striped", primitive=bool).build(registry)

    model(Zoo).key().property("name").embedded_array("animals").embedded_map("address").build(
        registry
    )

    model(Group).key().property("name").has_many("users", "User", "group_id").build(registry)
    model(User).key().property("name").property("age", primitive=int).belongs_to(
        "group", Group
    ).build(registry)

    embedded_model(Animal).key().property("species").property("legs", primitive=int).build()
    embedded_model(Exhibit).property("title").embedded_array("notes").build()
    model(Park).key().property("name").embeds_many("animals", Animal).embeds_one(
        "exhibit", Exhibit
    ).build(registry)


@pytest.fixture
def engine(make_engine) -> Engine:
    registry = ModelRegistry()
    define_models(registry)
    return make_engine(registry)


# --- Tests ---


class TestHeffalumps:
    @pytest.fixture(autouse=True)
    def herd(self, engine: Engine) -> None:
        self.red = Heffalump(color="red", num_spots=2)
        self.green = Heffalump(color="green", num_spots=3)
        self.blue = Heffalump(color="blue", num_spots=5)
        for heffalump in (self.red, self.green, self.blue):
            engine.create(heffalump)

    def test_conjoined_conditions_on_one_field(self, engine: Engine) -> None:
        found = engine.read(Heffalump, num_spots__gt=2, num_spots__not=3)
        assert found == [self.blue]

    def test_membership(self, engine: Engine) -> None:
        query = engine.query(Heffalump).where(color=["red", "blue"]).order_by("color")
        found = engine.read(Heffalump, query)
        assert [h.color for h in found] == ["blue", "red"]

    def test_update_persists(self, engine: Engine) -> None:
        self.red.striped = True
        engine.save(self.red)
        assert engine.read(Heffalump, striped=True) == [self.red]

    def test_delete(self, engine: Engine) -> None:
        engine.delete(self.green)
        assert len(engine.read(Heffalump)) == 2


class TestZooStructuredProperties:
    def test_embedded_array_and_map_round_trip(self, engine: Engine) -> None:
        zoo = Zoo(
            name="Central",
            animals=["zebra", "lion", {"name": "Marty", "tags": ["striped"]}],
            address={"street": "5th Ave", "city": "New York"},
        )
        engine.create(zoo)
        loaded = engine.get(Zoo, zoo.key)
        assert loaded.animals == ["zebra", "lion", {"name": "Marty", "tags": ["striped"]}]
        assert loaded.address == {"street": "5th Ave", "city": "New York"}

    def test_embedded_resources_rejected_in_array_property(self, engine: Engine) -> None:
        zoo = Zoo(name="Central", animals=[Exhibit(title="Big Cats")])
        with pytest.raises(ValidationError, match="embeds_many"):
            engine.create(zoo)
        assert engine.read(Zoo) == []

    def test_reference_shaped_maps_rejected_in_array_property(self, engine: Engine) -> None:
        zoo = Zoo(name="Central", animals=[{"target_id": to_identifier("0" * 24)}])
        with pytest.raises(ValidationError, match="Reference value"):
            engine.create(zoo)

    def test_query_by_embedded_values(self, engine: Engine) -> None:
        engine.create(Zoo(name="Central", animals=["zebra", "lion"], address={"city": "NY"}))
        engine.create(Zoo(name="Bronx", animals=["bear"], address={"city": "NY", "zip": "10460"}))
        assert [z.name for z in engine.read(Zoo, animals=["zebra", "lion"])] == ["Central"]
        assert [z.name for z in engine.read(Zoo, address={"city": "NY"})] == ["Central"]
        assert [z.name for z in engine.read(Zoo, animals__in=["bear"])] == ["Bronx"]

    def test_in_place_mutation_is_saved(self, engine: Engine) -> None:
        zoo = Zoo(name="Central", animals=["zebra"])
        engine.create(zoo)
        zoo.animals.append("hippo")
        assert engine.update(zoo)
        assert engine.get(Zoo, zoo.key).animals == ["zebra", "hippo"]

    def test_unsafe_map_key_fails_before_storage(self, engine: Engine) -> None:
        with pytest.raises(ValidationError):
            engine.create(Zoo(name="Evil", address={"$where": "1"}))
        assert engine.read(Zoo) == []


class TestEmbeddedResources:
    def test_embedded_state_persists_with_parent(self, engine: Engine) -> None:
        park = Park(name="Savanna", exhibit={"title": "Big Cats"})
        park.animals.new(species="lion", legs=4)
        park.animals.new(species="ostrich", legs=2)
        engine.create(park)

        loaded = engine.get(Park, park.key)
        assert [a.species for a in loaded.animals] == ["lion", "ostrich"]
        assert loaded.exhibit.title == "Big Cats"
        assert loaded.animals[0].key == park.animals[0].key
        assert loaded.animals[0].parent is loaded

    def test_embedded_change_is_written_on_save(self, engine: Engine) -> None:
        park = Park(name="Savanna")
        park.animals.new(species="lion", legs=4)
        engine.create(park)

        park.animals[0].legs = 3
        engine.save(park)
        assert engine.get(Park, park.key).animals[0].legs == 3

    def test_nested_in_place_mutation_is_written_on_update(self, engine: Engine) -> None:
        park = Park(name="Savanna", exhibit={"title": "Big Cats", "notes": ["n1"]})
        engine.create(park)

        loaded = engine.get(Park, park.key)
        loaded.exhibit.notes.append("n2")
        assert loaded.is_dirty
        assert engine.update(loaded) is True
        assert not loaded.is_dirty
        assert engine.get(Park, park.key).exhibit.notes == ["n1", "n2"]

    def test_removal_and_replacement(self, engine: Engine) -> None:
        park = Park(name="Savanna", animals=[{"species": "lion"}, {"species": "hyena"}])
        engine.create(park)

        park.animals.remove(park.animals.first(species="hyena"))
        park.exhibit = None
        engine.save(park)
        loaded = engine.get(Park, park.key)
        assert [a.species for a in loaded.animals] == ["lion"]
        assert loaded.exhibit is None

        loaded.animals = [{"species": "zebra"}]
        engine.save(loaded)
        assert [a.species for a in engine.get(Park, park.key).animals] == ["zebra"]

    def test_query_parent_by_embedded_field(self, engine: Engine) -> None:
        engine.create(Park(name="Savanna", animals=[{"species": "lion"}]))
        engine.create(Park(name="Arctic", animals=[{"species": "bear"}]))
        parks = engine.read(Park, engine.query(Park).where(name__regex="^S"))
        assert [p.name for p in parks] == ["Savanna"]
        assert parks[0].animals.all(species="lion")[0].species == "lion"

    def test_parent_deletion_removes_embedded(self, engine: Engine) -> None:
        park = Park(name="Savanna", animals=[{"species": "lion"}])
        engine.create(park)
        engine.delete(park)
        assert engine.read(Park) == []

    def test_cardinality_enforced(self, engine: Engine) -> None:
        park = Park(name="Savanna")
        with pytest.raises(EmbedmentCardinalityError):
            park.exhibit = [{"title": "a"}, {"title": "b"}]


class TestAssociations:
    @pytest.fixture
    def group(self, engine: Engine) -> Group:
        group = Group(name="admins")
        engine.create(group)
        return group

    def test_belongs_to(self, engine: Engine, group: Group) -> None:
        user = User(name="John")
        engine.set_parent(user, "group", group)
        engine.create(user)

        assert user.group_id == Reference(group.key, "groups")
        assert engine.parent(engine.get(User, user.key), "group") == group

    def test_query_foreign_key_by_identifier(self, engine: Engine, group: Group) -> None:
        user = User(name="John")
        engine.set_parent(user, "group", group)
        engine.create(user)
        engine.create(User(name="Loner"))

        assert engine.read(User, group_id=group.key) == [user]
        assert engine.read(User, group_id=str(group.key)) == [user]
        assert engine.read(User, group_id=Reference(group.key)) == [user]
        assert engine.read(User, group_id__in=[group.key]) == [user]
        assert [u.name for u in engine.read(User, group_id__ne=group.key)] == ["Loner"]

    def test_unset_parent(self, engine: Engine) -> None:
        user = User(name="Loner")
        engine.create(user)
        assert engine.parent(user, "group") is None

    def test_parent_must_be_saved(self, engine: Engine) -> None:
        with pytest.raises(ValidationError, match="must be created"):
            engine.set_parent(User(name="John"), "group", Group(name="new"))

    def test_has_many_append_and_all(self, engine: Engine, group: Group) -> None:
        users = engine.children(group, "users")
        users << User(name="John", age=30)
        users.append(User(name="Jane", age=25))
        engine.create(User(name="Outsider"))

        assert len(users) == 2
        assert {u.name for u in users} == {"John", "Jane"}
        assert [u.name for u in users.all(name="Jane")] == ["Jane"]
        matching = users.all(name=re.compile("john|jane", re.IGNORECASE))
        assert {u.name for u in matching} == {"John", "Jane"}
        assert users.first(age__gt=26).name == "John"

    def test_has_many_replace(self, engine: Engine, group: Group) -> None:
        users = engine.children(group, "users")
        john, jane, jim = User(name="John"), User(name="Jane"), User(name="Jim")
        users.extend([john, jane])

        users.replace([jane, jim])
        assert {u.name for u in users} == {"Jane", "Jim"}
        assert engine.get(User, john.key).group_id is None

    def test_link_query(self, engine: Engine, group: Group) -> None:
        other = Group(name="guests")
        engine.create(other)
        engine.children(group, "users").append(User(name="John"))
        engine.children(other, "users").append(User(name="Gus"))

        query = engine.query(User).link("group", name="admins")
        assert [u.name for u in engine.read(User, query)] == ["John"]

    def test_regex_search(self, engine: Engine) -> None:
        for name in ("john", "jane", "bob"):
            engine.create(User(name=name))
        query = engine.query(User).where(name__regex="john|jane").order_by("name")
        found = engine.read(User, query)
        assert [u.name for u in found] == ["jane", "john"]

    def test_wrong_association_kind(self, engine: Engine, group: Group) -> None:
        with pytest.raises(ModelDefinitionError):
            engine.children(group, "group")
        with pytest.raises(ModelDefinitionError):
            engine.parent(group, "users")

    def test_child_type_is_checked(self, engine: Engine, group: Group) -> None:
        with pytest.raises(ValidationError, match="expected User"):
            engine.children(group, "users").append(Group(name="nested"))


class TestDocumentProperties:
    def test_identifier_from_hex_is_interchangeable(self, engine: Engine) -> None:
        blue = Heffalump(color="blue", num_spots=5)
        key = engine.create(blue)
        assert to_identifier(str(key)) == key
        assert engine.read(Heffalump, id=str(key)) == [blue]

    def test_replace_three_with_one(self, engine: Engine) -> None:
        park = Park(name="Savanna")
        for species in ("lion", "hyena", "zebra"):
            park.animals.new(species=species)
        engine.create(park)
        old_keys = {a.key for a in park.animals}

        park.animals = [{"species": "giraffe"}]
        engine.save(park)

        loaded = engine.get(Park, park.key)
        assert [a.species for a in loaded.animals] == ["giraffe"]
        assert not old_keys & {a.key for a in loaded.animals}
        assert engine.read(Park, animals=list(loaded.animals)) == [park]

    def test_embedded_map_round_trip(self, engine: Engine) -> None:
        address = {"street": "Street 1", "geo": {"lat": 1.5, "tags": ["x"]}}
        zoo = Zoo(name="Central", address=address)
        engine.create(zoo)
        assert engine.get(Zoo, zoo.key).address == address

    def test_reference_survives_missing_target(self, engine: Engine) -> None:
        group = Group(name="temp")
        engine.create(group)
        user = User(name="John")
        engine.set_parent(user, "group", group)
        engine.create(user)
        engine.delete(group)

        loaded = engine.get(User, user.key)
        assert loaded.to_document(engine.codecs)["group_id"]["target_id"] == group.key
        assert engine.parent(loaded, "group") is None

    def test_reload_of_removed_document_raises(self, engine: Engine) -> None:
        zoo = Zoo(name="Central")
        engine.create(zoo)
        engine.delete(engine.get(Zoo, zoo.key))
        zoo_copy = Zoo.load({"_id": zoo.key, "name": "Central"})
        with pytest.raises(NotFoundError):
            engine.reload(zoo_copy)
