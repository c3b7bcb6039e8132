"""
Example 02: Embedded Resources

This example demonstrates embedded resources that are stored inside their
parent's document: one-to-many and one-to-one embedments, structured
EmbeddedArray/EmbeddedMap properties and in-memory filtering.
"""

from doc_query import ConnectionConfig, EmbeddedResource, Engine, Resource, embedded_model, model


class Animal(EmbeddedResource):
    pass


class Address(EmbeddedResource):
    pass


class Zoo(Resource):
    pass


embedded_model(Animal).key().property("species").property("legs", primitive=int).build()
embedded_model(Address).property("street").property("city").build()
(
    model(Zoo)
    .key()
    .property("name")
    .embedded_array("tags")
    .embeds_many("animals", Animal)
    .embeds_one("address", Address)
    .build()
)


def main():
    engine = Engine.from_config(ConnectionConfig(driver="memory", database="example"))

    print("=== Embedded Resources ===\n")

    zoo = Zoo(name="Central", tags=["urban", "historic"], address={"street": "5th Ave", "city": "New York"})
    zoo.animals.new(species="zebra", legs=4)
    zoo.animals.new(species="ostrich", legs=2)
    zoo.animals.append(Animal(species="lion", legs=4))

    # Embedded state is written with the parent in one document
    engine.create(zoo)
    print(f"Stored document: {zoo.to_document()}\n")

    loaded = engine.get(Zoo, zoo.key)
    print(f"Animals: {[a.species for a in loaded.animals]}")
    print(f"Four-legged: {[a.species for a in loaded.animals.all(legs=4)]}")
    print(f"Address: {loaded.address.street}, {loaded.address.city}\n")

    # Changing an embedded resource marks the parent dirty
    loaded.animals.first(species="ostrich").legs = 3
    loaded.animals.remove(loaded.animals.first(species="lion"))
    print(f"Dirty attributes: {sorted(loaded.dirty_attributes)}")
    engine.save(loaded)

    print(f"After save: {[(a.species, a.legs) for a in engine.get(Zoo, zoo.key).animals]}")

    # Query parents by structured values
    found = engine.read(Zoo, tags__in=["urban"])
    print(f"Urban zoos: {[z.name for z in found]}")

    engine.close()


if __name__ == "__main__":
    main()
