"""
Example 01: Basic Queries

This example demonstrates defining a model and running criteria queries
with DocQuery's Engine against the in-memory driver.
"""

from doc_query import ConnectionConfig, Engine, Resource, model


class Heffalump(Resource):
    pass


model(Heffalump).key().property("color", primitive=str).property("num_spots", primitive=int).build()


def main():
    config = ConnectionConfig(driver="memory", database="example")
    engine = Engine.from_config(config)

    print("=== Basic Queries ===\n")

    # create: insert new resources
    for color, spots in [("red", 2), ("green", 3), ("blue", 5)]:
        heffalump = Heffalump(color=color, num_spots=spots)
        key = engine.create(heffalump)
        print(f"Created {color} heffalump with key {key}")
    print()

    # read: conditions on the same field are combined
    found = engine.read(Heffalump, num_spots__gt=2, num_spots__not=3)
    print(f"More than 2 spots but not 3: {[h.color for h in found]}")

    # Query objects carry sort and pagination
    query = engine.query(Heffalump).where(color=["red", "blue"]).order_by("-num_spots")
    print(f"Red or blue, most spots first: {[h.color for h in engine.read(Heffalump, query)]}")

    # The storage query produced by the translator
    storage = engine.translator.translate(query)
    print(f"Selector: {storage.selector}, sort: {storage.sort}\n")

    # update / delete
    red = engine.first(Heffalump, color="red")
    engine.update(red, {"num_spots": 4})
    print(f"Red now has {engine.get(Heffalump, red.key).num_spots} spots")
    engine.delete(red)
    print(f"Remaining: {len(engine.read(Heffalump))} heffalumps")

    engine.close()


if __name__ == "__main__":
    main()
