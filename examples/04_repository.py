"""
Example 04: Repository Pattern

This example demonstrates the Repository base class for DDD-style data access.
"""

from doc_query import ConnectionConfig, Engine, Repository, Resource, model


class Keeper(Resource):
    pass


model(Keeper).key().property("name").property("shift").build()


class KeeperRepository(Repository[Keeper]):
    model = Keeper

    def on_shift(self, shift: str) -> list[Keeper]:
        return self.find(self.query().where(shift=shift).order_by("name"))


def main():
    engine = Engine.from_config(ConnectionConfig(driver="memory", database="example"))
    repo = KeeperRepository(engine)

    print("=== Repository Pattern ===\n")

    for name, shift in [("Sam", "night"), ("Amy", "day"), ("Zoe", "night")]:
        repo.create(name=name, shift=shift)

    print(f"Night shift: {[k.name for k in repo.on_shift('night')]}")

    amy = repo.first(name="Amy")
    amy.shift = "night"
    repo.save(amy)
    print(f"Night shift after change: {[k.name for k in repo.on_shift('night')]}")

    repo.delete(amy)
    print(f"Keepers left: {len(repo.find())}")

    engine.close()


if __name__ == "__main__":
    main()
