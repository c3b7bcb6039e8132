"""
Example 03: Associations

This example demonstrates Reference properties between top-level resources:
belongs_to / has_many associations and link queries across them.
"""

import re

from doc_query import ConnectionConfig, Engine, ModelRegistry, Resource, model


class Group(Resource):
    pass


class User(Resource):
    pass


registry = ModelRegistry()
model(Group).key().property("name").has_many("users", "User", "group_id").build(registry)
model(User).key().property("name").belongs_to("group", Group).build(registry)


def main():
    engine = Engine.from_config(ConnectionConfig(driver="memory", database="example"), registry)

    print("=== Associations ===\n")

    admins = Group(name="admins")
    engine.create(admins)

    # has_many: appending a child writes its foreign key
    users = engine.children(admins, "users")
    users << User(name="john")
    users.append(User(name="jane"))
    engine.create(User(name="bob"))

    print(f"Admins: {[u.name for u in users]}")
    print(f"Matching /john|jane/: {[u.name for u in users.all(name=re.compile('john|jane'))]}")

    # belongs_to: the foreign key holds a Reference
    john = users.first(name="john")
    print(f"john.group_id = {john.group_id}")
    print(f"john's group: {engine.parent(john, 'group').name}")

    # link: restrict users through their group
    query = engine.query(User).link("group", name="admins").order_by("name")
    print(f"Users in admins: {[u.name for u in engine.read(User, query)]}")

    # replace: children not in the new set lose their foreign key
    bob = engine.first(User, name="bob")
    users.replace([bob])
    print(f"Admins after replace: {[u.name for u in users]}")

    engine.close()


if __name__ == "__main__":
    main()
