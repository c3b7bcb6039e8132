"""Unit tests for Repository."""

from __future__ import annotations

import pytest

from doc_query.core.exceptions import ModelDefinitionError, NotFoundError
from doc_query.mapping.builder import model
from doc_query.mapping.resource import Resource
from doc_query.repository.base import Repository


class Keeper(Resource):
    pass


keeper_model = model(Keeper).key().property("name").property("shift").build()


class KeeperRepository(Repository[Keeper]):
    model = Keeper

    def night_shift(self) -> list[Keeper]:
        return self.find(self.query().where(shift="night").order_by("name"))


class TestRepository:
    def test_create_and_get(self, make_engine) -> None:
        repo = KeeperRepository(make_engine())
        keeper = repo.create(name="Sam", shift="day")
        assert repo.get(keeper.key).name == "Sam"

    def test_custom_finder(self, make_engine) -> None:
        repo = KeeperRepository(make_engine())
        repo.create(name="Zed", shift="night")
        repo.create(name="Amy", shift="night")
        repo.create(name="Bob", shift="day")
        assert [k.name for k in repo.night_shift()] == ["Amy", "Zed"]

    def test_model_passed_to_constructor(self, make_engine) -> None:
        repo: Repository[Keeper] = Repository(make_engine(), Keeper)
        repo.create(name="Sam")
        assert repo.first(name="Sam") is not None

    def test_save_and_delete(self, make_engine) -> None:
        repo = KeeperRepository(make_engine())
        keeper = repo.create(name="Sam")
        keeper.shift = "night"
        repo.save(keeper)
        assert repo.first(shift="night") == keeper
        assert repo.delete(keeper)
        with pytest.raises(NotFoundError):
            repo.get(keeper.key)

    def test_missing_model_raises(self, make_engine) -> None:
        with pytest.raises(ModelDefinitionError):
            Repository(make_engine())
