"""Child collections of has_many associations."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

from doc_query.core.enums import Operator
from doc_query.core.exceptions import ValidationError
from doc_query.mapping.descriptors import ModelMetadata, PropertyDescriptor
from doc_query.query.condition import Condition
from doc_query.query.translator import Query

if TYPE_CHECKING:
    from doc_query.core.engine import Engine
    from doc_query.mapping.resource import Resource

logger = logging.getLogger(__name__)


class ChildCollection:
    """Resources of *target* whose foreign key references *owner*.

    The collection is a live view: every read issues a query. Appending
    or replacing children writes their foreign keys immediately.
    """

    def __init__(
        self,
        engine: Engine,
        owner: Resource,
        target: ModelMetadata,
        foreign_key: PropertyDescriptor,
    ) -> None:
        self._engine = engine
        self._owner = owner
        self._target = target
        self._foreign_key = foreign_key

    @property
    def model(self) -> ModelMetadata:
        return self._target

    def query(self) -> Query:
        """Base query selecting the owner's children."""
        if self._owner.key is None:
            raise ValidationError(
                f"{type(self._owner).__name__} must be created before reading its children"
            )
        reference = self._engine.reference_to(self._foreign_key, self._owner.key)
        return Query(self._target).where(Condition(self._foreign_key, Operator.EQ, reference))

    def all(self, *conditions: Condition, **criteria: Any) -> list[Any]:
        """Children matching the given conditions."""
        return self._engine.read(self._target, self.query().where(*conditions, **criteria))

    def first(self, *conditions: Condition, **criteria: Any) -> Any | None:
        return self._engine.first(self._target, self.query().where(*conditions), **criteria)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self.all())

    def __contains__(self, item: object) -> bool:
        return item in self.all()

    def append(self, child: Resource) -> ChildCollection:
        """Point *child* at the owner and save it."""
        self._check_child(child)
        setattr(child, self._foreign_key.name, self._owner.key)
        self._engine.save(child)
        logger.debug("Attached %s %s to %s", self._target.name, child.key, self._owner)
        return self

    __lshift__ = append

    def extend(self, children: Iterable[Resource]) -> None:
        for child in children:
            self.append(child)

    def remove(self, child: Resource) -> None:
        """Clear *child*'s foreign key and save it."""
        self._check_child(child)
        setattr(child, self._foreign_key.name, None)
        self._engine.save(child)

    def replace(self, children: Iterable[Resource]) -> None:
        """Make *children* the complete set of children.

        Current children not in *children* have their foreign key cleared.
        """
        children = list(children)
        for child in children:
            self._check_child(child)
        keep = {child.key for child in children if child.key is not None}
        for current in self.all():
            if current.key not in keep:
                self.remove(current)
        for child in children:
            self.append(child)

    def _check_child(self, child: Any) -> None:
        if not isinstance(child, self._target.resource_class):
            raise ValidationError(
                f"expected {self._target.name}, got {type(child).__name__}", self._foreign_key.name
            )
        if self._owner.key is None:
            raise ValidationError(
                f"{type(self._owner).__name__} must be created before adding children"
            )

    def __repr__(self) -> str:
        return f"ChildCollection({self._target.name} of {self._owner!r})"
