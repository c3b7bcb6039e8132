"""Query description and translation into a storage query.

The translator only sees fields local to the query's model. Link
directives across associations are resolved by the Engine beforehand and
arrive here as plain conditions on the foreign-key property.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from doc_query.core.codecs import CodecRegistry, default_codecs
from doc_query.core.enums import SortDirection
from doc_query.core.exceptions import TranslationError
from doc_query.query.condition import Condition, merge_fragments, parse_criteria

if TYPE_CHECKING:
    from doc_query.mapping.descriptors import ModelMetadata, PropertyDescriptor


@dataclass(frozen=True)
class Sort:
    """One ordering directive."""

    property: PropertyDescriptor
    direction: SortDirection = SortDirection.ASC


@dataclass(frozen=True)
class Link:
    """Restrict results through a belongs_to association.

    ``criteria`` and ``conditions`` apply to the association's target model.
    """

    association: str
    conditions: tuple[Condition, ...] = ()
    criteria: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Query:
    """Immutable query against one model.

    Builder methods return new Query objects, so a base query can be
    shared and refined.
    """

    model: ModelMetadata
    conditions: tuple[Condition, ...] = ()
    order: tuple[Sort, ...] = ()
    limit: int | None = None
    offset: int = 0
    links: tuple[Link, ...] = ()

    def where(self, *conditions: Condition, **criteria: Any) -> Query:
        """Add conditions, either as Condition objects or ``name__op=value`` criteria."""
        added = tuple(conditions) + tuple(parse_criteria(self.model, criteria))
        return replace(self, conditions=self.conditions + added)

    def order_by(self, *fields: str | Sort) -> Query:
        """Append sort directives; a leading ``-`` sorts descending."""
        order = list(self.order)
        for item in fields:
            if isinstance(item, Sort):
                order.append(item)
                continue
            direction = SortDirection.DESC if item.startswith("-") else SortDirection.ASC
            order.append(Sort(self.model.query_property(item.lstrip("-")), direction))
        return replace(self, order=tuple(order))

    def paginate(self, limit: int | None = None, offset: int = 0) -> Query:
        return replace(self, limit=limit, offset=offset)

    def link(self, association: str, *conditions: Condition, **criteria: Any) -> Query:
        return replace(
            self, links=self.links + (Link(association, tuple(conditions), dict(criteria)),)
        )


@dataclass(frozen=True)
class StorageQuery:
    """Storage-native query descriptor handed to the driver."""

    collection: str | None
    selector: dict[str, Any]
    sort: list[tuple[str, int]]
    limit: int | None
    offset: int


class QueryTranslator:
    """Renders Queries into storage selectors.

    Args:
        codecs: Codec registry used to dump operands. Defaults to the
            process-wide registry.
    """

    def __init__(self, codecs: CodecRegistry | None = None) -> None:
        self._codecs = codecs or default_codecs

    def translate(self, query: Query) -> StorageQuery:
        """Translate *query* into selector, sort, limit and offset.

        Raises:
            TranslationError: On unresolved links, foreign properties,
                unsupported operators or invalid pagination.
        """
        if query.links:
            names = ", ".join(link.association for link in query.links)
            raise TranslationError(f"Unresolved link directives: {names}")
        if query.limit is not None and query.limit < 0:
            raise TranslationError(f"limit must not be negative, got {query.limit}")
        if query.offset < 0:
            raise TranslationError(f"offset must not be negative, got {query.offset}")

        return StorageQuery(
            collection=query.model.collection,
            selector=self.build_selector(query.model, query.conditions),
            sort=self.build_sort(query.model, query.order),
            limit=query.limit,
            offset=query.offset,
        )

    def build_selector(
        self, model: ModelMetadata, conditions: tuple[Condition, ...] | list[Condition]
    ) -> dict[str, Any]:
        """Render and merge conditions; no conditions yields ``{}`` (match all)."""
        fragments = []
        for condition in conditions:
            self._check_local(model, condition.property)
            fragments.append(condition.render(self._codecs))
        return merge_fragments(fragments)

    def build_sort(self, model: ModelMetadata, order: tuple[Sort, ...]) -> list[tuple[str, int]]:
        sort: list[tuple[str, int]] = []
        for directive in order:
            self._check_local(model, directive.property)
            sort.append((directive.property.field, directive.direction.value))
        return sort

    @staticmethod
    def _check_local(model: ModelMetadata, descriptor: PropertyDescriptor) -> None:
        if not model.owns_field(descriptor):
            raise TranslationError(
                f"Property '{descriptor.name}' does not belong to model {model.name}"
            )


def translate(query: Query, codecs: CodecRegistry | None = None) -> StorageQuery:
    """Translate *query* with a one-off translator."""
    return QueryTranslator(codecs).translate(query)


def build_selector(
    model: ModelMetadata,
    conditions: tuple[Condition, ...] | list[Condition],
    codecs: CodecRegistry | None = None,
) -> dict[str, Any]:
    return QueryTranslator(codecs).build_selector(model, conditions)
