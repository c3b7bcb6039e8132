"""Conditions and selector fragment rendering.

A Condition is one predicate on one property. Operands are dumped through
the codec registry before rendering, so custom-typed operands (identifiers,
references, embedded structures) are compared in their storage form.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from doc_query.core.codecs import CodecRegistry, default_codecs
from doc_query.core.enums import LogicalType, Operator
from doc_query.core.exceptions import TranslationError, ValidationError

if TYPE_CHECKING:
    from doc_query.mapping.descriptors import ModelMetadata, PropertyDescriptor

_OPERATOR_KEYS: dict[Operator, str] = {
    Operator.EQ: "$eq",
    Operator.NE: "$ne",
    Operator.GT: "$gt",
    Operator.GTE: "$gte",
    Operator.LT: "$lt",
    Operator.LTE: "$lte",
    Operator.IN: "$in",
    Operator.NOT_IN: "$nin",
    Operator.REGEX: "$regex",
}

_MEMBERSHIP = frozenset({Operator.IN, Operator.NOT_IN})
_EQUALITY = frozenset({Operator.EQ, Operator.NE}) | _MEMBERSHIP

SUPPORTED_OPERATORS: dict[LogicalType, frozenset[Operator]] = {
    LogicalType.SCALAR: frozenset(Operator),
    LogicalType.IDENTIFIER: frozenset(Operator) - {Operator.REGEX},
    LogicalType.REFERENCE: _EQUALITY,
    LogicalType.EMBEDDED_ARRAY: _EQUALITY,
    LogicalType.EMBEDDED_MAP: _EQUALITY,
}

_CRITERIA_OPERATORS: dict[str, Operator] = {
    "eq": Operator.EQ,
    "ne": Operator.NE,
    "not": Operator.NE,
    "gt": Operator.GT,
    "gte": Operator.GTE,
    "lt": Operator.LT,
    "lte": Operator.LTE,
    "in": Operator.IN,
    "nin": Operator.NOT_IN,
    "regex": Operator.REGEX,
}

_REGEX_FLAGS = ((re.IGNORECASE, "i"), (re.MULTILINE, "m"), (re.DOTALL, "s"), (re.VERBOSE, "x"))


def _regex_operand(operand: Any) -> tuple[str, str]:
    """Return ``(pattern, options)`` for a string or compiled pattern."""
    if isinstance(operand, re.Pattern):
        options = "".join(letter for flag, letter in _REGEX_FLAGS if operand.flags & flag)
        return operand.pattern, options
    if isinstance(operand, str):
        return operand, ""
    raise ValidationError(f"regex operand must be a string or pattern, got {type(operand).__name__}")


@dataclass(frozen=True)
class Condition:
    """A single predicate: property, operator, operand."""

    property: PropertyDescriptor
    operator: Operator
    operand: Any

    def check(self) -> None:
        """Raise TranslationError if the operator is unsupported for the property type."""
        supported = SUPPORTED_OPERATORS[self.property.logical_type]
        if self.operator not in supported:
            raise TranslationError(
                f"Operator '{self.operator.value}' is not supported for "
                f"{self.property.logical_type.value} property '{self.property.name}'"
            )

    def dump_operand(self, codecs: CodecRegistry | None = None) -> Any:
        """Validate the operator and dump the operand to its storage form."""
        codecs = codecs or default_codecs
        self.check()
        if self.operator is Operator.REGEX:
            return _regex_operand(self.operand)
        if self.operator in _MEMBERSHIP:
            if not isinstance(self.operand, (list, tuple, set, frozenset)):
                raise TranslationError(
                    f"Operator '{self.operator.value}' on '{self.property.name}' "
                    "requires a list operand"
                )
            return [self._dump_member(item, codecs) for item in self.operand]
        return codecs.dump_operand(self.property, self.operand)

    def _dump_member(self, item: Any, codecs: CodecRegistry) -> Any:
        # Membership on an array tests its elements, not the array itself.
        if self.property.logical_type is LogicalType.EMBEDDED_ARRAY:
            return codecs.dump_value(item)
        return codecs.dump_operand(self.property, item)

    def render(self, codecs: CodecRegistry | None = None) -> tuple[str, Any]:
        return render_fragment(self.property, self.operator, self.dump_operand(codecs))


def _explicit_equality(descriptor: PropertyDescriptor, dumped: Any) -> bool:
    return (
        descriptor.is_collection
        or descriptor.logical_type is LogicalType.REFERENCE
        or isinstance(dumped, (Mapping, list))
    )


def render_fragment(
    descriptor: PropertyDescriptor, operator: Operator, dumped_operand: Any
) -> tuple[str, Any]:
    """Render one condition into a ``(field, fragment)`` pair.

    Equality on a plain value renders as the value itself; every other
    operator renders as an operator-tagged sub-document. Equality against
    a structured value uses ``$eq`` so it is a deep-equality match.
    """
    if operator is Operator.EQ and not _explicit_equality(descriptor, dumped_operand):
        return descriptor.field, dumped_operand
    if operator is Operator.REGEX:
        pattern, options = dumped_operand
        fragment: dict[str, Any] = {"$regex": pattern}
        if options:
            fragment["$options"] = options
        return descriptor.field, fragment
    return descriptor.field, {_OPERATOR_KEYS[operator]: dumped_operand}


def _as_operators(fragment: Any) -> dict[str, Any]:
    if is_operator_fragment(fragment):
        return dict(fragment)
    return {"$eq": fragment}


def is_operator_fragment(fragment: Any) -> bool:
    """Return True if *fragment* is an operator-tagged sub-document."""
    return (
        isinstance(fragment, Mapping)
        and bool(fragment)
        and all(isinstance(key, str) and key.startswith("$") for key in fragment)
    )


def merge_fragments(fragments: list[tuple[str, Any]]) -> dict[str, Any]:
    """Combine rendered fragments into one selector.

    Fragments on the same field are merged into one operator sub-document.
    When a field already carries the same operator key, the extra fragment
    goes into a top-level ``$and`` list instead of overwriting it.
    """
    selector: dict[str, Any] = {}
    overflow: list[dict[str, Any]] = []

    for field, fragment in fragments:
        if field not in selector:
            selector[field] = fragment
            continue

        current = _as_operators(selector[field])
        incoming = _as_operators(fragment)
        if current.keys() & incoming.keys():
            overflow.append({field: fragment})
            continue
        # $options belongs to $regex and never collides on its own
        current.update(incoming)
        selector[field] = current

    if overflow:
        selector["$and"] = overflow
    return selector


def _split_criterion(key: str) -> tuple[str, str]:
    name, sep, suffix = key.rpartition("__")
    if sep and name and suffix in _CRITERIA_OPERATORS:
        return name, suffix
    return key, "eq"


def parse_criteria(model: ModelMetadata, criteria: Mapping[str, Any]) -> list[Condition]:
    """Build Conditions from ``name`` / ``name__op`` keyword criteria.

    An ``eq`` with a list operand becomes ``in`` and ``not`` with a list
    becomes ``nin``, unless the property itself holds a collection. An
    ``eq`` with a compiled pattern becomes ``regex``.

    Raises:
        TranslationError: If a property or operator name is unknown.
    """
    conditions: list[Condition] = []
    for key, value in criteria.items():
        name, op_name = _split_criterion(key)
        prop = model.query_property(name)
        operator = _CRITERIA_OPERATORS[op_name]

        is_list = isinstance(value, (list, tuple, set, frozenset))
        if operator is Operator.EQ and isinstance(value, re.Pattern):
            operator = Operator.REGEX
        elif is_list and not prop.is_collection:
            if op_name == "eq":
                operator = Operator.IN
            elif op_name == "not":
                operator = Operator.NOT_IN

        conditions.append(Condition(prop, operator, value))
    return conditions
