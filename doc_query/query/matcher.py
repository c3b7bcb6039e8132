"""In-memory selector evaluation.

Evaluates the selectors produced by the translator against plain
documents, following document-store matching rules: a field holding an
array matches when the array itself or any of its elements matches, a
missing field equals ``None``, and ordering comparisons only succeed
between values of the same kind.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable, Iterator, Mapping
from datetime import datetime
from typing import Any

from bson import ObjectId

from doc_query.core.exceptions import TranslationError

_REGEX_OPTIONS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}

_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
}


def matches(document: Mapping[str, Any], selector: Mapping[str, Any]) -> bool:
    """Return True if *document* satisfies *selector*.

    Raises:
        TranslationError: If the selector uses an unsupported operator.
    """
    for key, condition in selector.items():
        if key == "$and":
            if not all(matches(document, sub) for sub in condition):
                return False
            continue
        if key.startswith("$"):
            raise TranslationError(f"Unsupported top-level operator '{key}'")
        if not _match_field(resolve_path(document, key), condition):
            return False
    return True


def resolve_path(document: Mapping[str, Any], path: str) -> list[Any]:
    """Collect the values at a dotted *path*; arrays along the path fan out."""
    current: list[Any] = [document]
    for part in path.split("."):
        found: list[Any] = []
        for value in current:
            if isinstance(value, Mapping):
                if part in value:
                    found.append(value[part])
            elif isinstance(value, list):
                if part.isdigit():
                    index = int(part)
                    if index < len(value):
                        found.append(value[index])
                else:
                    found.extend(
                        item[part]
                        for item in value
                        if isinstance(item, Mapping) and part in item
                    )
        current = found
    return current


def _is_operator_document(condition: Any) -> bool:
    return (
        isinstance(condition, Mapping)
        and bool(condition)
        and all(isinstance(key, str) and key.startswith("$") for key in condition)
    )


def _match_field(values: list[Any], condition: Any) -> bool:
    if not _is_operator_document(condition):
        return _equals_any(values, condition)
    options = condition.get("$options", "")
    return all(
        _apply(op, values, operand, options)
        for op, operand in condition.items()
        if op != "$options"
    )


def _apply(op: str, values: list[Any], operand: Any, options: str) -> bool:
    if op == "$eq":
        return _equals_any(values, operand)
    if op == "$ne":
        return not _equals_any(values, operand)
    if op == "$in":
        return any(_equals_any(values, item) for item in operand)
    if op == "$nin":
        return not any(_equals_any(values, item) for item in operand)
    if op in _COMPARATORS:
        compare = _COMPARATORS[op]
        return any(_compare(value, operand, compare) for value in _flatten(values))
    if op == "$regex":
        pattern = _compile(operand, options)
        return any(isinstance(value, str) and pattern.search(value) for value in _flatten(values))
    if op == "$exists":
        return bool(values) == bool(operand)
    raise TranslationError(f"Unsupported operator '{op}'")


def _compile(operand: Any, options: str) -> re.Pattern[str]:
    if isinstance(operand, re.Pattern):
        return operand
    flags = 0
    for letter in options:
        flags |= _REGEX_OPTIONS.get(letter, 0)
    return re.compile(operand, flags)


def _flatten(values: list[Any]) -> Iterator[Any]:
    for value in values:
        if isinstance(value, list):
            yield from value
        else:
            yield value


def _equals_any(values: list[Any], operand: Any) -> bool:
    if not values:
        return operand is None
    for value in values:
        if deep_equal(value, operand):
            return True
        if isinstance(value, list) and any(deep_equal(item, operand) for item in value):
            return True
    return False


def deep_equal(left: Any, right: Any) -> bool:
    """Structural equality that keeps booleans and numbers apart.

    Mapping keys must appear in the same order, as in MongoDB document
    comparison.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return list(left.keys()) == list(right.keys()) and all(
            deep_equal(left[key], right[key]) for key in left
        )
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(
            deep_equal(a, b) for a, b in zip(left, right, strict=True)
        )
    if isinstance(left, (Mapping, list)) or isinstance(right, (Mapping, list)):
        return False
    return bool(left == right)


def _kind(value: Any) -> str | None:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, datetime):
        return "datetime"
    if isinstance(value, ObjectId):
        return "objectid"
    return None


def _compare(value: Any, operand: Any, compare: Callable[[Any, Any], bool]) -> bool:
    kind = _kind(value)
    if kind is None or kind != _kind(operand):
        return False
    return bool(compare(value, operand))
