"""Enumerations shared across the mapping and query layers."""

from __future__ import annotations

from enum import Enum


class DriverBackend(Enum):
    """Supported storage drivers."""

    MEMORY = "memory"
    MONGODB = "mongodb"


class LogicalType(Enum):
    """Closed set of property logical types, each with its own codec."""

    SCALAR = "scalar"
    IDENTIFIER = "identifier"
    REFERENCE = "reference"
    EMBEDDED_ARRAY = "embedded_array"
    EMBEDDED_MAP = "embedded_map"


class Operator(Enum):
    """Condition operators."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    NOT_IN = "nin"
    REGEX = "regex"


class Cardinality(Enum):
    """Embedment cardinality."""

    ONE = "one"
    MANY = "many"


class SortDirection(Enum):
    """Sort direction, valued as the storage engine expects."""

    ASC = 1
    DESC = -1
