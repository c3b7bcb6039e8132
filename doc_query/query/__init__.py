"""Query layer - conditions, translation and in-memory matching."""

from __future__ import annotations

from doc_query.query.condition import Condition, parse_criteria
from doc_query.query.matcher import matches
from doc_query.query.translator import Link, Query, QueryTranslator, Sort, StorageQuery, translate

__all__ = [
    "Condition",
    "parse_criteria",
    "matches",
    "Query",
    "Sort",
    "Link",
    "StorageQuery",
    "QueryTranslator",
    "translate",
]
