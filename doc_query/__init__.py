"""DocQuery - resource mapping and query translation for document stores."""

from __future__ import annotations

from doc_query.core.codecs import CodecRegistry, default_codecs
from doc_query.core.connection import ConnectionConfig, ConnectionManager
from doc_query.core.engine import Engine
from doc_query.core.enums import Cardinality, DriverBackend, LogicalType, Operator, SortDirection
from doc_query.core.exceptions import (
    AdapterError,
    ConnectionError,  # noqa: A004
    DocQueryError,
    DuplicateModelError,
    EmbedmentCardinalityError,
    ExecutionError,
    MappingError,
    ModelDefinitionError,
    ModelNotFoundError,
    NotFoundError,
    RegistryError,
    RegistryFrozenError,
    StorageError,
    TranslationError,
    ValidationError,
)
from doc_query.core.registry import ModelRegistry, model_registry
from doc_query.core.types import Identifier, Reference, new_identifier, to_identifier
from doc_query.mapping.builder import embedded_model, model
from doc_query.mapping.resource import EmbeddedResource, Resource
from doc_query.query.condition import Condition
from doc_query.query.translator import Query, QueryTranslator
from doc_query.repository.base import Repository

__all__ = [
    # Connection
    "ConnectionConfig",
    "ConnectionManager",
    # Engine
    "Engine",
    # Registries
    "ModelRegistry",
    "model_registry",
    "CodecRegistry",
    "default_codecs",
    # Values
    "Identifier",
    "Reference",
    "new_identifier",
    "to_identifier",
    # Mapping
    "model",
    "embedded_model",
    "Resource",
    "EmbeddedResource",
    # Query
    "Condition",
    "Query",
    "QueryTranslator",
    # Repository
    "Repository",
    # Enums
    "DriverBackend",
    "LogicalType",
    "Operator",
    "Cardinality",
    "SortDirection",
    # Exceptions
    "DocQueryError",
    "MappingError",
    "ValidationError",
    "EmbedmentCardinalityError",
    "ModelDefinitionError",
    "TranslationError",
    "RegistryError",
    "ModelNotFoundError",
    "DuplicateModelError",
    "RegistryFrozenError",
    "ExecutionError",
    "NotFoundError",
    "AdapterError",
    "StorageError",
    "ConnectionError",
]
