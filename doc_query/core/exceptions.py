"""DocQuery exception hierarchy.

Mapping and translation errors are raised before any storage call is
issued. Raw driver exceptions are never exposed to callers: they are
re-raised as StorageError with the original kept as context.
"""

from __future__ import annotations


class DocQueryError(Exception):
    """Base exception for all DocQuery errors."""


# --- Mapping ---


class MappingError(DocQueryError):
    """Base for marshalling and model mapping errors."""


class ValidationError(MappingError):
    """Raised when a value cannot be dumped to its logical type's storage form."""

    def __init__(self, detail: str, property_name: str | None = None) -> None:
        self.property_name = property_name
        self.detail = detail
        if property_name is not None:
            super().__init__(f"Invalid value for '{property_name}': {detail}")
        else:
            super().__init__(detail)


class EmbedmentCardinalityError(MappingError):
    """Raised when a collection is assigned to a one-to-one slot or vice versa."""

    def __init__(self, embedment: str, cardinality: str, detail: str) -> None:
        self.embedment = embedment
        self.cardinality = cardinality
        super().__init__(f"Embedment '{embedment}' ({cardinality}): {detail}")


class ModelDefinitionError(MappingError):
    """Raised when a model builder fails validation during build()."""


# --- Translation ---


class TranslationError(DocQueryError):
    """Raised when a query cannot be rendered into a storage selector."""


# --- Registry ---


class RegistryError(DocQueryError):
    """Base for model and codec registry errors."""


class ModelNotFoundError(RegistryError):
    """Raised when a model name cannot be found in the registry."""

    def __init__(self, model_name: str) -> None:
        self.model_name = model_name
        super().__init__(f"Model not found: '{model_name}'")


class DuplicateModelError(RegistryError):
    """Raised when two models are registered under the same name."""

    def __init__(self, model_name: str) -> None:
        self.model_name = model_name
        super().__init__(f"Duplicate model name '{model_name}'")


class RegistryFrozenError(RegistryError):
    """Raised when a registry is mutated after bootstrap."""

    def __init__(self, registry: str) -> None:
        super().__init__(f"{registry} is frozen; registration is only allowed at startup")


# --- Execution ---


class ExecutionError(DocQueryError):
    """Base for create/read/update/delete errors."""


class NotFoundError(ExecutionError):
    """Raised when an identifier no longer matches any stored document."""

    def __init__(self, collection: str, key: object) -> None:
        self.collection = collection
        self.key = key
        super().__init__(f"No document in '{collection}' with _id {key!s}")


# --- Adapter ---


class AdapterError(DocQueryError):
    """Base for driver adapter errors."""


class StorageError(AdapterError):
    """Raised when the storage driver fails. The driver error is kept as ``original``."""

    def __init__(self, operation: str, collection: str, original: BaseException) -> None:
        self.operation = operation
        self.collection = collection
        self.original = original
        super().__init__(f"{operation} on '{collection}' failed: {original}")


class ConnectionError(AdapterError):  # noqa: A001
    """Raised on driver loading or connection failures."""
