"""Model registry.

Holds built ModelMetadata by name and by collection. The registry is
write-once at startup and read-only afterwards: ``freeze()`` ends the
bootstrap phase (creating an Engine freezes the registry it is given).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from doc_query.core.exceptions import (
    DuplicateModelError,
    ModelNotFoundError,
    RegistryFrozenError,
)

if TYPE_CHECKING:
    from doc_query.mapping.descriptors import ModelMetadata


class ModelRegistry:
    """Registry of built models.

    Example:
        registry = ModelRegistry()
        model(User).key().property("name").build(registry)
        registry.freeze()
        registry.get("User")
    """

    __slots__ = ("_by_name", "_by_collection", "_frozen")

    def __init__(self) -> None:
        self._by_name: dict[str, ModelMetadata] = {}
        self._by_collection: dict[str, ModelMetadata] = {}
        self._frozen = False

    def register(self, metadata: ModelMetadata) -> None:
        """Register a model.

        Raises:
            RegistryFrozenError: If the registry has been frozen.
            DuplicateModelError: If the name is already registered.
        """
        if self._frozen:
            raise RegistryFrozenError("ModelRegistry")
        if metadata.name in self._by_name:
            raise DuplicateModelError(metadata.name)
        self._by_name[metadata.name] = metadata
        if metadata.collection:
            self._by_collection[metadata.collection] = metadata

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> ModelMetadata:
        """Look up a model by name.

        Raises:
            ModelNotFoundError: If no model is registered under *name*.
        """
        try:
            return self._by_name[name]
        except KeyError:
            raise ModelNotFoundError(name) from None

    def get_by_collection(self, collection: str) -> ModelMetadata:
        try:
            return self._by_collection[collection]
        except KeyError:
            raise ModelNotFoundError(collection) from None

    def has(self, name: str) -> bool:
        return name in self._by_name

    def resolve(self, target: Any) -> ModelMetadata:
        """Resolve a resource class, ModelMetadata or registered name to metadata."""
        if isinstance(target, str):
            return self.get(target)
        metadata = getattr(target, "__model__", target)
        if metadata is None or not hasattr(metadata, "properties"):
            raise ModelNotFoundError(repr(target))
        return metadata

    @property
    def names(self) -> list[str]:
        """Registered model names, sorted alphabetically."""
        return sorted(self._by_name)

    def __len__(self) -> int:
        return len(self._by_name)


# Global model registry instance
model_registry = ModelRegistry()
