"""Shared test fixtures."""

from __future__ import annotations

import pytest

from doc_query.core.codecs import CodecRegistry
from doc_query.core.connection import ConnectionConfig, ConnectionManager
from doc_query.core.engine import Engine
from doc_query.core.registry import ModelRegistry


@pytest.fixture
def memory_config() -> ConnectionConfig:
    """In-process memory driver config."""
    return ConnectionConfig(driver="memory", database="test")


@pytest.fixture
def codecs() -> CodecRegistry:
    """A fresh codec registry, so freezing in one test never leaks into another."""
    return CodecRegistry()


@pytest.fixture
def registry() -> ModelRegistry:
    return ModelRegistry()


@pytest.fixture
def make_engine(memory_config: ConnectionConfig, codecs: CodecRegistry):
    """Build an Engine over the memory driver.

    Usage:
        engine = make_engine(registry)
    """
    engines: list[Engine] = []

    def _make(registry: ModelRegistry | None = None) -> Engine:
        engine = Engine(ConnectionManager(memory_config), registry, codecs)
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.close()
