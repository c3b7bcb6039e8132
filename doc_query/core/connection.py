"""Connection configuration and driver management.

ConnectionConfig is a Pydantic model for type-safe connection config.
ConnectionManager loads the configured driver by name and owns its
connect/close lifecycle.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from pydantic import BaseModel

from doc_query.core.enums import DriverBackend
from doc_query.core.exceptions import ConnectionError  # noqa: A004

logger = logging.getLogger(__name__)


class ConnectionConfig(BaseModel):
    """Configuration for a document store connection."""

    driver: str
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str
    timeout_ms: int = 30000
    extra: dict[str, Any] = {}


# Driver module mapping: driver name -> (module_path, class_name)
_ADAPTER_MAP: dict[str, tuple[str, str]] = {
    DriverBackend.MEMORY.value: ("doc_query.adapters.memory", "MemoryDriver"),
    DriverBackend.MONGODB.value: ("doc_query.adapters.mongodb", "MongoDriver"),
}


def _load_driver(driver: str) -> Any:
    """Instantiate a driver by name."""
    driver_lower = driver.lower()
    if driver_lower not in _ADAPTER_MAP:
        raise ConnectionError(f"Unsupported storage driver: {driver}")

    module_path, cls_name = _ADAPTER_MAP[driver_lower]
    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)()
    except (ImportError, AttributeError) as e:
        raise ConnectionError(f"Failed to load driver '{driver}': {e}") from e


class ConnectionManager:
    """Owns one driver instance and connects it on first use."""

    def __init__(self, config: ConnectionConfig) -> None:
        self.config = config
        self._driver = _load_driver(config.driver)
        self._connected = False

    @property
    def driver(self) -> Any:
        if not self._connected:
            self.connect()
        return self._driver

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        """Connect the driver.

        Raises:
            ConnectionError: If the driver fails to connect.
        """
        if self._connected:
            return
        logger.debug("Connecting %s driver to database %r", self.config.driver, self.config.database)
        try:
            self._driver.connect(self.config)
        except Exception as e:
            raise ConnectionError(f"Failed to connect {self.config.driver} driver: {e}") from e
        self._connected = True

    def close(self) -> None:
        if self._connected:
            self._driver.close()
            self._connected = False

    def __enter__(self) -> ConnectionManager:
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
