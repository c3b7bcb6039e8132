"""MongoDB driver using pymongo."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote_plus

from bson import ObjectId

from doc_query.core.connection import ConnectionConfig

logger = logging.getLogger(__name__)


def _build_uri(config: ConnectionConfig) -> str:
    """Build a ``mongodb://`` URI from config fields."""
    credentials = ""
    if config.user is not None:
        credentials = quote_plus(config.user)
        if config.password is not None:
            credentials += ":" + quote_plus(config.password)
        credentials += "@"
    host = config.host or "localhost"
    port = f":{config.port}" if config.port is not None else ""
    return f"mongodb://{credentials}{host}{port}/"


class MongoDriver:
    """Driver for a MongoDB server via pymongo."""

    def __init__(self) -> None:
        self._client: Any = None
        self._db: Any = None

    def connect(self, config: ConnectionConfig) -> None:
        import pymongo

        self._client = pymongo.MongoClient(
            _build_uri(config),
            serverSelectionTimeoutMS=config.timeout_ms,
            **config.extra,
        )
        self._db = self._client[config.database]
        logger.debug("Connected to MongoDB database %r", config.database)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
        self._client = None
        self._db = None

    def _collection(self, name: str) -> Any:
        if self._db is None:
            raise RuntimeError("MongoDB driver is not connected")
        return self._db[name]

    def find(
        self,
        collection: str,
        selector: dict[str, Any],
        sort: list[tuple[str, int]] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        cursor = self._collection(collection).find(selector, skip=offset)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def insert(self, collection: str, document: dict[str, Any]) -> ObjectId:
        result = self._collection(collection).insert_one(dict(document))
        return result.inserted_id  # type: ignore[no-any-return]

    def update(self, collection: str, selector: dict[str, Any], document: dict[str, Any]) -> int:
        target = self._collection(collection)
        if document and all(key.startswith("$") for key in document):
            return int(target.update_many(selector, document).matched_count)
        return int(target.replace_one(selector, document).matched_count)

    def remove(self, collection: str, selector: dict[str, Any]) -> int:
        return int(self._collection(collection).delete_many(selector).deleted_count)

    def drop_collection(self, collection: str) -> None:
        if self._db is None:
            raise RuntimeError("MongoDB driver is not connected")
        self._db.drop_collection(collection)
