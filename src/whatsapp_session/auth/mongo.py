"""Auth state stored in a MongoDB collection."""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from bson.binary import Binary
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from ..config import AuthStoreConfig
from ..exceptions import PersistenceError
from .state import KeyedAuthStateProvider

logger = logging.getLogger(__name__)


def normalize_binary(data: Any) -> Any:
    """
    Recursively convert driver binary wrappers into plain ``bytes``.

    Dicts and lists are rebuilt at every depth; other values pass through.
    """
    if isinstance(data, (Binary, bytearray, memoryview)):
        return bytes(data)
    if isinstance(data, dict):
        return {key: normalize_binary(value) for key, value in data.items()}
    if isinstance(data, list):
        return [normalize_binary(value) for value in data]
    return data


class MongoConnection:
    """
    Lazily connected MongoDB client handle.

    The client is created on the first ``get_client()`` and dropped by
    ``close()``, after which the next ``get_client()`` connects again.
    """

    def __init__(
        self,
        url: str,
        client_factory: Callable[[str], Any] = AsyncMongoClient,
    ) -> None:
        self.url = url
        self._client_factory = client_factory
        self._client: Optional[Any] = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def get_client(self) -> Any:
        """Get the connected client, connecting on first use."""
        async with self._lock:
            if self._client is None:
                client = self._client_factory(self.url)
                await client.aconnect()
                self._client = client
                logger.info("MongoDB client connected")
        return self._client

    async def close(self) -> None:
        """Close the client and return to the unconnected state."""
        client, self._client = self._client, None
        if client is not None:
            await client.close()
            logger.info("MongoDB connection closed")


class MongoAuthState(KeyedAuthStateProvider):
    """
    Document-store backend.

    Every record is ``{"key": <key>, "data": <payload>}`` in one collection;
    the credentials use the key ``"creds"``.

    Example:
        >>> provider = MongoAuthState(
        ...     AuthStoreConfig(url="mongodb://localhost:27017"),
        ...     bindings.init_auth_creds,
        ... )
        >>> state = await provider.load()
    """

    def __init__(
        self,
        store_config: AuthStoreConfig,
        init_creds: Callable[[], Dict[str, Any]],
        decode_app_state_sync_key: Optional[Callable[[Any], Any]] = None,
        connection: Optional[MongoConnection] = None,
    ) -> None:
        """
        Initialize the document-store backend.

        Args:
            store_config: URL, database and collection names
            init_creds: Creates fresh credentials when none are stored
            decode_app_state_sync_key: Decoder for app-state-sync-key payloads
            connection: Connection handle (default: new handle for the URL)
        """
        super().__init__(init_creds, decode_app_state_sync_key)
        self.database_name = store_config.database_name
        self.collection_name = store_config.collection_name
        self.connection = connection or MongoConnection(store_config.url)

    async def _database(self) -> Any:
        client = await self.connection.get_client()
        return client[self.database_name]

    async def _collection(self) -> Any:
        database = await self._database()
        return database[self.collection_name]

    async def read_data(self, key: str) -> Any:
        try:
            collection = await self._collection()
            result = await collection.find_one({"key": key})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to read {key}: {e}", e) from e
        return normalize_binary(result["data"]) if result else None

    async def write_data(self, data: Any, key: str) -> None:
        try:
            collection = await self._collection()
            await collection.update_one(
                {"key": key}, {"$set": {"key": key, "data": data}}, upsert=True
            )
        except PyMongoError as e:
            raise PersistenceError(f"Failed to write {key}: {e}", e) from e

    async def remove_data(self, key: str) -> None:
        try:
            collection = await self._collection()
            await collection.delete_one({"key": key})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to delete {key}: {e}", e) from e

    async def destroy(self) -> None:
        """Drop the collection if present, then release the connection."""
        try:
            database = await self._database()
            names = await database.list_collection_names(
                filter={"name": self.collection_name}
            )
            if names:
                await database.drop_collection(self.collection_name)
                logger.info(f"Collection '{self.collection_name}' dropped")
            else:
                logger.info(f"Collection '{self.collection_name}' does not exist")
        except PyMongoError as e:
            raise PersistenceError(
                f"Failed to drop collection {self.collection_name}: {e}", e
            ) from e
        finally:
            await self.connection.close()
