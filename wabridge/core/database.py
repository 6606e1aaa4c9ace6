# wabridge/core/database.py

from contextlib import AbstractAsyncContextManager
from typing import Generic, Optional, TypeVar

import motor.motor_asyncio
from motor.motor_asyncio import AsyncIOMotorDatabase
import redis.asyncio as redis
from fastapi import HTTPException, status
from loguru import logger

DEFAULT_DB_NAME = "wabridge"

ClientT = TypeVar("ClientT")

def db_name_from_uri(uri: str) -> str:
    """`mongodb://host:27017/reminders?authSource=admin` -> `reminders`."""
    db_name = uri.rsplit('/', 1)[-1].split('?', 1)[0]
    if not db_name or '@' in db_name or ':' in db_name or len(db_name) > 63:
        logger.warning(f"No usable database name in MongoDB URI, falling back to '{DEFAULT_DB_NAME}'")
        return DEFAULT_DB_NAME
    return db_name

class _BackendContext(AbstractAsyncContextManager, Generic[ClientT]):
    """Lifespan holder for one backend connection, opened once per process."""

    label: str = "backend"
    client: Optional[ClientT] = None

    def __init__(self, url: str | None = None):
        self.url = url

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    async def _open(self, url: str) -> ClientT:
        raise NotImplementedError

    async def _close(self, client: ClientT) -> None:
        raise NotImplementedError

    def _on_connect_failure(self, e: Exception) -> None:
        raise NotImplementedError

    async def connect(self, url: str | None = None):
        if self.is_connected:
            logger.info(f"{self.label} already connected.")
            return
        self.url = url or self.url
        if not self.url:
            raise RuntimeError(f"{self.label} URL not configured.")

        logger.info(f"Connecting to {self.label}...")
        try:
            self.client = await self._open(self.url)
            logger.success(f"{self.label} connected.")
        except Exception as e:
            self.client = None
            self._on_connect_failure(e)

    async def disconnect(self):
        if not self.is_connected:
            return
        client, self.client = self.client, None
        logger.info(f"Closing {self.label} connection...")
        try:
            await self._close(client)
            logger.info(f"{self.label} connection closed.")
        except Exception as e:
            logger.error(f"Error closing {self.label} connection: {e}")

    def _require(self) -> ClientT:
        if self.client is None:
            logger.critical(f"{self.label} requested but not connected.")
            raise RuntimeError(f"{self.label} is not connected.")
        return self.client

# --- MongoDB (reminders) ---
class MongoDbContext(_BackendContext[motor.motor_asyncio.AsyncIOMotorClient]):
    label = "MongoDB"
    db: Optional[AsyncIOMotorDatabase] = None

    async def _open(self, url: str) -> motor.motor_asyncio.AsyncIOMotorClient:
        client = motor.motor_asyncio.AsyncIOMotorClient(url, uuidRepresentation='standard', serverSelectionTimeoutMS=5000)
        await client.admin.command('ping')
        self.db = client[db_name_from_uri(url)]
        logger.info(f"Using MongoDB database '{self.db.name}'.")
        return client

    async def _close(self, client: motor.motor_asyncio.AsyncIOMotorClient) -> None:
        self.db = None
        client.close()

    def _on_connect_failure(self, e: Exception) -> None:
        # Reminders cannot be served without the document store
        self.db = None
        logger.critical(f"FATAL: Failed to connect to MongoDB: {e}")
        raise ConnectionError(f"MongoDB connection failed: {e}") from e

    def get_db(self) -> AsyncIOMotorDatabase:
        self._require()
        return self.db

mongo_manager = MongoDbContext()

# --- Redis (tag cache) ---
class RedisContext(_BackendContext[redis.Redis]):
    label = "Redis"

    async def _open(self, url: str) -> redis.Redis:
        pool = redis.ConnectionPool.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            max_connections=20,
        )
        client = redis.Redis(connection_pool=pool)
        await client.ping()
        return client

    async def _close(self, client: redis.Redis) -> None:
        await client.aclose()

    def _on_connect_failure(self, e: Exception) -> None:
        # Only the cache endpoints need Redis; they answer 503 until it is back
        logger.error(f"Could not connect to Redis, cache endpoints disabled: {e}")

    def get_client(self) -> redis.Redis:
        return self._require()

redis_manager = RedisContext()

# --- FastAPI dependencies ---

async def get_database() -> AsyncIOMotorDatabase:
    """Document store handle for request handlers (opened by the lifespan)."""
    try:
        return mongo_manager.get_db()
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"Document store unavailable: {e}")

async def get_redis_client() -> redis.Redis:
    """Tag cache client for request handlers (opened by the lifespan)."""
    try:
        return redis_manager.get_client()
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"Tag cache unavailable: {e}")
