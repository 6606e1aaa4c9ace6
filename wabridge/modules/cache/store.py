# wabridge/modules/cache/store.py

import functools
import hashlib
import json
import time
import uuid
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

import redis.asyncio as redis
from redis.exceptions import ResponseError
from loguru import logger

from .models import TagStats

TAG_PREFIX = "tag:"
# Outside TAG_PREFIX so a tag set being revalidated never shows up in listings
DETACHED_PREFIX = "revalidating:"
DEFAULT_TTL = 3600
# Tag sets outlive their entries so a late revalidation still finds them
TAG_TTL_GRACE = 300

T = TypeVar("T")

def tag_key(tag: str) -> str:
    return f"{TAG_PREFIX}{tag}"

def cache_key(function_name: str, args: Sequence[Any], prefix: str = "cache") -> str:
    """`{prefix}:{function_name}:{first 16 hex of sha256(json(args))}`."""
    args_hash = hashlib.sha256(json.dumps(list(args), default=str).encode("utf-8")).hexdigest()[:16]
    return f"{prefix}:{function_name}:{args_hash}"

class TagCacheStore:
    """
    Redis-backed cache with tag invalidation.

    Each entry is a string key holding `{data, cachedAt, tags}` with a TTL.
    Each tag is a set `tag:{tag}` of the entry keys carrying it.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    async def set(self, key: str, value: Any, ttl: int = DEFAULT_TTL, tags: Sequence[str] = ()) -> None:
        envelope = {"data": value, "cachedAt": int(time.time() * 1000), "tags": list(tags)}
        await self.client.setex(key, ttl, json.dumps(envelope, default=str))
        if tags:
            async with self.client.pipeline(transaction=False) as pipe:
                for tag in tags:
                    pipe.sadd(tag_key(tag), key)
                    pipe.expire(tag_key(tag), ttl + TAG_TTL_GRACE)
                await pipe.execute()

    async def get(self, key: str) -> Optional[Any]:
        cached = await self.client.get(key)
        if cached is None:
            return None
        try:
            return json.loads(cached)["data"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unparsable cache entry '{key}': {e}")
            return None

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    async def revalidate_tag(self, tag: str) -> int:
        """Deletes every entry tagged `tag` and the tag set itself. Returns the number of entries."""
        # RENAME detaches the set atomically; writes landing afterwards start a fresh one
        detached = f"{DETACHED_PREFIX}{tag}:{uuid.uuid4().hex}"
        try:
            await self.client.rename(tag_key(tag), detached)
        except ResponseError:
            # no such key
            return 0
        cache_keys = await self.client.smembers(detached)
        async with self.client.pipeline(transaction=True) as pipe:
            for key in cache_keys:
                pipe.delete(key)
            pipe.delete(detached)
            await pipe.execute()
        logger.info(f"Revalidated tag '{tag}': {len(cache_keys)} entries deleted")
        return len(cache_keys)

    async def get_tag_stats(self, tag: str) -> TagStats:
        cache_keys = await self.client.smembers(tag_key(tag))
        return TagStats(tag=tag, cache_keys=sorted(cache_keys), count=len(cache_keys))

    async def get_all_tags(self) -> List[str]:
        # SCAN instead of KEYS so a large keyspace never blocks Redis
        return [key[len(TAG_PREFIX):] async for key in self.client.scan_iter(match=f"{TAG_PREFIX}*", count=500)]

def cached(
    store: TagCacheStore,
    function_name: str,
    ttl: int = DEFAULT_TTL,
    tags: Sequence[str] = (),
    prefix: str = "cache",
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Caches an async function's result under a key derived from its arguments.

        @cached(store, "fetch_properties", ttl=600, tags=["properties"])
        async def fetch_properties(uid): ...
    """
    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs) -> T:
            key = cache_key(function_name, [*args, kwargs] if kwargs else list(args), prefix)
            hit = await store.get(key)
            if hit is not None:
                logger.debug(f"Cache hit for {function_name}")
                return hit
            logger.debug(f"Cache miss for {function_name}, executing function")
            result = await fn(*args, **kwargs)
            await store.set(key, result, ttl=ttl, tags=tags)
            return result
        return wrapper
    return decorator
