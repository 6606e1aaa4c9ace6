# wabridge/modules/cache/services.py

import asyncio
from typing import Any, List, Optional, Sequence

from redis.exceptions import RedisError
from loguru import logger

from wabridge.core.errors import UpstreamError, ValidationError
from .models import (
    CacheStats,
    MultipleTags,
    RevalidationTarget,
    SingleTag,
    TagFailure,
    TagStats,
    TagsRevalidation,
)
from .store import TagCacheStore

def parse_revalidation_target(tag: Any, tags: Any) -> RevalidationTarget:
    """Validates the "tag or tags" request shape once, at the boundary."""
    if not tag and tags is None:
        raise ValidationError('Bad Request: Must provide either "tag" or "tags"')
    if tag:
        if not isinstance(tag, str):
            raise ValidationError('Bad Request: "tag" must be a string')
        return SingleTag(tag=tag)
    if not isinstance(tags, list):
        raise ValidationError('Bad Request: "tags" must be an array')
    if not all(isinstance(t, str) and t for t in tags):
        raise ValidationError('Bad Request: "tags" must only contain non-empty strings')
    return MultipleTags(tags=tags)

class CacheService:
    """Tag-scoped invalidation and inspection over the tag cache store."""

    def __init__(self, store: TagCacheStore, stats_concurrency: int = 10):
        self.store = store
        self.stats_concurrency = stats_concurrency

    async def revalidate_tag(self, tag: str) -> int:
        if not tag:
            raise ValidationError("Tag must be a non-empty string")
        try:
            return await self.store.revalidate_tag(tag)
        except RedisError as e:
            logger.bind(service="CacheService", tag=tag).error(f"Redis error revalidating tag: {e}")
            raise UpstreamError(f"Cache store error revalidating tag '{tag}'") from e

    async def revalidate_tags(self, tags: Sequence[str]) -> TagsRevalidation:
        """Revalidates each tag independently; failures are collected, not raised."""
        result = TagsRevalidation()
        for tag in tags:
            try:
                result.deleted_entries += await self.revalidate_tag(tag)
                result.revalidated_tags.append(tag)
            except (UpstreamError, ValidationError) as e:
                result.failed_tags.append(TagFailure(tag=tag, error=e.message))
        if result.failed_tags:
            logger.bind(service="CacheService").warning(
                f"{len(result.failed_tags)} of {len(tags)} tag(s) failed to revalidate: {[f.tag for f in result.failed_tags]}"
            )
        return result

    async def revalidate(self, target: RevalidationTarget) -> TagsRevalidation:
        if isinstance(target, SingleTag):
            deleted = await self.revalidate_tag(target.tag)
            return TagsRevalidation(deleted_entries=deleted, revalidated_tags=[target.tag])
        return await self.revalidate_tags(target.tags)

    async def get_all_tags(self) -> List[str]:
        try:
            return await self.store.get_all_tags()
        except RedisError as e:
            logger.bind(service="CacheService").error(f"Redis error listing tags: {e}")
            raise UpstreamError("Cache store error listing tags") from e

    async def get_tag_stats(self, tag: str) -> TagStats:
        try:
            return await self.store.get_tag_stats(tag)
        except RedisError as e:
            logger.bind(service="CacheService", tag=tag).error(f"Redis error reading tag stats: {e}")
            raise UpstreamError(f"Cache store error reading stats for tag '{tag}'") from e

    async def get_cache_stats(self, tag: Optional[str] = None) -> TagStats | CacheStats:
        if tag:
            return await self.get_tag_stats(tag)

        all_tags = await self.get_all_tags()
        semaphore = asyncio.Semaphore(self.stats_concurrency)

        async def bounded_stats(t: str) -> TagStats:
            async with semaphore:
                return await self.get_tag_stats(t)

        results = await asyncio.gather(*(bounded_stats(t) for t in all_tags), return_exceptions=True)
        # Every lookup has settled; surface the first failure
        for result in results:
            if isinstance(result, BaseException):
                raise result
        all_stats: List[TagStats] = list(results)
        return CacheStats(
            tags=all_stats,
            total_tags=len(all_stats),
            total_cache_entries=sum(s.count for s in all_stats),
        )
