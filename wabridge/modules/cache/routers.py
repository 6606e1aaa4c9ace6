# wabridge/modules/cache/routers.py

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
import redis.asyncio as redis
from loguru import logger

from wabridge.core.config import Settings
from wabridge.core.database import get_redis_client
from wabridge.core.dependencies import get_app_settings
from wabridge.core.errors import UpstreamError
from wabridge.core.security import cache_api_key_from_request, require_api_key
from wabridge.models.api_common import ErrorResponse
from .models import (
    AllTagsResponse,
    CacheStats,
    CacheStatsResponse,
    RevalidateCacheRequest,
    RevalidateCacheResponse,
    TagStatsResponse,
)
from .services import CacheService, parse_revalidation_target
from .store import TagCacheStore

cache_router = APIRouter()

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}

async def get_tag_cache_store(client: Annotated[redis.Redis, Depends(get_redis_client)]) -> TagCacheStore:
    return TagCacheStore(client)

async def get_cache_service(
    settings: Annotated[Settings, Depends(get_app_settings)],
    store: Annotated[TagCacheStore, Depends(get_tag_cache_store)],
) -> CacheService:
    return CacheService(store, stats_concurrency=settings.CACHE_STATS_CONCURRENCY)

@cache_router.post(
    "/revalidate",
    response_model=RevalidateCacheResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    responses=_ERROR_RESPONSES,
    summary="Invalidate cache entries by tag",
    tags=["Cache"],
)
async def revalidate_cache(
    body: RevalidateCacheRequest,
    settings: Annotated[Settings, Depends(get_app_settings)],
    cache_service: Annotated[CacheService, Depends(get_cache_service)],
):
    require_api_key(body.api_key, settings.CACHE_API_KEY, scope="cache")
    target = parse_revalidation_target(body.tag, body.tags)

    result = await cache_service.revalidate(target)
    if result.failed_tags and not result.revalidated_tags:
        raise UpstreamError(f"Failed to revalidate tags: {', '.join(f.tag for f in result.failed_tags)}")

    message = (
        f"Successfully revalidated {len(result.revalidated_tags)} tag(s), "
        f"deleted {result.deleted_entries} cache entries"
    )
    if result.failed_tags:
        message += f"; {len(result.failed_tags)} tag(s) failed"
    logger.info(message)
    return RevalidateCacheResponse(
        success=True,
        revalidated_tags=result.revalidated_tags,
        deleted_entries=result.deleted_entries,
        message=message,
        failed_tags=result.failed_tags or None,
    )

@cache_router.get(
    "/revalidate",
    response_model=AllTagsResponse,
    dependencies=[Depends(cache_api_key_from_request)],
    responses=_ERROR_RESPONSES,
    summary="List every cache tag",
    tags=["Cache"],
)
async def get_all_tags(cache_service: Annotated[CacheService, Depends(get_cache_service)]):
    all_tags = await cache_service.get_all_tags()
    return AllTagsResponse(tags=all_tags, count=len(all_tags))

@cache_router.get(
    "/stats",
    response_model=TagStatsResponse | CacheStatsResponse,
    dependencies=[Depends(cache_api_key_from_request)],
    responses=_ERROR_RESPONSES,
    summary="Cache statistics, overall or for one tag",
    tags=["Cache"],
)
async def get_cache_stats(
    cache_service: Annotated[CacheService, Depends(get_cache_service)],
    tag: Annotated[Optional[str], Query()] = None,
):
    stats = await cache_service.get_cache_stats(tag)
    if isinstance(stats, CacheStats):
        return CacheStatsResponse(**stats.model_dump())
    return TagStatsResponse(**stats.model_dump())
