# wabridge/api/endpoints/status.py
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Response, status as http_status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field
from redis.asyncio import Redis
from loguru import logger

from wabridge.core.database import mongo_manager, redis_manager

STARTED_AT = time.monotonic()

class ComponentStatus(BaseModel):
    status: Literal["ok", "error"] = "ok"
    message: Optional[str] = None

class HealthCheckResponse(BaseModel):
    overall_status: Literal["ok", "error"] = "ok"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    uptime_seconds: float = Field(..., description="Seconds since the process started")
    components: Dict[str, ComponentStatus]

router = APIRouter()

# Missing connections are reported in the payload rather than short-circuited to 503
async def get_optional_database() -> Optional[AsyncIOMotorDatabase]:
    return mongo_manager.db

async def get_optional_redis() -> Optional[Redis]:
    return redis_manager.client

async def probe(component: str, ping: Optional[Callable[[], Awaitable]]) -> ComponentStatus:
    if ping is None:
        logger.error(f"Health: {component} client not available.")
        return ComponentStatus(status="error", message=f"{component} client not available")
    try:
        await ping()
    except Exception as e:
        logger.error(f"Health: {component} ping failed: {e}")
        return ComponentStatus(status="error", message=f"{component} ping failed: {e}")
    return ComponentStatus()

@router.get(
    "/healthcheck",
    response_model=HealthCheckResponse,
    tags=["Status & Health"],
    summary="Document store and tag cache reachability",
)
async def healthcheck(
    db: Optional[AsyncIOMotorDatabase] = Depends(get_optional_database),
    redis: Optional[Redis] = Depends(get_optional_redis),
):
    probes = {
        "database_mongodb": ("MongoDB", (lambda: db.command("ping")) if db is not None else None),
        "cache_redis": ("Redis", redis.ping if redis is not None else None),
    }
    components = {key: await probe(label, ping) for key, (label, ping) in probes.items()}
    healthy = all(c.status == "ok" for c in components.values())

    payload = HealthCheckResponse(
        overall_status="ok" if healthy else "error",
        uptime_seconds=round(time.monotonic() - STARTED_AT, 3),
        components=components,
    )
    if not healthy:
        logger.warning(f"Healthcheck degraded: {[k for k, c in components.items() if c.status != 'ok']}")
    return Response(
        content=payload.model_dump_json(exclude_none=True),
        status_code=http_status.HTTP_200_OK if healthy else http_status.HTTP_503_SERVICE_UNAVAILABLE,
        media_type="application/json",
    )
