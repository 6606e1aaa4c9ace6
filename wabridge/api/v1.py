# wabridge/api/v1.py
from fastapi import APIRouter

from wabridge.api.endpoints import status
from wabridge.modules.cache.routers import cache_router
from wabridge.modules.reminders.routers import reminders_router

api_router = APIRouter()

api_router.include_router(status.router)
api_router.include_router(reminders_router, prefix="/reminders")
api_router.include_router(cache_router, prefix="/cache")
