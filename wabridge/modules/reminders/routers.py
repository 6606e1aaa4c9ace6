# wabridge/modules/reminders/routers.py

from typing import Annotated

from fastapi import APIRouter, Depends, Header, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from loguru import logger

from wabridge.core.config import Settings
from wabridge.core.database import get_database
from wabridge.core.dependencies import get_app_settings
from wabridge.core.errors import ValidationError
from wabridge.core.security import reminders_api_key
from wabridge.models.api_common import ErrorResponse
from wabridge.services.jobs_client import JobQueueClient, get_job_queue_client
from .models import ProcessTodayRemindersResponse
from .repository import ReminderRepository
from .services import ReminderService

reminders_router = APIRouter()

async def get_reminder_service(
    settings: Annotated[Settings, Depends(get_app_settings)],
    job_client: Annotated[JobQueueClient, Depends(get_job_queue_client)],
) -> ReminderService:
    return ReminderService(settings, job_client)

@reminders_router.post(
    "/process-today",
    response_model=ProcessTodayRemindersResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(reminders_api_key)],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Enqueue today's due reminders for a user",
    tags=["Reminders"],
)
async def process_today_reminders(
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)],
    reminder_service: Annotated[ReminderService, Depends(get_reminder_service)],
    uid: Annotated[str | None, Header(alias="uid")] = None,
):
    """Selects today's pending reminders that are due now and enqueues each as an assistant job."""
    if not uid or not uid.strip():
        raise ValidationError("UID header is required")
    uid = uid.strip()
    logger.bind(uid=uid).info("Endpoint: processing today's reminders...")
    reminder_repo = ReminderRepository(db, uid)
    return await reminder_service.process_today_reminders(uid, reminder_repo)
