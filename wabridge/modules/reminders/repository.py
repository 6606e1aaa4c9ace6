# wabridge/modules/reminders/repository.py

import re
from datetime import datetime
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from loguru import logger

from wabridge.core.errors import ValidationError
from wabridge.core.repository import BaseRepository, to_mongo_datetime
from .models import ReminderInDB, ReminderStatus

_UID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{1,128}$")

def reminders_collection(uid: str) -> str:
    """Per-user reminders collection, e.g. `users.abc123.reminders`."""
    return f"users.{uid}.reminders"

class ReminderRepository(BaseRepository[ReminderInDB]):
    model = ReminderInDB

    def __init__(self, db: AsyncIOMotorDatabase, uid: str):
        if not uid or not _UID_PATTERN.match(uid):
            raise ValidationError("Invalid UID: only letters, digits, '-' and '_' are allowed")
        self.uid = uid
        super().__init__(db, collection_name=reminders_collection(uid))

    async def list_in_range(self, start: datetime, end: datetime, limit: int) -> List[ReminderInDB]:
        """Reminders whose event falls in [start, end], oldest first, capped at `limit`."""
        query = {"event_datetime": {"$gte": to_mongo_datetime(start), "$lte": to_mongo_datetime(end)}}
        logger.debug(f"Listing reminders for uid={self.uid} between {start.isoformat()} and {end.isoformat()} (limit {limit})")
        return await self.list_by(query=query, limit=limit, sort=[("event_datetime", ASCENDING)])

    async def mark_processing(self, reminder_id: str, started_at: datetime) -> bool:
        return await self.update_fields(
            reminder_id,
            {"status": ReminderStatus.PROCESSING.value, "processing_started_at": to_mongo_datetime(started_at)},
        )
