# wabridge/modules/reminders/models.py

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

from wabridge.models.api_common import CamelModel

class ReminderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"

# Already picked up by a previous run or delivered
SKIPPED_STATUSES = frozenset({ReminderStatus.PROCESSING.value, ReminderStatus.SENT.value})

class Customer(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None

class ReminderInDB(BaseModel):
    id: str = Field(..., alias="_id")
    user_id: Optional[str] = None
    to_remember: Optional[str] = None
    event_datetime: datetime
    status: Optional[str] = None
    customer: Optional[Customer] = None
    processing_started_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v):
        return str(v) if isinstance(v, ObjectId) else v

    @property
    def effective_status(self) -> str:
        return self.status or ReminderStatus.PENDING.value

# --- Job payload sent to the assistant through the jobs service ---

class ActivateAgentData(CamelModel):
    uid: Optional[str] = None
    session: Optional[str] = None
    user_phone: Optional[str] = None
    user_name: Optional[str] = None
    assistant_message: str
    reminder_id: str

    def missing_fields(self) -> List[str]:
        required = {"uid": self.uid, "session": self.session, "userPhone": self.user_phone, "userName": self.user_name}
        return [name for name, value in required.items() if not value]

# --- Per-reminder outcomes ---

class QueuedJob(CamelModel):
    reminder_id: str
    job_id: str
    customer_phone: Optional[str] = None
    customer_name: Optional[str] = None
    to_remember: Optional[str] = None

class Enqueued(BaseModel):
    kind: Literal["enqueued"] = "enqueued"
    job: QueuedJob

class SkippedIncomplete(BaseModel):
    kind: Literal["skipped_incomplete"] = "skipped_incomplete"
    reminder_id: str
    missing_fields: List[str]

class Failed(BaseModel):
    kind: Literal["failed"] = "failed"
    reminder_id: str
    reason: str

ReminderOutcome = Annotated[Union[Enqueued, SkippedIncomplete, Failed], Field(discriminator="kind")]

# --- API ---

class ReminderError(CamelModel):
    reminder_id: str
    error: str

class ProcessTodayRemindersResponse(CamelModel):
    success: bool
    message: str
    reminders_processed: int
    total_reminders: Optional[int] = None
    queued_jobs: Optional[List[QueuedJob]] = None
    errors: Optional[List[ReminderError]] = None
