# wabridge/modules/reminders/services.py

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from loguru import logger

from wabridge.core.config import Settings
from wabridge.core.errors import ConfigurationError, UpstreamError, ValidationError
from wabridge.services.jobs_client import JobQueueClient
from .models import (
    SKIPPED_STATUSES,
    ActivateAgentData,
    Enqueued,
    Failed,
    ProcessTodayRemindersResponse,
    QueuedJob,
    ReminderError,
    ReminderInDB,
    ReminderOutcome,
    SkippedIncomplete,
)
from .repository import ReminderRepository

ACTIVATE_AGENT_PATH = "/ws/activate-agent"

# --- Due-time policy ---

def local_day_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """Start and end (23:59:59.999) of the local day containing `now`."""
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    end = now.replace(hour=23, minute=59, second=59, microsecond=999000)
    return start, end

def to_local(value: datetime, tz: tzinfo) -> datetime:
    # Naive values come from Mongo and are UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz)

def has_specific_time(event_local: datetime) -> bool:
    """00:00 means "sometime today"; anything else is an exact time."""
    return event_local.hour != 0 or event_local.minute != 0

def is_due(event_local: datetime, now: datetime, window: timedelta) -> bool:
    if not has_specific_time(event_local):
        return True
    return now - window <= event_local <= now + window

def is_unprocessed(reminder: ReminderInDB) -> bool:
    return reminder.effective_status not in SKIPPED_STATUSES

# --- Result fold ---

def outcome_error(outcome: ReminderOutcome) -> Optional[ReminderError]:
    if isinstance(outcome, SkippedIncomplete):
        return ReminderError(reminder_id=outcome.reminder_id, error=f"Incomplete reminder data (missing: {', '.join(outcome.missing_fields)})")
    if isinstance(outcome, Failed):
        return ReminderError(reminder_id=outcome.reminder_id, error=outcome.reason)
    return None

def summarize_outcomes(outcomes: Iterable[ReminderOutcome], total_eligible: int) -> ProcessTodayRemindersResponse:
    queued_jobs: List[QueuedJob] = []
    errors: List[ReminderError] = []
    for outcome in outcomes:
        if isinstance(outcome, Enqueued):
            queued_jobs.append(outcome.job)
        else:
            errors.append(outcome_error(outcome))
    return ProcessTodayRemindersResponse(
        success=True,
        message="Reminders processed successfully",
        reminders_processed=len(queued_jobs),
        total_reminders=total_eligible,
        queued_jobs=queued_jobs,
        errors=errors or None,
    )

class ReminderService:
    """Enqueues today's due reminders for a user as assistant jobs."""

    def __init__(self, settings: Settings, job_client: JobQueueClient):
        self.settings = settings
        self.job_client = job_client
        self.tz = ZoneInfo(settings.TIMEZONE)
        self.window = timedelta(minutes=settings.REMINDER_WINDOW_MINUTES)

    def _local_now(self, now: Optional[datetime]) -> datetime:
        if now is None:
            return datetime.now(self.tz)
        if now.tzinfo is None:
            return now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    def select_eligible(self, reminders: List[ReminderInDB], now: datetime) -> List[ReminderInDB]:
        log = logger.bind(service="ReminderService")
        eligible = []
        for reminder in reminders:
            if not is_unprocessed(reminder):
                log.debug(f"Reminder {reminder.id} skipped (status: {reminder.effective_status})")
                continue
            event_local = to_local(reminder.event_datetime, self.tz)
            if is_due(event_local, now, self.window):
                eligible.append(reminder)
            else:
                log.debug(f"Reminder {reminder.id} at {event_local.strftime('%H:%M')} outside due window")
        return eligible

    def build_job_data(self, reminder: ReminderInDB) -> ActivateAgentData:
        customer = reminder.customer
        return ActivateAgentData(
            uid=reminder.user_id,
            session=self.settings.QUEUE_SESSION_ID,
            user_phone=customer.phone if customer else None,
            user_name=customer.name if customer else None,
            assistant_message=self.settings.REMINDER_MESSAGE_TEMPLATE.format(note=reminder.to_remember or ""),
            reminder_id=reminder.id,
        )

    async def _process_one(self, reminder: ReminderInDB, reminder_repo: ReminderRepository, job_path: str, now: datetime) -> ReminderOutcome:
        log = logger.bind(service="ReminderService", uid=reminder_repo.uid, reminder_id=reminder.id)
        data = self.build_job_data(reminder)
        missing = data.missing_fields()
        if missing:
            log.error(f"Reminder with incomplete data, missing: {missing}")
            return SkippedIncomplete(reminder_id=reminder.id, missing_fields=missing)

        event_epoch = int(to_local(reminder.event_datetime, timezone.utc).timestamp())
        idempotency_key = f"reminder:{reminder_repo.uid}:{reminder.id}:{event_epoch}"
        try:
            job_id = await self.job_client.enqueue(job_path, data.model_dump(by_alias=True), idempotency_key=idempotency_key)
        except UpstreamError as e:
            log.error(f"Failed to enqueue reminder: {e.message}")
            return Failed(reminder_id=reminder.id, reason=e.message)

        # Not transactional with the enqueue: a failure here leaves the reminder pending
        try:
            updated = await reminder_repo.mark_processing(reminder.id, now)
        except UpstreamError as e:
            log.error(f"Job {job_id} enqueued but status update failed; reminder stays pending: {e.message}")
            return Failed(reminder_id=reminder.id, reason=e.message)
        if not updated:
            log.error(f"Job {job_id} enqueued but reminder vanished before status update.")
            return Failed(reminder_id=reminder.id, reason="Reminder not found for status update")

        log.info(f"Reminder enqueued as job {job_id} and marked 'processing'.")
        return Enqueued(job=QueuedJob(
            reminder_id=reminder.id,
            job_id=job_id,
            customer_phone=data.user_phone,
            customer_name=data.user_name,
            to_remember=reminder.to_remember,
        ))

    async def process_today_reminders(
        self,
        user_id: str,
        reminder_repo: ReminderRepository,
        now: Optional[datetime] = None,
    ) -> ProcessTodayRemindersResponse:
        if not user_id:
            raise ValidationError("UID header is required")
        log = logger.bind(service="ReminderService", uid=user_id)
        now = self._local_now(now)
        day_start, day_end = local_day_bounds(now)
        log.info(f"Processing today's reminders at {now.isoformat()} ({self.settings.TIMEZONE})")

        reminders = await reminder_repo.list_in_range(day_start, day_end, limit=self.settings.REMINDER_BATCH_LIMIT)
        if not reminders:
            log.info("No reminders for today.")
            return ProcessTodayRemindersResponse(success=True, message="No reminders to process today", reminders_processed=0)

        eligible = self.select_eligible(reminders, now)
        log.info(f"{len(reminders)} reminder(s) today, {len(eligible)} eligible now.")
        if not eligible:
            return summarize_outcomes([], 0)

        if not self.settings.API_BASE_URL:
            log.critical("API_BASE_URL is not configured; cannot build job target.")
            raise ConfigurationError("API_BASE_URL is not configured")
        job_path = f"{self.settings.API_BASE_URL.rstrip('/')}{ACTIVATE_AGENT_PATH}"

        # One reminder at a time, in event order
        outcomes: List[ReminderOutcome] = []
        for reminder in eligible:
            try:
                outcomes.append(await self._process_one(reminder, reminder_repo, job_path, now))
            except Exception as e:
                log.exception(f"Unexpected error processing reminder {reminder.id}")
                outcomes.append(Failed(reminder_id=reminder.id, reason=str(e) or type(e).__name__))

        result = summarize_outcomes(outcomes, len(eligible))
        log.success(f"Done. Enqueued: {result.reminders_processed}, Errors: {len(result.errors or [])}")
        return result
