# wabridge/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, ValidationError as SettingsValidationError
from functools import lru_cache
from loguru import logger
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEV_CACHE_API_KEY = "development-key"
ENV_FILENAMES = ('.env', '.env.local')
MAX_PARENT_DIRS = 10

def find_dotenv_path(filename: str = '.env', usecwd: bool = False) -> str | None:
    """First `filename` found walking up from this package (or the CWD), then the CWD itself."""
    start = Path.cwd() if usecwd else Path(__file__).resolve().parent
    candidates = [start, *start.parents][:MAX_PARENT_DIRS]
    if not usecwd:
        candidates.append(Path.cwd())
    for directory in candidates:
        env_path = directory / filename
        if env_path.is_file():
            logger.debug(f"Using {filename} at {env_path}")
            return str(env_path)
    return None

def env_files() -> List[str]:
    # Later files win, so .env.local overrides .env
    return [p for p in (find_dotenv_path(name) for name in ENV_FILENAMES) if p]

class Settings(BaseSettings):
    PROJECT_NAME: str = "wabridge"
    LOG_LEVEL: str = "INFO"

    # Document store & tag cache
    MONGODB_URI: str = "mongodb://localhost:27017/wabridge"
    REDIS_URL: str = "redis://localhost:6379/0"

    # Jobs microservice
    JOBS_SERVICE_BASE_URL: str = "http://localhost:4000"
    JOBS_SERVICE_TIMEOUT: float = Field(default=10.0, gt=0)

    # Job target base and session tag (required to enqueue reminders)
    API_BASE_URL: Optional[str] = None
    QUEUE_SESSION_ID: Optional[str] = None

    # Shared secrets
    CACHE_API_KEY: str = DEV_CACHE_API_KEY
    REMINDERS_API_KEY: Optional[str] = None

    # Reminders
    TIMEZONE: str = "UTC"
    REMINDER_BATCH_LIMIT: int = Field(default=20, gt=0)
    REMINDER_WINDOW_MINUTES: int = Field(default=15, ge=0)
    REMINDER_MESSAGE_TEMPLATE: str = "Recordatorio: {note}"

    # Cache stats fan-out width
    CACHE_STATS_CONCURRENCY: int = Field(default=10, gt=0)

    # HTTP
    CORS_ORIGINS: str = "*"
    RATE_LIMIT: str = "500/minute"

    model_config = SettingsConfigDict(
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    @field_validator("TIMEZONE")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

def warn_on_weak_settings(settings_instance: Settings) -> None:
    if settings_instance.CACHE_API_KEY == DEV_CACHE_API_KEY:
        logger.warning("SECURITY WARNING: CACHE_API_KEY is the development default. Set a real shared secret!")
    missing = [k for k in ('API_BASE_URL', 'QUEUE_SESSION_ID') if not getattr(settings_instance, k, None)]
    if missing:
        logger.warning(f"Reminder job settings missing ({', '.join(missing)}). Reminder processing will fail until they are set.")

@lru_cache()
def get_settings() -> Settings:
    """Builds the process-wide Settings once. Invalid configuration stops the process."""
    files = env_files()
    if files:
        logger.info(f"Settings: reading {', '.join(files)} (environment variables take precedence)")
    else:
        logger.warning("Settings: no .env file found, using environment variables only")

    try:
        loaded = Settings(_env_file=tuple(files) or None)
    except SettingsValidationError as val_err:
        logger.critical(f"Invalid settings: {val_err}")
        raise SystemExit(f"Settings validation failed: {val_err}")

    warn_on_weak_settings(loaded)
    logger.info(f"Settings loaded for {loaded.PROJECT_NAME} (timezone {loaded.TIMEZONE})")
    return loaded
