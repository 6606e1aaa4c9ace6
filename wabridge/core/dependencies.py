# wabridge/core/dependencies.py

from wabridge.core.config import Settings, get_settings

async def get_app_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings (overridable in tests)."""
    return get_settings()
