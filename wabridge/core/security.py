# wabridge/core/security.py

import hmac
from typing import Annotated, Optional

from fastapi import Depends, Header, Query
from loguru import logger

from wabridge.core.config import Settings
from wabridge.core.dependencies import get_app_settings
from wabridge.core.errors import AuthorizationError

def verify_api_key(provided: Optional[str], expected: Optional[str]) -> bool:
    """Exact shared-secret match. A missing key (or secret) never authenticates."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))

def require_api_key(provided: Optional[str], expected: Optional[str], scope: str) -> None:
    if not verify_api_key(provided, expected):
        logger.bind(service="ApiKeyAuth", scope=scope).warning(
            "Rejected request: API key missing" if not provided else "Rejected request: API key mismatch"
        )
        raise AuthorizationError("Unauthorized: Invalid API key")

async def cache_api_key_from_request(
    settings: Annotated[Settings, Depends(get_app_settings)],
    x_api_key: Annotated[str | None, Header(alias="x-api-key")] = None,
    api_key_query: Annotated[str | None, Query(alias="apiKey")] = None,
) -> None:
    """Dependency for the cache GET endpoints: key from `x-api-key` header or `apiKey` query."""
    require_api_key(x_api_key or api_key_query, settings.CACHE_API_KEY, scope="cache")

async def reminders_api_key(
    settings: Annotated[Settings, Depends(get_app_settings)],
    x_api_key: Annotated[str | None, Header(alias="x-api-key")] = None,
) -> None:
    """Only enforced when REMINDERS_API_KEY is configured."""
    if settings.REMINDERS_API_KEY:
        require_api_key(x_api_key, settings.REMINDERS_API_KEY, scope="reminders")
