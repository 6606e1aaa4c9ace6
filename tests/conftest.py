# tests/conftest.py
import pytest
import pytest_asyncio
import httpx
import fakeredis
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient

import os
from typing import Any, AsyncGenerator, Dict, List
from unittest.mock import patch

TEST_CACHE_API_KEY = "test-cache-key"

@pytest.fixture(scope="session", autouse=True)
def mock_env_vars():
    mock_settings = {
        "PROJECT_NAME": "wabridge Test",
        "LOG_LEVEL": "DEBUG",
        "MONGODB_URI": "mongodb://localhost:27017/wabridge_test",
        "REDIS_URL": "redis://localhost:6379/1",
        "JOBS_SERVICE_BASE_URL": "http://jobs.test",
        "API_BASE_URL": "http://api.test",
        "QUEUE_SESSION_ID": "session-test",
        "CACHE_API_KEY": TEST_CACHE_API_KEY,
        "TIMEZONE": "UTC",
    }
    with patch.dict(os.environ, mock_settings, clear=True):
        from wabridge.core.config import get_settings
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

@pytest.fixture
def settings():
    from wabridge.core.config import Settings
    return Settings(_env_file=None)

@pytest_asyncio.fixture(scope="function")
async def db_client():
    client = AsyncMongoMockClient()
    db = client[f"test_db_{os.urandom(4).hex()}"]
    yield db

@pytest_asyncio.fixture(scope="function")
async def redis_client() -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    await client.flushdb()
    yield client
    await client.flushdb()
    await client.aclose()

@pytest.fixture
def enqueued_jobs() -> List[Dict[str, Any]]:
    """Every request the fake jobs service received: body plus headers."""
    return []

@pytest_asyncio.fixture(scope="function")
async def job_client(enqueued_jobs):
    from wabridge.services.jobs_client import JobQueueClient
    import json

    def handler(request: httpx.Request) -> httpx.Response:
        enqueued_jobs.append({"body": json.loads(request.content), "headers": dict(request.headers)})
        return httpx.Response(200, json={"jobId": f"job-{len(enqueued_jobs)}"})

    client = JobQueueClient("http://jobs.test", transport=httpx.MockTransport(handler))
    yield client
    await client.aclose()

@pytest.fixture
def app(settings, db_client, redis_client, job_client):
    from wabridge.main import create_app
    from wabridge.api.endpoints.status import get_optional_database, get_optional_redis
    from wabridge.core.database import get_database, get_redis_client
    from wabridge.core.dependencies import get_app_settings
    from wabridge.services.jobs_client import get_job_queue_client

    app = create_app(settings)
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_database] = lambda: db_client
    app.dependency_overrides[get_redis_client] = lambda: redis_client
    app.dependency_overrides[get_job_queue_client] = lambda: job_client
    app.dependency_overrides[get_optional_database] = lambda: db_client
    app.dependency_overrides[get_optional_redis] = lambda: redis_client
    return app

@pytest_asyncio.fixture(scope="function")
async def test_client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
