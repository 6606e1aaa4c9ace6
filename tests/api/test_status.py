# tests/api/test_status.py
import pytest
from httpx import AsyncClient
from fastapi import status
from unittest.mock import AsyncMock, MagicMock

from wabridge.api.endpoints.status import get_optional_database

pytestmark = pytest.mark.asyncio

async def test_root_reports_project(test_client: AsyncClient):
    response = await test_client.get("/")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "ok"
    assert response.json()["project"] == "wabridge Test"

async def test_healthcheck_ok(test_client: AsyncClient, app):
    db = MagicMock()
    db.command = AsyncMock(return_value={"ok": 1.0})
    app.dependency_overrides[get_optional_database] = lambda: db

    response = await test_client.get("/healthcheck")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["overall_status"] == "ok"
    assert data["components"]["cache_redis"]["status"] == "ok"
    db.command.assert_awaited_once_with("ping")

async def test_healthcheck_reports_missing_database(test_client: AsyncClient, app):
    app.dependency_overrides[get_optional_database] = lambda: None

    response = await test_client.get("/healthcheck")

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    data = response.json()
    assert data["overall_status"] == "error"
    assert data["components"]["database_mongodb"]["message"] == "MongoDB client not available"

async def test_trace_id_is_echoed(test_client: AsyncClient):
    response = await test_client.get("/", headers={"X-Request-ID": "req_fixed"})
    assert response.headers["x-trace-id"] == "req_fixed"
