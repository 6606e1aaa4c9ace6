# tests/services/test_jobs_client.py
import pytest
import httpx
import json

from wabridge.core.errors import UpstreamError
from wabridge.core.logging_config import trace_id_var
from wabridge.services.jobs_client import ENQUEUE_PATH, UNKNOWN_JOB_ID, JobQueueClient

pytestmark = pytest.mark.asyncio

def _client(handler) -> JobQueueClient:
    return JobQueueClient("http://jobs.test/", transport=httpx.MockTransport(handler))

async def test_enqueue_posts_path_and_data():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        seen["headers"] = request.headers
        return httpx.Response(200, json={"jobId": "abc"})

    client = _client(handler)
    token = trace_id_var.set("req_test")
    try:
        job_id = await client.enqueue("http://api.test/ws/activate-agent", {"uid": "u1"}, idempotency_key="key-1")
    finally:
        trace_id_var.reset(token)
        await client.aclose()

    assert job_id == "abc"
    assert seen["url"] == f"http://jobs.test{ENQUEUE_PATH}"
    assert seen["body"] == {"path": "http://api.test/ws/activate-agent", "data": {"uid": "u1"}}
    assert seen["headers"]["idempotency-key"] == "key-1"
    assert seen["headers"]["x-request-id"] == "req_test"

async def test_missing_job_id_is_unknown():
    client = _client(lambda request: httpx.Response(202, json={}))
    try:
        assert await client.enqueue("/x", {}) == UNKNOWN_JOB_ID
    finally:
        await client.aclose()

@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(204),
        httpx.Response(200, text="<html>oops</html>"),
        httpx.Response(202, json=["queued"]),
    ],
)
async def test_accepted_job_without_readable_body_is_unknown(response):
    client = _client(lambda request: response)
    try:
        assert await client.enqueue("/x", {}) == UNKNOWN_JOB_ID
    finally:
        await client.aclose()

async def test_no_request_id_header_outside_a_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        return httpx.Response(200, json={"jobId": 7})

    client = _client(handler)
    try:
        assert await client.enqueue("/x", {}) == "7"
    finally:
        await client.aclose()
    assert "x-request-id" not in seen["headers"]

@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(400, text="bad payload"),
        httpx.Response(502, text="<html>bad gateway</html>"),
    ],
)
async def test_bad_responses_raise_upstream_error(response):
    client = _client(lambda request: response)
    try:
        with pytest.raises(UpstreamError):
            await client.enqueue("/x", {})
    finally:
        await client.aclose()

async def test_transport_errors_raise_upstream_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    try:
        with pytest.raises(UpstreamError, match="unreachable"):
            await client.enqueue("/x", {})
    finally:
        await client.aclose()

async def test_timeouts_raise_upstream_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    client = _client(handler)
    try:
        with pytest.raises(UpstreamError, match="timed out"):
            await client.enqueue("/x", {})
    finally:
        await client.aclose()
