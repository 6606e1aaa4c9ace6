# wabridge/services/jobs_client.py

import json
from typing import Any, Dict, Optional

import httpx
from fastapi import HTTPException, status
from loguru import logger

from wabridge.core.errors import UpstreamError
from wabridge.core.logging_config import TRACE_REQUEST_HEADER, UNSET_TRACE_ID, trace_id_var

ENQUEUE_PATH = "/enqueue"
UNKNOWN_JOB_ID = "unknown"

class JobQueueClient:
    """
    Client for the jobs microservice.

    `POST /enqueue` takes `{path, data}`: the service later calls `path`
    with `data` as JSON body and answers with `{jobId}` once accepted.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self):
        await self._client.aclose()

    async def enqueue(self, path: str, data: Dict[str, Any], idempotency_key: Optional[str] = None) -> str:
        """Enqueues a job and returns its id.

        A rejection, timeout or transport failure raises UpstreamError. A 2xx is an
        accepted job even when the body carries no usable jobId (returns UNKNOWN_JOB_ID).
        """
        log = logger.bind(trace_id=trace_id_var.get(), service="JobQueueClient", target=path)
        headers: Dict[str, str] = {}
        if trace_id_var.get() != UNSET_TRACE_ID:
            headers[TRACE_REQUEST_HEADER] = trace_id_var.get()
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        log.info("Enqueuing job...")
        try:
            response = await self._client.post(ENQUEUE_PATH, json={"path": path, "data": data}, headers=headers)
        except httpx.TimeoutException as e:
            log.error("Timeout enqueuing job.")
            raise UpstreamError("Job queue timed out") from e
        except httpx.RequestError as e:
            log.error(f"HTTP request error enqueuing job: {e}")
            raise UpstreamError(f"Job queue unreachable: {e}") from e

        try:
            response_data: Dict[str, Any] = response.json()
            if not isinstance(response_data, dict):
                response_data = {}
        except json.JSONDecodeError:
            response_data = {}
            if response.is_success:
                log.warning(f"Job queue accepted job with a non-JSON body (Status: {response.status_code}): {response.text[:200]!r}")

        if not response.is_success:
            error_message = response_data.get("error") or response_data.get("message") or response.text[:200] or "Unknown error"
            log.error(f"Job queue rejected job. Status={response.status_code}, Message='{error_message}'")
            raise UpstreamError(f"Job queue responded {response.status_code}: {error_message}")

        job_id = response_data.get("jobId")
        if not job_id:
            log.warning("Job queue accepted job but returned no jobId.")
            return UNKNOWN_JOB_ID
        log.success(f"Job enqueued. JobID: {job_id}")
        return str(job_id)

class JobQueueContext:
    """Holds the shared client for the app lifespan."""
    client: Optional[JobQueueClient] = None

    def connect(self, base_url: str, timeout: float):
        if self.client is None:
            logger.info(f"Creating jobs service client for {base_url}...")
            self.client = JobQueueClient(base_url, timeout=timeout)

    async def disconnect(self):
        if self.client is not None:
            await self.client.aclose()
            self.client = None
            logger.info("Jobs service client closed.")

jobs_manager = JobQueueContext()

async def get_job_queue_client() -> JobQueueClient:
    """FastAPI dependency to get the jobs client (created by lifespan)."""
    if jobs_manager.client is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Jobs service client not available")
    return jobs_manager.client
