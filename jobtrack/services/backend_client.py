"""httpx client for the processing backend's REST API."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import httpx

from jobtrack.application.ports.backend import BatchItem, ProcessingOptions
from jobtrack.core.errors import BackendError

logger = logging.getLogger(__name__)

PROCESS_BATCH_PATH = "/api/v1/invoices/process-batch"
MY_JOBS_PATH = "/api/v1/jobs/my-jobs"
UNREAD_COUNT_PATH = "/api/v1/jobs/my-jobs/unread-count"
MARK_AS_READ_PATH = "/api/v1/jobs/my-jobs/mark-as-read"
CANCEL_JOB_PATH = "/api/jobs/{job_id}/cancel"


class BackendClient:
    """Async client for job creation, unread counts and cancellation.

    Session cookies or auth headers are passed through unchanged; the client
    does not know how they were obtained.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        headers: Mapping[str, str] | None = None,
        cookies: Mapping[str, str] | None = None,
        verify: bool = True,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url.startswith(("http://", "https://")):
            raise ValueError("base_url must include scheme and host")
        self._base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout,
            headers=dict(headers or {}),
            cookies=dict(cookies or {}),
            verify=verify,
        )
        self._owns_client = http_client is None

    @property
    def base_url(self) -> str:
        return self._base_url

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] or response.reason_phrase
        if isinstance(body, dict):
            detail = body.get("error") or body.get("message") or body.get("detail")
            if detail:
                return str(detail)
        return response.reason_phrase

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise BackendError(f"{method} {path} failed: {e}", cause=e) from e
        if response.is_error:
            detail = self._error_detail(response)
            raise BackendError(
                f"{method} {path} returned {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(
                f"{method} {path} returned invalid JSON",
                cause=e,
                status_code=response.status_code,
            ) from e

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def create_jobs(
        self, items: Sequence[BatchItem], options: ProcessingOptions
    ) -> list[str]:
        payload = {
            "items": [
                {"source_ref": item.source_ref, "display_name": item.display_name}
                for item in items
            ],
            "options": options.to_payload(),
        }
        body = await self._request("POST", PROCESS_BATCH_PATH, json=payload)
        ids = body.get("job_ids", body.get("task_ids")) if isinstance(body, dict) else None
        if not isinstance(ids, list) or not all(isinstance(i, str) and i for i in ids):
            raise BackendError("process-batch response has no job id list")
        logger.info("Backend created %d job(s)", len(ids))
        return list(ids)

    async def get_unread_count(self) -> int:
        body = await self._request("GET", UNREAD_COUNT_PATH)
        try:
            count = int(body.get("unread_count") or 0)
        except (AttributeError, TypeError, ValueError) as e:
            raise BackendError("unread-count response is malformed", cause=e) from e
        return max(0, count)

    async def mark_as_read(self, job_id: str | None = None) -> dict[str, Any]:
        payload = {} if job_id is None else {"job_id": job_id}
        body = await self._request("POST", MARK_AS_READ_PATH, json=payload)
        return body if isinstance(body, dict) else {}

    async def cancel_job(self, job_id: str) -> None:
        await self._request("POST", CANCEL_JOB_PATH.format(job_id=job_id))

    async def list_my_jobs(self, status: str | None = None) -> dict[str, Any]:
        """Server-side job history (``{"jobs": [...], "statistics": {...}}``)."""
        params = {} if status in (None, "all") else {"status": status}
        body = await self._request("GET", MY_JOBS_PATH, params=params)
        if not isinstance(body, dict):
            raise BackendError("my-jobs response is malformed")
        body.setdefault("jobs", [])
        body.setdefault("statistics", {})
        return body

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
