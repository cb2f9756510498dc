"""Asynchronous report jobs: submit, poll until ready, fetch the artifact."""

from __future__ import annotations

import asyncio
import enum
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Protocol, Sequence

import httpx

from sgoclient.core.errors import ParseError, ReportFailedError, ReportTimeoutError
from sgoclient.core.models import ReportFilter
from sgoclient.core.settings import ReportSettings
from sgoclient.services.parsers import json_payload
from sgoclient.utils.logging import get_logger


Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


class ReportStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class Requester(Protocol):
    """Authenticated request primitive supplied by the client."""

    async def __call__(
        self,
        path: str,
        *,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        auth_header: bool = True,
    ) -> httpx.Response:
        ...


@dataclass
class ReportJob:
    report: str
    filters: List[ReportFilter]
    handle: Optional[str] = None
    status: ReportStatus = ReportStatus.SUBMITTED
    artifact: Optional[bytes] = field(default=None, repr=False)
    error: Optional[str] = None


class ReportPipeline:
    """Runs one report job per call against the ``/webapi/reports`` queue."""

    QUEUE_PATH = "/webapi/reports/queue/{handle}"
    FILE_PATH = "/webapi/reports/files/{handle}"

    def __init__(
        self,
        request: Requester,
        settings: Optional[ReportSettings] = None,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._request = request
        self.settings = settings or ReportSettings()
        self._sleep = sleep
        self._clock = clock
        self.logger = get_logger("reports")

    async def run(self, report: str, filters: Sequence[ReportFilter]) -> bytes:
        """Generate ``report`` (e.g. ``/webapi/reports/studenttotal``) and return its raw bytes."""
        job = ReportJob(report=report, filters=list(filters))
        await self.submit(job)
        await self.wait(job)
        return await self.fetch(job)

    async def submit(self, job: ReportJob) -> None:
        payload = {
            "selectedData": [item.model_dump(by_alias=True) for item in job.filters],
            "params": None,
        }
        response = await self._request(f"{job.report}/queue", method="POST", json=payload)
        data = json_payload(response)
        handle = data.get("taskId") if isinstance(data, dict) else None
        if handle in (None, ""):
            raise ParseError(f"Report queue for {job.report} returned no task id")
        job.handle = str(handle)
        job.status = ReportStatus.PENDING
        self.logger.info("Submitted report %s as job %s", job.report, job.handle)

    async def poll(self, job: ReportJob) -> ReportStatus:
        response = await self._request(self.QUEUE_PATH.format(handle=job.handle))
        data = json_payload(response)
        raw = data.get("status") if isinstance(data, dict) else None
        try:
            status = ReportStatus(str(raw).lower())
        except ValueError as exc:
            raise ParseError(f"Unknown status {raw!r} for report job {job.handle}") from exc
        if status is ReportStatus.FAILED:
            job.error = data.get("error") or data.get("message")
        job.status = status
        return status

    async def wait(self, job: ReportJob) -> None:
        """Poll until ready; bounded by ``max_wait_seconds`` of elapsed time."""
        settings = self.settings
        started = self._clock()
        interval = settings.poll_interval_seconds
        while True:
            status = await self.poll(job)
            if status is ReportStatus.READY:
                return
            if status is ReportStatus.FAILED:
                raise ReportFailedError(job.handle or "?", job.error)

            elapsed = self._clock() - started
            remaining = settings.max_wait_seconds - elapsed
            if remaining <= 0:
                raise ReportTimeoutError(job.handle or "?", elapsed)
            self.logger.debug("Report job %s still %s; next poll in %.1fs", job.handle, status.value, interval)
            await self._sleep(min(interval, remaining))
            interval = min(interval * settings.backoff_factor, settings.max_interval_seconds)

    async def fetch(self, job: ReportJob) -> bytes:
        if job.status is not ReportStatus.READY:
            raise RuntimeError(f"Report job {job.handle} is not ready")
        response = await self._request(self.FILE_PATH.format(handle=job.handle))
        job.artifact = response.content
        self.logger.info("Fetched report job %s (%d bytes)", job.handle, len(job.artifact))
        return job.artifact
