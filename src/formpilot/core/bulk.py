from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from formpilot.config import Settings, get_settings
from formpilot.core.events import EventBus
from formpilot.types import ApplicantProfile, BulkRunProgress, SessionSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BulkJob:
    job_url: str
    profile: ApplicantProfile
    resume_file: str
    cover_letter_file: str | None = None


JobRunner = Callable[[BulkJob], Awaitable[SessionSnapshot]]


class BulkRunError(ValueError):
    pass


class BulkRunController:
    """Runs one applicant's sessions across a list of job URLs, one at a time.

    Counters change only between jobs, so any snapshot taken while no job is in
    flight satisfies completed == successful + failed <= total.
    """

    def __init__(
        self,
        runner: JobRunner,
        *,
        settings: Settings | None = None,
        event_bus: EventBus | None = None,
        batch_id: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
        on_progress: Callable[[str, BulkRunProgress], Awaitable[None]] | None = None,
    ):
        self.runner = runner
        self.settings = settings or get_settings()
        self.event_bus = event_bus
        self.batch_id = batch_id or uuid4().hex
        self.sleep = sleep
        self.rng = rng or random.Random()
        self.on_progress = on_progress

        self.progress = BulkRunProgress()
        self._pending: deque[str] = deque()
        self._paused = False
        self._running = False
        self._profile: ApplicantProfile | None = None
        self._resume_file = ""
        self._cover_letter_file: str | None = None
        self.finished_at: float | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    def snapshot(self) -> BulkRunProgress:
        return self.progress.model_copy(deep=True)

    def validate(self, job_urls: list[str], resume_file: str | None) -> None:
        if not job_urls:
            raise BulkRunError("at least one job URL is required")
        if any(not url for url in job_urls):
            raise BulkRunError("job URLs must not be blank")
        if len(job_urls) > self.settings.bulk_max_jobs:
            raise BulkRunError(
                f"a bulk run accepts at most {self.settings.bulk_max_jobs} jobs, got {len(job_urls)}"
            )
        if not resume_file:
            raise BulkRunError("a resume file is required")
        if not Path(resume_file).expanduser().is_file():
            raise BulkRunError(f"resume file not found: {resume_file}")

    async def run(
        self,
        job_urls: list[str],
        profile: ApplicantProfile,
        resume_file: str,
        cover_letter_file: str | None = None,
    ) -> BulkRunProgress:
        if self._running:
            raise BulkRunError(f"bulk run {self.batch_id} is already in progress")

        urls = [url.strip() for url in job_urls]
        self.validate(urls, resume_file)
        self._profile = profile
        self._resume_file = resume_file
        self._cover_letter_file = cover_letter_file

        self._start_pass(urls)
        logger.info("Bulk run started batch_id=%s jobs=%s", self.batch_id, len(urls))
        return await self._drain()

    def pause(self) -> BulkRunProgress:
        self._paused = True
        self.progress.is_paused = True
        logger.info("Bulk run pause requested batch_id=%s", self.batch_id)
        return self.snapshot()

    async def resume(self) -> BulkRunProgress:
        self._paused = False
        self.progress.is_paused = False
        if self._running or not self._pending:
            return self.snapshot()

        logger.info("Bulk run resumed batch_id=%s remaining=%s", self.batch_id, len(self._pending))
        return await self._drain()

    def check_retry(self) -> None:
        if self._running:
            raise BulkRunError("cannot retry while the bulk run is active")
        if self._profile is None:
            raise BulkRunError("no previous bulk run to retry")
        if self._pending:
            raise BulkRunError("resume the paused bulk run before retrying failed jobs")

    async def retry_failed(self) -> BulkRunProgress:
        self.check_retry()

        urls = list(self.progress.failed_urls)
        self.progress.failed_urls.clear()
        if not urls:
            self.progress.message = "no failed jobs to retry"
            return self.snapshot()

        self._start_pass(urls)
        logger.info("Retrying failed jobs batch_id=%s jobs=%s", self.batch_id, len(urls))
        return await self._drain()

    def _start_pass(self, urls: list[str]) -> None:
        self.progress = BulkRunProgress(total_jobs=len(urls), message=f"queued {len(urls)} jobs")
        self._pending = deque(urls)
        self.finished_at = None
        self._paused = False

    async def _drain(self) -> BulkRunProgress:
        self._running = True
        try:
            while self._pending:
                if self._paused:
                    self.progress.is_paused = True
                    self.progress.message = (
                        f"paused after {self.progress.completed_jobs} of {self.progress.total_jobs} jobs"
                    )
                    await self._publish()
                    return self.snapshot()

                url = self._pending.popleft()
                self.progress.current_job_url = url
                await self._publish()

                succeeded, reason = await self._process(url)
                self.progress.completed_jobs += 1
                if succeeded:
                    self.progress.successful_jobs += 1
                else:
                    self.progress.failed_jobs += 1
                    self.progress.failed_urls.append(url)
                    self.progress.failure_reasons[url] = reason
                self.progress.current_job_url = None
                await self._publish()

                if self._pending and not self._paused:
                    await self.sleep(self._delay())

            self.progress.is_complete = True
            self.finished_at = time.monotonic()
            self.progress.is_paused = False
            self.progress.message = (
                f"completed {self.progress.completed_jobs} jobs: "
                f"{self.progress.successful_jobs} submitted, {self.progress.failed_jobs} failed"
            )
            logger.info("Bulk run finished batch_id=%s %s", self.batch_id, self.progress.message)
            await self._publish()
            return self.snapshot()
        finally:
            self._running = False

    async def _process(self, url: str) -> tuple[bool, str]:
        job = BulkJob(
            job_url=url,
            profile=self._profile,
            resume_file=self._resume_file,
            cover_letter_file=self._cover_letter_file,
        )
        try:
            snapshot = await self.runner(job)
        except Exception as exc:
            logger.exception("Bulk job failed batch_id=%s url=%s", self.batch_id, url)
            return False, str(exc) or exc.__class__.__name__

        if snapshot.state != "submitted":
            logger.warning("Bulk job not submitted batch_id=%s url=%s state=%s", self.batch_id, url, snapshot.state)
            return False, snapshot.message or f"session ended in state {snapshot.state}"
        return True, ""

    def _delay(self) -> float:
        return self.rng.uniform(self.settings.bulk_delay_min_sec, self.settings.bulk_delay_max_sec)

    async def _publish(self) -> None:
        snapshot = self.snapshot()
        if self.on_progress is not None:
            try:
                await self.on_progress(self.batch_id, snapshot)
            except Exception as exc:
                logger.warning("Progress callback failed batch_id=%s error=%s", self.batch_id, exc)
        if self.event_bus is not None:
            await self.event_bus.publish(
                self.batch_id,
                {"type": "bulk", "batch_id": self.batch_id, **snapshot.model_dump()},
            )
