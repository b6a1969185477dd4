from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from formpilot.browser.driver import BrowserDriver, PlaywrightDriver
from formpilot.browser.uploads import FileUploader
from formpilot.config import Settings, get_settings
from formpilot.core.audit import AuditSink
from formpilot.core.bulk import BulkJob, BulkRunController
from formpilot.core.events import EventBus
from formpilot.core.session import AutomationSession
from formpilot.llm.writer import TextWriter
from formpilot.types import ApplicantProfile, BulkRunProgress, SessionSnapshot

logger = logging.getLogger(__name__)


class SessionManager:
    """Registry behind the caller-facing API: sessions and bulk runs by id."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        driver_factory: Callable[[], BrowserDriver] | None = None,
        audit: AuditSink | None = None,
        writer: TextWriter | None = None,
        uploader: FileUploader | None = None,
        event_bus: EventBus | None = None,
        bulk_recorder: Callable[[str, BulkRunProgress], Awaitable[None]] | None = None,
    ):
        self.settings = settings or get_settings()
        self.driver_factory = driver_factory or (lambda: PlaywrightDriver(self.settings))
        self.audit = audit
        self.writer = writer
        self.uploader = uploader
        self.event_bus = event_bus
        self.bulk_recorder = bulk_recorder
        self._sessions: dict[str, AutomationSession] = {}
        self._bulk_runs: dict[str, BulkRunController] = {}
        self._bulk_tasks: dict[str, asyncio.Task] = {}

    def create_session(
        self,
        job_url: str,
        profile: ApplicantProfile,
        *,
        resume_path: str | None = None,
        cover_letter_path: str | None = None,
        auto_submit: bool | None = None,
    ) -> AutomationSession:
        if not job_url.strip():
            raise ValueError("job_url is required")
        self.prune()

        session = AutomationSession(
            job_url=job_url.strip(),
            profile=profile,
            driver=self.driver_factory(),
            settings=self.settings,
            uploader=self.uploader,
            writer=self.writer,
            audit=self.audit,
            event_bus=self.event_bus,
            resume_path=resume_path,
            cover_letter_path=cover_letter_path,
            auto_submit=auto_submit,
        )
        self._sessions[session.session_id] = session
        return session

    async def start_session(
        self,
        job_url: str,
        profile: ApplicantProfile,
        *,
        resume_path: str | None = None,
        cover_letter_path: str | None = None,
        auto_submit: bool | None = None,
    ) -> str:
        session = self.create_session(
            job_url,
            profile,
            resume_path=resume_path,
            cover_letter_path=cover_letter_path,
            auto_submit=auto_submit,
        )
        session.begin()
        logger.info("Session scheduled session_id=%s url=%s", session.session_id, session.job_url)
        return session.session_id

    def get_session(self, session_id: str) -> AutomationSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(f"session {session_id} not found")
        return session

    def poll_session(self, session_id: str) -> SessionSnapshot:
        return self.get_session(session_id).snapshot()

    def list_sessions(self) -> list[SessionSnapshot]:
        return [session.snapshot() for session in self._sessions.values()]

    async def submit_now(self, session_id: str) -> SessionSnapshot:
        return await self.get_session(session_id).submit_now()

    async def cancel_session(self, session_id: str) -> SessionSnapshot:
        return await self.get_session(session_id).cancel()

    async def run_job(self, job: BulkJob) -> SessionSnapshot:
        session = self.create_session(
            job.job_url,
            job.profile,
            resume_path=job.resume_file,
            cover_letter_path=job.cover_letter_file,
            auto_submit=True,
        )
        try:
            return await session.run()
        finally:
            self._sessions.pop(session.session_id, None)

    async def start_bulk(
        self,
        job_urls: list[str],
        profile: ApplicantProfile,
        resume_file: str,
        cover_letter_file: str | None = None,
    ) -> str:
        self.prune()
        controller = BulkRunController(
            self.run_job,
            settings=self.settings,
            event_bus=self.event_bus,
            on_progress=self.bulk_recorder,
        )
        controller.validate([url.strip() for url in job_urls], resume_file)
        self._bulk_runs[controller.batch_id] = controller
        self._schedule(controller, controller.run(job_urls, profile, resume_file, cover_letter_file))
        await asyncio.sleep(0)
        return controller.batch_id

    async def wait_for_bulk(self, batch_id: str) -> BulkRunProgress:
        controller = self.get_bulk(batch_id)
        task = self._bulk_tasks.get(batch_id)
        if task is not None:
            await task
        return controller.snapshot()

    def get_bulk(self, batch_id: str) -> BulkRunController:
        controller = self._bulk_runs.get(batch_id)
        if controller is None:
            raise KeyError(f"bulk run {batch_id} not found")
        return controller

    def bulk_progress(self, batch_id: str) -> BulkRunProgress:
        return self.get_bulk(batch_id).snapshot()

    def pause_bulk(self, batch_id: str) -> BulkRunProgress:
        return self.get_bulk(batch_id).pause()

    async def resume_bulk(self, batch_id: str) -> BulkRunProgress:
        controller = self.get_bulk(batch_id)
        if controller.is_running:
            return await controller.resume()
        self._schedule(controller, controller.resume())
        await asyncio.sleep(0)
        return controller.snapshot()

    async def retry_bulk(self, batch_id: str) -> BulkRunProgress:
        controller = self.get_bulk(batch_id)
        controller.check_retry()
        self._schedule(controller, controller.retry_failed())
        await asyncio.sleep(0)
        return controller.snapshot()

    def prune(self) -> int:
        """Drop finished sessions and bulk runs older than the retention window.

        The audit log keeps the record of each one; paused bulk runs are never
        finished and stay resumable.
        """

        cutoff = time.monotonic() - self.settings.session_retention_sec
        expired_sessions = [
            session_id
            for session_id, session in self._sessions.items()
            if session.finished_at is not None and session.finished_at <= cutoff
        ]
        for session_id in expired_sessions:
            del self._sessions[session_id]

        expired_runs = [
            batch_id
            for batch_id, controller in self._bulk_runs.items()
            if not controller.is_running and controller.finished_at is not None and controller.finished_at <= cutoff
        ]
        for batch_id in expired_runs:
            del self._bulk_runs[batch_id]
            self._bulk_tasks.pop(batch_id, None)

        if expired_sessions or expired_runs:
            logger.info("Pruned sessions=%s bulk_runs=%s", len(expired_sessions), len(expired_runs))
        return len(expired_sessions) + len(expired_runs)

    def _schedule(self, controller: BulkRunController, coroutine) -> None:
        task = asyncio.create_task(coroutine, name=f"bulk-{controller.batch_id}")
        task.add_done_callback(lambda done: self._log_bulk_outcome(controller.batch_id, done))
        self._bulk_tasks[controller.batch_id] = task

    @staticmethod
    def _log_bulk_outcome(batch_id: str, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("Bulk run task cancelled batch_id=%s", batch_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Bulk run task failed batch_id=%s error=%s", batch_id, exc)
