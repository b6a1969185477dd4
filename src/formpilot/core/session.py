from __future__ import annotations

import asyncio
import logging
import time
from typing import Any
from uuid import uuid4

from formpilot.browser.classifier import DetectedField, FieldClassifier
from formpilot.browser.domain_adapters import detect_platform
from formpilot.browser.driver import BrowserDriver
from formpilot.browser.executor import FillExecutor
from formpilot.browser.resolver import ValueResolver, build_profile_mapping
from formpilot.browser.uploads import FileUploader, StagedFileUploader
from formpilot.config import Settings, get_settings
from formpilot.core.audit import AuditSink
from formpilot.core.events import EventBus
from formpilot.core.job_details import extract_job_details
from formpilot.llm.writer import TextWriter
from formpilot.types import (
    TERMINAL_STATES,
    ApplicantProfile,
    FillFailure,
    FillResult,
    JobDetails,
    SessionSnapshot,
    SessionState,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "starting": frozenset({"waiting_for_login", "ready_to_fill", "error"}),
    "waiting_for_login": frozenset({"ready_to_fill", "error"}),
    "ready_to_fill": frozenset({"form_filled", "error"}),
    "form_filled": frozenset({"submitted", "error"}),
    "submitted": frozenset(),
    "error": frozenset(),
}
LOGGED_IN_STATES = frozenset({"ready_to_fill", "form_filled", "submitted"})


class SessionError(Exception):
    pass


class InvalidTransitionError(ValueError):
    pass


class AutomationSession:
    """One job application attempt: open, wait for login, fill, submit.

    Every transition runs under the session lock, so the login poll, the
    auto-submit timer and caller actions never interleave. The browser page and
    the detected fields belong to this session and are dropped on teardown.
    """

    def __init__(
        self,
        *,
        job_url: str,
        profile: ApplicantProfile,
        driver: BrowserDriver,
        settings: Settings | None = None,
        classifier: FieldClassifier | None = None,
        resolver: ValueResolver | None = None,
        executor: FillExecutor | None = None,
        uploader: FileUploader | None = None,
        writer: TextWriter | None = None,
        audit: AuditSink | None = None,
        event_bus: EventBus | None = None,
        resume_path: str | None = None,
        cover_letter_path: str | None = None,
        auto_submit: bool | None = None,
        session_id: str | None = None,
    ):
        self.settings = settings or get_settings()
        self.session_id = session_id or uuid4().hex
        self.job_url = job_url
        self.profile = profile
        self.driver = driver
        self.resolver = resolver or ValueResolver()
        self.classifier = classifier or FieldClassifier(
            threshold=self.settings.field_confidence_threshold,
            resolver=self.resolver,
        )
        action_timeout_ms = self.settings.browser_action_timeout_sec * 1000
        self.executor = executor or FillExecutor(timeout_ms=action_timeout_ms)
        self.uploader = uploader or StagedFileUploader(timeout_ms=action_timeout_ms)
        self.writer = writer
        self.audit = audit
        self.event_bus = event_bus
        self.resume_path = resume_path or profile.resume_path or None
        self.cover_letter_path = cover_letter_path or profile.cover_letter_path or None
        self.auto_submit = self.settings.auto_submit_enabled if auto_submit is None else auto_submit

        self.platform = detect_platform(job_url)
        self.state: SessionState = "starting"
        self.history: list[SessionState] = ["starting"]
        self.message = "session created"
        self.requires_login = False
        self.job_details: JobDetails | None = None
        self.fill_result: FillResult | None = None
        self.screenshot_path: str | None = None
        self.finished_at: float | None = None

        self._page: Any = None
        self._fields: list[DetectedField] = []
        self._lock = asyncio.Lock()
        self._terminal = asyncio.Event()
        self._run_task: asyncio.Task | None = None
        self._login_task: asyncio.Task | None = None
        self._submit_task: asyncio.Task | None = None
        self._audited = False

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def begin(self) -> asyncio.Task:
        """Schedule `start()` in the background and return its task."""
        if self._run_task is None:
            self._run_task = asyncio.create_task(self.start(), name=f"session-{self.session_id}")
        return self._run_task

    async def run(self, timeout: float | None = None) -> SessionSnapshot:
        await self.start()
        return await self.wait_until_terminal(timeout)

    async def start(self) -> SessionSnapshot:
        async with self._lock:
            if self.state != "starting":
                raise InvalidTransitionError(f"session {self.session_id} already started")

            try:
                await self._open_job_page()
            except Exception as exc:
                logger.exception("Navigation failed session_id=%s url=%s", self.session_id, self.job_url)
                await self._fail(f"could not open job page: {exc}")
                return self.snapshot()

            if self.requires_login:
                await self._transition("waiting_for_login", "waiting for manual login")
                try:
                    await self.driver.open_login_window(self.job_url)
                except Exception as exc:
                    logger.warning("Login window failed to open session_id=%s error=%s", self.session_id, exc)
                self._login_task = asyncio.create_task(self._poll_login(), name=f"login-{self.session_id}")
                return self.snapshot()

            await self._transition("ready_to_fill", "page ready")
            await self._fill()
        return self.snapshot()

    async def submit_now(self) -> SessionSnapshot:
        async with self._lock:
            if self.state == "submitted":
                return self.snapshot()
            if self.state != "form_filled":
                raise InvalidTransitionError(f"cannot submit session {self.session_id} in state {self.state}")
            await self._submit(trigger="caller")
        return self.snapshot()

    async def cancel(self, reason: str = "cancelled by caller") -> SessionSnapshot:
        if self.is_terminal:
            return self.snapshot()

        self._cancel_background(include_run=True)
        async with self._lock:
            if not self.is_terminal:
                await self._fail(reason)
        return self.snapshot()

    async def wait_until_terminal(self, timeout: float | None = None) -> SessionSnapshot:
        await asyncio.wait_for(self._terminal.wait(), timeout)
        return self.snapshot()

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            state=self.state,
            job_url=self.job_url,
            platform=self.platform.name,
            message=self.message,
            requires_login=self.requires_login,
            is_logged_in=self.state in LOGGED_IN_STATES,
            form_filled=self.state in {"form_filled", "submitted"},
            ready_to_submit=self.state == "form_filled",
            fill_result=self.fill_result.model_copy(deep=True) if self.fill_result else None,
            job_details=self.job_details.model_copy() if self.job_details else None,
            screenshot_path=self.screenshot_path,
            history=list(self.history),
        )

    async def _open_job_page(self) -> None:
        self._page = await self.driver.open(self.job_url)
        try:
            html = await self.driver.page_html(self._page)
            self.job_details = extract_job_details(html, self.job_url)
        except Exception as exc:
            logger.warning("Job detail extraction failed session_id=%s error=%s", self.session_id, exc)
            self.job_details = JobDetails(url=self.job_url)
        self.requires_login = await self.driver.requires_login(self._page)
        logger.info(
            "Session opened session_id=%s platform=%s requires_login=%s",
            self.session_id,
            self.platform.name,
            self.requires_login,
        )

    async def _poll_login(self) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        interval = self.settings.login_poll_interval_sec

        while True:
            await asyncio.sleep(interval)
            try:
                logged_in = await self.driver.is_logged_in(self._page)
                interval = self.settings.login_poll_interval_sec
            except Exception as exc:
                logger.warning("Login poll failed session_id=%s error=%s", self.session_id, exc)
                logged_in = False
                interval = self.settings.login_poll_error_interval_sec

            async with self._lock:
                if self.state != "waiting_for_login":
                    return
                if logged_in:
                    await self._transition("ready_to_fill", "login confirmed")
                    await self._fill()
                    return

                timeout = self.settings.login_timeout_sec
                if timeout and loop.time() - started >= timeout:
                    await self._fail(f"could not complete login within {timeout:g} seconds")
                    return

    async def _fill(self) -> None:
        try:
            if self.settings.reveal_application_form:
                try:
                    await self.driver.reveal_application_form(self._page)
                except Exception as exc:
                    logger.warning("Apply button click failed session_id=%s error=%s", self.session_id, exc)

            fields = await self.classifier.detect_fields(self._page)
            self._fields = fields
            if not fields:
                await self._fail("could not detect form")
                return

            ai_text = await self._ai_text()
            mapping = build_profile_mapping(self.profile, ai_text)
            uploads = await self._attach_files(fields)
            assignments = [
                (field, self.resolver.resolve_value(field, mapping))
                for field in fields
                if field.category != "file"
            ]
            result = await self.executor.fill_fields(assignments)
            result = FillResult(
                filled={**uploads.filled, **result.filled},
                failures=[*uploads.failures, *result.failures],
                skipped=[*uploads.skipped, *result.skipped],
            )
            self.fill_result = result

            required_total = sum(1 for field in fields if field.required)
            required_failed = len(result.required_failures)
            failed = len(result.failures)
            logger.info(
                "Fill pass session_id=%s filled=%s failed=%s required_failed=%s/%s",
                self.session_id,
                len(result.filled),
                failed,
                required_failed,
                required_total,
            )
            if required_total and required_failed * 2 > required_total:
                await self._fail(f"partially filled, {failed} fields failed")
                return

            message = "form filled" if not failed else f"partially filled, {failed} fields failed"
            await self._transition("form_filled", message)
            if self.auto_submit:
                self._submit_task = asyncio.create_task(self._auto_submit(), name=f"submit-{self.session_id}")
        except Exception as exc:
            logger.exception("Fill pass failed session_id=%s", self.session_id)
            await self._fail(f"unexpected error: {exc}")

    async def _ai_text(self) -> str:
        if not self.profile.enable_ai_cover_letter or self.writer is None:
            return ""
        try:
            return await self.writer.cover_letter(self.profile, self.job_details or JobDetails(url=self.job_url))
        except Exception as exc:
            logger.warning("Cover letter unavailable session_id=%s error=%s", self.session_id, exc)
            return ""

    async def _attach_files(self, fields: list[DetectedField]) -> FillResult:
        result = FillResult()
        for field in fields:
            if field.category != "file":
                continue
            try:
                attached = await self.uploader.attach(field, self.resume_path, self.cover_letter_path)
            except Exception as exc:
                logger.warning("Upload failed session_id=%s field=%s error=%s", self.session_id, field.key, exc)
                result.failures.append(_file_failure(field, str(exc) or exc.__class__.__name__))
                continue

            if attached:
                result.filled[field.key] = attached
            elif field.required:
                result.failures.append(_file_failure(field, "no staged file"))
            else:
                result.skipped.append(field.key)
        return result

    async def _auto_submit(self) -> None:
        await asyncio.sleep(self.settings.auto_submit_grace_sec)
        async with self._lock:
            if self.state != "form_filled":
                return
            await self._submit(trigger="auto")

    async def _submit(self, *, trigger: str) -> None:
        self._cancel_background()
        try:
            if not await self.driver.submit(self._page):
                raise SessionError("submit button not found")
            confirmed = await self.driver.confirm_submission(self._page)
        except SessionError as exc:
            await self._fail(str(exc))
            return
        except Exception as exc:
            logger.exception("Submission failed session_id=%s", self.session_id)
            await self._fail(f"submission failed: {exc}")
            return

        message = "application submitted" if confirmed else "application submitted; confirmation not detected"
        if not confirmed:
            logger.warning("No confirmation detected session_id=%s", self.session_id)
        logger.info("Submitted session_id=%s trigger=%s", self.session_id, trigger)
        await self._transition("submitted", message)

    async def _fail(self, message: str) -> None:
        if self.is_terminal:
            return
        await self._transition("error", message)

    async def _transition(self, new_state: SessionState, message: str = "") -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"illegal transition {self.state} -> {new_state}")

        previous = self.state
        self.state = new_state
        self.history.append(new_state)
        self.message = message
        log = logger.warning if new_state == "error" else logger.info
        log("Session transition session_id=%s %s -> %s message=%s", self.session_id, previous, new_state, message)

        if self.event_bus is not None:
            await self.event_bus.publish(
                self.session_id,
                {"type": "session", "session_id": self.session_id, "state": new_state, "message": message},
            )
        if new_state in TERMINAL_STATES:
            await self._finalize()

    async def _finalize(self) -> None:
        self._cancel_background()
        if self._page is not None:
            try:
                self.screenshot_path = await self.driver.screenshot(self._page, f"{self.session_id}-{self.state}")
            except Exception as exc:
                logger.warning("Screenshot failed session_id=%s error=%s", self.session_id, exc)

        if self.audit is not None and not self._audited:
            self._audited = True
            try:
                await self.audit.record(self.snapshot(), self.fill_result, self.screenshot_path)
            except Exception as exc:
                logger.warning("Audit record failed session_id=%s error=%s", self.session_id, exc)

        try:
            await self.driver.close(self._page)
        except Exception as exc:
            logger.warning("Browser teardown failed session_id=%s error=%s", self.session_id, exc)
        self._page = None
        self._fields = []
        self.finished_at = time.monotonic()
        self._terminal.set()

    def _cancel_background(self, *, include_run: bool = False) -> None:
        current = asyncio.current_task()
        tasks = [self._login_task, self._submit_task]
        if include_run:
            tasks.append(self._run_task)
        for task in tasks:
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._login_task = None
        self._submit_task = None


def _file_failure(field: DetectedField, reason: str) -> FillFailure:
    return FillFailure(
        identifier=field.identifier,
        label=field.label,
        category=field.category,
        required=field.required,
        reason=reason,
    )
