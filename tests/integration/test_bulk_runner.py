from __future__ import annotations

import asyncio
import random

import pytest

from formpilot.config import Settings
from formpilot.core.bulk import BulkJob, BulkRunController, BulkRunError
from formpilot.core.events import EventBus
from formpilot.types import SessionSnapshot

URLS = ["https://example.com/jobs/1", "https://example.com/jobs/2", "https://example.com/jobs/3"]


class ScriptedRunner:
    def __init__(self, failing: set[str] | None = None):
        self.failing = set(failing or ())
        self.processed: list[str] = []

    async def __call__(self, job: BulkJob) -> SessionSnapshot:
        self.processed.append(job.job_url)
        if job.job_url in self.failing:
            raise RuntimeError("fill crashed")
        return SessionSnapshot(session_id=job.job_url, state="submitted", job_url=job.job_url)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _controller(runner, **kwargs) -> tuple[BulkRunController, RecordingSleep]:
    sleep = RecordingSleep()
    controller = BulkRunController(
        runner,
        settings=Settings(),
        sleep=sleep,
        rng=random.Random(7),
        **kwargs,
    )
    return controller, sleep


def test_failed_job_is_counted_and_retried(profile, resume_file) -> None:
    runner = ScriptedRunner(failing={URLS[1]})
    controller, _ = _controller(runner)

    progress = asyncio.run(controller.run(URLS, profile, str(resume_file)))

    assert progress.completed_jobs == 3
    assert progress.successful_jobs == 2
    assert progress.failed_jobs == 1
    assert progress.failed_urls == [URLS[1]]
    assert progress.failure_reasons[URLS[1]] == "fill crashed"
    assert progress.is_complete is True
    assert progress.message == "completed 3 jobs: 2 submitted, 1 failed"

    runner.failing.clear()
    runner.processed.clear()
    retried = asyncio.run(controller.retry_failed())

    assert runner.processed == [URLS[1]]
    assert retried.total_jobs == 1
    assert retried.successful_jobs == 1
    assert retried.failed_urls == []


def test_non_submitted_session_counts_as_failure(profile, resume_file) -> None:
    async def runner(job: BulkJob) -> SessionSnapshot:
        return SessionSnapshot(session_id="s", state="error", job_url=job.job_url, message="could not detect form")

    controller, _ = _controller(runner)
    progress = asyncio.run(controller.run(URLS[:1], profile, str(resume_file)))

    assert progress.failed_jobs == 1
    assert progress.failure_reasons[URLS[0]] == "could not detect form"


def test_delay_between_jobs_but_not_after_last(profile, resume_file) -> None:
    controller, sleep = _controller(ScriptedRunner())

    asyncio.run(controller.run(URLS, profile, str(resume_file)))

    assert len(sleep.delays) == 2
    assert all(2.0 <= delay <= 5.0 for delay in sleep.delays)


def test_rejects_more_than_fifty_urls(profile, resume_file) -> None:
    runner = ScriptedRunner()
    controller, _ = _controller(runner)
    urls = [f"https://example.com/jobs/{index}" for index in range(51)]

    with pytest.raises(BulkRunError, match="at most 50 jobs, got 51"):
        asyncio.run(controller.run(urls, profile, str(resume_file)))
    assert runner.processed == []


def test_rejects_missing_resume_and_blank_urls(profile, tmp_path, resume_file) -> None:
    controller, _ = _controller(ScriptedRunner())

    with pytest.raises(BulkRunError, match="resume file not found"):
        controller.validate(URLS, str(tmp_path / "missing.pdf"))
    with pytest.raises(BulkRunError, match="resume file is required"):
        controller.validate(URLS, "")
    with pytest.raises(BulkRunError, match="must not be blank"):
        controller.validate([URLS[0], ""], str(resume_file))
    with pytest.raises(BulkRunError, match="at least one"):
        controller.validate([], str(resume_file))


def test_pause_stops_before_next_job_and_resume_finishes(profile, resume_file) -> None:
    holder: dict[str, BulkRunController] = {}
    processed: list[str] = []

    async def runner(job: BulkJob) -> SessionSnapshot:
        processed.append(job.job_url)
        if len(processed) == 1:
            holder["controller"].pause()
        return SessionSnapshot(session_id="s", state="submitted", job_url=job.job_url)

    controller, sleep = _controller(runner)
    holder["controller"] = controller

    paused = asyncio.run(controller.run(URLS, profile, str(resume_file)))

    assert paused.is_paused is True
    assert paused.is_complete is False
    assert paused.completed_jobs == 1
    assert paused.message == "paused after 1 of 3 jobs"
    assert sleep.delays == []

    with pytest.raises(BulkRunError, match="resume the paused bulk run"):
        asyncio.run(controller.retry_failed())

    finished = asyncio.run(controller.resume())

    assert processed == URLS
    assert finished.is_complete is True
    assert finished.completed_jobs == 3
    assert finished.is_paused is False


def test_retry_with_no_failures(profile, resume_file) -> None:
    controller, _ = _controller(ScriptedRunner())
    asyncio.run(controller.run(URLS[:1], profile, str(resume_file)))

    progress = asyncio.run(controller.retry_failed())

    assert progress.message == "no failed jobs to retry"


def test_progress_is_published(profile, resume_file) -> None:
    bus = EventBus()
    recorded: list[tuple[str, int]] = []

    async def record(batch_id, progress) -> None:
        recorded.append((batch_id, progress.completed_jobs))

    controller, _ = _controller(
        ScriptedRunner(),
        event_bus=bus,
        batch_id="batch-1",
        on_progress=record,
    )

    asyncio.run(controller.run(URLS[:2], profile, str(resume_file)))

    assert recorded[-1] == ("batch-1", 2)
    latest = bus.latest("batch-1")
    assert latest["type"] == "bulk"
    assert latest["is_complete"] is True
    for _, completed in recorded:
        assert 0 <= completed <= 2
