from __future__ import annotations

import asyncio
import threading

from formpilot.core.audit import DatabaseAuditSink
from formpilot.db.repositories import Repository
from formpilot.db.session import SessionLocal
from formpilot.types import BulkRunProgress, FillFailure, FillResult, JobDetails, SessionSnapshot


def _snapshot(session_id: str, state: str = "submitted") -> SessionSnapshot:
    return SessionSnapshot(
        session_id=session_id,
        state=state,
        job_url="https://boards.greenhouse.io/acme/jobs/1",
        platform="greenhouse",
        message="application submitted",
        job_details=JobDetails(title="Backend Engineer", company="Acme Corp"),
    )


def test_audit_sink_writes_application_log() -> None:
    result = FillResult(
        filled={"email": "a@b.com", "first_name": "Ada"},
        failures=[FillFailure(identifier="q1", category="text", required=False, reason="no value resolved")],
    )

    asyncio.run(DatabaseAuditSink().record(_snapshot("s-1"), result, "/tmp/s-1.png"))

    with SessionLocal() as db:
        entry = Repository(db).get_application("s-1")

    assert entry is not None
    assert entry.domain == "boards.greenhouse.io"
    assert entry.title == "Backend Engineer"
    assert entry.filled_count == 2
    assert entry.failed_count == 1
    assert entry.fill_result_json["filled"]["email"] == "a@b.com"
    assert entry.screenshot_path == "/tmp/s-1.png"


def test_list_applications_filters_by_state() -> None:
    sink = DatabaseAuditSink()
    asyncio.run(sink.record(_snapshot("s-1"), None, None))
    asyncio.run(sink.record(_snapshot("s-2", state="error"), None, None))

    with SessionLocal() as db:
        repo = Repository(db)
        everything = repo.list_applications()
        errors = repo.list_applications(state="error")

    assert [row.session_id for row in everything] == ["s-2", "s-1"]
    assert [row.session_id for row in errors] == ["s-2"]
    assert errors[0].filled_count == 0


def test_bulk_run_record_is_upserted() -> None:
    sink = DatabaseAuditSink()
    asyncio.run(sink.record_bulk("batch-1", BulkRunProgress(total_jobs=3, completed_jobs=1, successful_jobs=1)))
    asyncio.run(
        sink.record_bulk(
            "batch-1",
            BulkRunProgress(
                total_jobs=3,
                completed_jobs=3,
                successful_jobs=2,
                failed_jobs=1,
                failed_urls=["https://example.com/jobs/2"],
                is_complete=True,
            ),
        )
    )

    with SessionLocal() as db:
        runs = Repository(db).list_bulk_runs()

    assert len(runs) == 1
    assert runs[0].completed_jobs == 3
    assert runs[0].failed_urls_json == ["https://example.com/jobs/2"]
    assert runs[0].completed_at is not None


def test_bulk_record_is_written_off_the_event_loop() -> None:
    threads: list[int] = []

    def session_factory():
        threads.append(threading.get_ident())
        return SessionLocal()

    sink = DatabaseAuditSink(session_factory=session_factory)
    asyncio.run(sink.record_bulk("batch-2", BulkRunProgress(total_jobs=1)))

    assert threads
    assert threading.get_ident() not in threads
    with SessionLocal() as db:
        assert [run.batch_id for run in Repository(db).list_bulk_runs()] == ["batch-2"]
