from __future__ import annotations

from datetime import UTC, datetime
from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.orm import Session

from formpilot.db.models import ApplicationLog, BulkRunRecord
from formpilot.types import BulkRunProgress, FillResult, SessionSnapshot


class Repository:
    def __init__(self, session: Session):
        self.session = session

    def record_application(
        self,
        snapshot: SessionSnapshot,
        fill_result: FillResult | None,
        screenshot_path: str | None = None,
    ) -> ApplicationLog:
        details = snapshot.job_details
        entry = ApplicationLog(
            session_id=snapshot.session_id,
            job_url=snapshot.job_url,
            domain=urlparse(snapshot.job_url).netloc.lower(),
            platform=snapshot.platform,
            title=details.title if details else "",
            company=details.company if details else "",
            state=snapshot.state,
            message=snapshot.message,
            filled_count=len(fill_result.filled) if fill_result else 0,
            failed_count=len(fill_result.failures) if fill_result else 0,
            fill_result_json=fill_result.model_dump() if fill_result else {},
            screenshot_path=screenshot_path,
        )
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return entry

    def get_application(self, session_id: str) -> ApplicationLog | None:
        statement = select(ApplicationLog).where(ApplicationLog.session_id == session_id)
        return self.session.scalars(statement).first()

    def list_applications(self, limit: int = 50, state: str | None = None) -> list[ApplicationLog]:
        statement = select(ApplicationLog)
        if state:
            statement = statement.where(ApplicationLog.state == state)
        statement = statement.order_by(ApplicationLog.id.desc()).limit(limit)
        return list(self.session.scalars(statement).all())

    def save_bulk_run(self, batch_id: str, progress: BulkRunProgress) -> BulkRunRecord:
        statement = select(BulkRunRecord).where(BulkRunRecord.batch_id == batch_id)
        record = self.session.scalars(statement).first()
        if record is None:
            record = BulkRunRecord(batch_id=batch_id)
            self.session.add(record)

        record.total_jobs = progress.total_jobs
        record.completed_jobs = progress.completed_jobs
        record.successful_jobs = progress.successful_jobs
        record.failed_jobs = progress.failed_jobs
        record.failed_urls_json = list(progress.failed_urls)
        record.is_complete = progress.is_complete
        record.message = progress.message
        if progress.is_complete and record.completed_at is None:
            record.completed_at = datetime.now(UTC)

        self.session.commit()
        self.session.refresh(record)
        return record

    def list_bulk_runs(self, limit: int = 20) -> list[BulkRunRecord]:
        statement = select(BulkRunRecord).order_by(BulkRunRecord.id.desc()).limit(limit)
        return list(self.session.scalars(statement).all())
