from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from formpilot.db.repositories import Repository
from formpilot.db.session import SessionLocal
from formpilot.types import BulkRunProgress, FillResult, SessionSnapshot

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    async def record(
        self,
        snapshot: SessionSnapshot,
        fill_result: FillResult | None,
        screenshot_path: str | None,
    ) -> None: ...


class DatabaseAuditSink:
    """Writes one application log row per finished session."""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    async def record(
        self,
        snapshot: SessionSnapshot,
        fill_result: FillResult | None,
        screenshot_path: str | None,
    ) -> None:
        await asyncio.to_thread(self._write, snapshot, fill_result, screenshot_path)

    def _write(
        self,
        snapshot: SessionSnapshot,
        fill_result: FillResult | None,
        screenshot_path: str | None,
    ) -> None:
        with self.session_factory() as db:
            entry = Repository(db).record_application(snapshot, fill_result, screenshot_path)
        logger.info(
            "Audit recorded session_id=%s state=%s filled=%s failed=%s",
            snapshot.session_id,
            entry.state,
            entry.filled_count,
            entry.failed_count,
        )

    async def record_bulk(self, batch_id: str, progress: BulkRunProgress) -> None:
        await asyncio.to_thread(self._write_bulk, batch_id, progress)

    def _write_bulk(self, batch_id: str, progress: BulkRunProgress) -> None:
        with self.session_factory() as db:
            Repository(db).save_bulk_run(batch_id, progress)
