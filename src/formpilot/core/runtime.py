from __future__ import annotations

from formpilot.config import get_settings
from formpilot.core.audit import DatabaseAuditSink
from formpilot.core.events import EventBus
from formpilot.core.manager import SessionManager
from formpilot.llm.writer import CoverLetterWriter

_EVENT_BUS: EventBus | None = None
_SESSION_MANAGER: SessionManager | None = None


def get_event_bus() -> EventBus:
    global _EVENT_BUS
    if _EVENT_BUS is None:
        _EVENT_BUS = EventBus()
    return _EVENT_BUS


def get_session_manager() -> SessionManager:
    global _SESSION_MANAGER
    if _SESSION_MANAGER is None:
        settings = get_settings()
        audit = DatabaseAuditSink()
        _SESSION_MANAGER = SessionManager(
            settings=settings,
            audit=audit,
            writer=CoverLetterWriter(settings),
            event_bus=get_event_bus(),
            bulk_recorder=audit.record_bulk,
        )
    return _SESSION_MANAGER
