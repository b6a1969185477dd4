from __future__ import annotations

from collections.abc import Generator

from sqlalchemy.orm import Session

from formpilot.core.manager import SessionManager
from formpilot.core.runtime import get_session_manager
from formpilot.db.session import get_db_session


def get_db() -> Generator[Session, None, None]:
    yield from get_db_session()


def get_manager() -> SessionManager:
    return get_session_manager()
