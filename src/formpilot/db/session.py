from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from formpilot.config import get_settings

settings = get_settings()
database_url = make_url(settings.database_url)
connect_args: dict[str, object] = {}
if database_url.get_backend_name() == "sqlite":
    connect_args["check_same_thread"] = False
    if database_url.database and database_url.database != ":memory:":
        Path(database_url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

engine = create_engine(settings.database_url, connect_args=connect_args, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False)


def get_db_session() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
