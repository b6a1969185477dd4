from __future__ import annotations

from pathlib import Path

from formpilot.config import get_settings
from formpilot.db.base import Base
from formpilot.db.session import engine
from formpilot.db import models  # noqa: F401


def ensure_data_directories() -> None:
    settings = get_settings()
    paths: list[Path] = [
        settings.data_dir,
        settings.upload_dir,
        settings.run_artifact_dir,
    ]
    for path in paths:
        Path(path).expanduser().mkdir(parents=True, exist_ok=True)


def init_database() -> dict[str, list[str]]:
    ensure_data_directories()
    Base.metadata.create_all(bind=engine)
    return {"tables": sorted(Base.metadata.tables)}
