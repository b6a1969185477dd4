from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from formpilot.browser.classifier import DetectedField

logger = logging.getLogger(__name__)

COVER_LETTER_HINTS = ("cover", "letter", "motivation")


class FileUploader(Protocol):
    async def attach(
        self,
        field: DetectedField,
        resume_path: str | None,
        cover_letter_path: str | None,
    ) -> str | None: ...


class StagedFileUploader:
    """Attaches previously staged resume / cover-letter files to file inputs."""

    def __init__(self, *, timeout_ms: float = 10_000):
        self.timeout_ms = timeout_ms

    @staticmethod
    def choose_file(
        field: DetectedField,
        resume_path: str | None,
        cover_letter_path: str | None,
    ) -> str | None:
        context = field.context
        if any(hint in context for hint in COVER_LETTER_HINTS):
            return cover_letter_path or None
        return resume_path or None

    async def attach(
        self,
        field: DetectedField,
        resume_path: str | None,
        cover_letter_path: str | None,
    ) -> str | None:
        chosen = self.choose_file(field, resume_path, cover_letter_path)
        if not chosen:
            return None

        path = Path(chosen).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"staged file not found: {path}")

        await field.element.set_input_files(str(path), timeout=self.timeout_ms)
        logger.info("Attached %s to field=%s", path.name, field.key)
        return path.name
