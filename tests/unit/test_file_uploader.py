from __future__ import annotations

import asyncio

import pytest
from fakes import SoupPage

from formpilot.browser.classifier import DetectedField
from formpilot.browser.uploads import StagedFileUploader

UPLOAD_FORM = """
<form>
  <label for="resume">Resume/CV</label><input type="file" id="resume" name="resume">
  <label for="cover">Cover Letter</label><input type="file" id="cover" name="cover_letter">
</form>
"""


def _file_field(page: SoupPage, selector: str, label: str) -> DetectedField:
    element = asyncio.run(page.locator(selector).all())[0]
    return DetectedField(
        element=element,
        category="file",
        label=label,
        identifier=element.tag["name"],
        required=False,
        default_value="",
        confidence=0.8,
    )


def test_choose_file_routes_cover_letter_inputs(tmp_path) -> None:
    page = SoupPage(UPLOAD_FORM)
    resume = _file_field(page, "#resume", "Resume/CV")
    cover = _file_field(page, "#cover", "Cover Letter")

    assert StagedFileUploader.choose_file(resume, "r.pdf", "c.pdf") == "r.pdf"
    assert StagedFileUploader.choose_file(cover, "r.pdf", "c.pdf") == "c.pdf"
    assert StagedFileUploader.choose_file(cover, "r.pdf", None) is None


def test_attach_sets_files(tmp_path) -> None:
    resume_path = tmp_path / "resume.pdf"
    resume_path.write_bytes(b"pdf")
    page = SoupPage(UPLOAD_FORM)
    field = _file_field(page, "#resume", "Resume/CV")

    attached = asyncio.run(StagedFileUploader().attach(field, str(resume_path), None))

    assert attached == "resume.pdf"
    assert page.uploads == {"resume": str(resume_path)}


def test_attach_missing_file_raises(tmp_path) -> None:
    page = SoupPage(UPLOAD_FORM)
    field = _file_field(page, "#resume", "Resume/CV")

    with pytest.raises(FileNotFoundError):
        asyncio.run(StagedFileUploader().attach(field, str(tmp_path / "missing.pdf"), None))


def test_attach_without_staged_file_returns_none() -> None:
    page = SoupPage(UPLOAD_FORM)
    field = _file_field(page, "#cover", "Cover Letter")

    assert asyncio.run(StagedFileUploader().attach(field, "resume.pdf", None)) is None
    assert page.uploads == {}
