from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from formpilot.types import ApplicantProfile


class StartSessionRequest(BaseModel):
    job_url: str = Field(min_length=1)
    profile: ApplicantProfile
    resume_path: str | None = None
    cover_letter_path: str | None = None
    auto_submit: bool | None = None


class StartSessionResponse(BaseModel):
    session_id: str


class StartBulkRequest(BaseModel):
    job_urls: list[str]
    profile: ApplicantProfile
    resume_file: str
    cover_letter_file: str | None = None


class StartBulkResponse(BaseModel):
    batch_id: str


class ApplicationLogResponse(BaseModel):
    id: int
    session_id: str
    job_url: str
    domain: str
    platform: str
    title: str
    company: str
    state: str
    message: str
    filled_count: int
    failed_count: int
    fill_result_json: dict[str, Any] = Field(default_factory=dict)
    screenshot_path: str | None = None
    created_at: str | None = None


class BulkRunRecordResponse(BaseModel):
    batch_id: str
    total_jobs: int
    completed_jobs: int
    successful_jobs: int
    failed_jobs: int
    failed_urls: list[str] = Field(default_factory=list)
    is_complete: bool
    message: str
    created_at: str | None = None
    completed_at: str | None = None
