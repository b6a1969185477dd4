from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

FieldCategory = Literal["text", "select", "radio", "checkbox", "file", "date"]
SessionState = Literal[
    "starting",
    "waiting_for_login",
    "ready_to_fill",
    "form_filled",
    "submitted",
    "error",
]
WorkAuthorization = Literal["citizen", "permanent_resident", "visa_required", "other"]

FIELD_CATEGORIES: tuple[FieldCategory, ...] = ("text", "select", "radio", "checkbox", "file", "date")
TERMINAL_STATES: frozenset[str] = frozenset({"submitted", "error"})


class Education(BaseModel):
    model_config = ConfigDict(frozen=True)

    degree: str = ""
    major: str = ""
    school: str = ""
    graduation_year: str = ""
    gpa: str = ""


class WorkExperience(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = ""
    company: str = ""
    start_date: str = ""
    end_date: str = ""
    current: bool = False
    description: str = ""


class ApplicantProfile(BaseModel):
    """Closed, typed applicant record consumed by the value resolver.

    Nothing in the engine reads attributes that are not declared here; the
    resolver only sees the flattened profile mapping built from it.
    """

    model_config = ConfigDict(frozen=True)

    first_name: str
    last_name: str
    full_name: str = ""
    email: str
    phone: str = ""

    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "United States"

    work_authorization: WorkAuthorization = "citizen"
    requires_sponsorship: bool = False
    visa_status: str = ""

    desired_salary: str = ""
    start_date: str = "Immediately"
    years_of_experience: str = ""

    education: list[Education] = Field(default_factory=list)
    experience: list[WorkExperience] = Field(default_factory=list)

    linkedin_url: str = ""
    github_url: str = ""
    website_url: str = ""
    portfolio_url: str = ""

    gender: str = ""
    ethnicity: str = ""
    veteran_status: str = ""
    disability_status: str = ""

    enable_ai_cover_letter: bool = False
    cover_letter_text: str = ""
    custom_responses: dict[str, str] = Field(default_factory=dict)

    resume_path: str = ""
    cover_letter_path: str = ""

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        value = value.strip()
        if "@" not in value:
            raise ValueError("email must contain '@'")
        return value

    @property
    def display_name(self) -> str:
        return self.full_name or f"{self.first_name} {self.last_name}".strip()


class FillFailure(BaseModel):
    identifier: str = ""
    label: str = ""
    category: FieldCategory
    required: bool = False
    reason: str


class FillResult(BaseModel):
    filled: dict[str, str] = Field(default_factory=dict)
    failures: list[FillFailure] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)

    @property
    def required_failures(self) -> list[FillFailure]:
        return [failure for failure in self.failures if failure.required]


class JobDetails(BaseModel):
    url: str = ""
    title: str = ""
    company: str = ""
    location: str = ""
    description: str = ""


class SessionSnapshot(BaseModel):
    session_id: str
    state: SessionState
    job_url: str
    platform: str = "generic"
    message: str = ""
    requires_login: bool = False
    is_logged_in: bool = False
    form_filled: bool = False
    ready_to_submit: bool = False
    fill_result: FillResult | None = None
    job_details: JobDetails | None = None
    screenshot_path: str | None = None
    history: list[SessionState] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class BulkRunProgress(BaseModel):
    total_jobs: int = 0
    completed_jobs: int = 0
    successful_jobs: int = 0
    failed_jobs: int = 0
    current_job_url: str | None = None
    is_complete: bool = False
    is_paused: bool = False
    failed_urls: list[str] = Field(default_factory=list)
    failure_reasons: dict[str, str] = Field(default_factory=dict)
    message: str = ""

    @model_validator(mode="after")
    def validate_counters(self) -> "BulkRunProgress":
        if self.completed_jobs > self.total_jobs:
            raise ValueError("completed_jobs cannot exceed total_jobs")
        return self
