from __future__ import annotations

import pytest
from pydantic import ValidationError

from formpilot.config import Settings
from formpilot.types import ApplicantProfile, BulkRunProgress, FillFailure, FillResult, SessionSnapshot


def test_settings_defaults() -> None:
    settings = Settings()

    assert settings.field_confidence_threshold == 0.3
    assert settings.bulk_max_jobs == 50
    assert settings.login_timeout_sec == 0.0
    assert settings.auto_submit_enabled is True


def test_settings_rejects_bad_values() -> None:
    with pytest.raises(ValidationError):
        Settings(field_confidence_threshold=1.5)
    with pytest.raises(ValidationError):
        Settings(bulk_delay_min_sec=5, bulk_delay_max_sec=2)
    with pytest.raises(ValidationError):
        Settings(app_env="qa")


def test_cors_origin_list_splits_and_strips() -> None:
    settings = Settings(cors_origins="http://a.test, http://b.test ,")

    assert settings.cors_origin_list == ["http://a.test", "http://b.test"]


def test_profile_requires_email_with_at_sign() -> None:
    with pytest.raises(ValidationError):
        ApplicantProfile(first_name="Ada", last_name="Lovelace", email="not-an-email")


def test_profile_is_immutable(profile: ApplicantProfile) -> None:
    with pytest.raises(ValidationError):
        profile.email = "x@y.com"


def test_fill_result_required_failures() -> None:
    result = FillResult(
        failures=[
            FillFailure(identifier="a", category="text", required=True, reason="no value resolved"),
            FillFailure(identifier="b", category="radio", required=False, reason="no radio option matches 'x'"),
        ]
    )

    assert [failure.identifier for failure in result.required_failures] == ["a"]


def test_bulk_progress_rejects_inconsistent_counters() -> None:
    with pytest.raises(ValidationError):
        BulkRunProgress(total_jobs=1, completed_jobs=2)


def test_snapshot_terminal_flag() -> None:
    assert SessionSnapshot(session_id="s", state="submitted", job_url="u").is_terminal
    assert not SessionSnapshot(session_id="s", state="form_filled", job_url="u").is_terminal
