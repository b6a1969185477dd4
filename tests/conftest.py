from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./data/test_formpilot.db")
os.environ.setdefault("APP_ENV", "test")

import pytest

from formpilot.db.base import Base
from formpilot.db.session import engine
from formpilot.types import ApplicantProfile, Education, WorkExperience


@pytest.fixture(autouse=True)
def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def profile() -> ApplicantProfile:
    return ApplicantProfile(
        first_name="Ada",
        last_name="Lovelace",
        email="a@b.com",
        phone="555-0100",
        city="London",
        state="CA",
        zip_code="94105",
        country="United States",
        years_of_experience="6",
        education=[Education(degree="BSc", major="Mathematics", school="University of London", graduation_year="2015")],
        experience=[WorkExperience(title="Staff Engineer", company="Analytical Engines", current=True)],
        linkedin_url="https://linkedin.com/in/ada",
    )


@pytest.fixture
def resume_file(tmp_path):
    path = tmp_path / "resume.pdf"
    path.write_bytes(b"%PDF-1.4 resume")
    return path
