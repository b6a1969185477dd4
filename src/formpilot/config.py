from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "FormPilot"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 8787
    log_level: str = "INFO"
    cors_origins: str = "http://127.0.0.1:8787"

    database_url: str = "sqlite:///./data/formpilot.db"
    data_dir: Path = Path("./data")
    upload_dir: Path = Path("./data/uploads")
    run_artifact_dir: Path = Path("./data/runs")

    browser_headless: bool = True
    browser_channel: str = ""
    browser_executable_path: str = ""
    browser_nav_timeout_sec: int = 30
    browser_action_timeout_sec: int = 10
    login_window_headless: bool = False

    field_confidence_threshold: float = 0.3
    login_poll_interval_sec: float = 3.0
    login_poll_error_interval_sec: float = 5.0
    login_timeout_sec: float = 0.0
    auto_submit_enabled: bool = True
    auto_submit_grace_sec: float = 5.0
    confirmation_timeout_sec: float = 10.0
    reveal_application_form: bool = True

    bulk_max_jobs: int = 50
    bulk_delay_min_sec: float = 2.0
    bulk_delay_max_sec: float = 5.0
    session_retention_sec: float = 900.0

    save_screenshots: bool = True
    save_dom_snapshots: bool = False

    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model_writer: str = "gpt-5-mini"
    openai_timeout_sec: int = 60

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("field_confidence_threshold")
    @classmethod
    def validate_threshold(cls, value: float) -> float:
        if not 0 <= value <= 1:
            raise ValueError("field_confidence_threshold must be between 0 and 1")
        return value

    @model_validator(mode="after")
    def validate_bulk_delay(self) -> "Settings":
        if self.bulk_delay_min_sec < 0 or self.bulk_delay_max_sec < self.bulk_delay_min_sec:
            raise ValueError("bulk delay bounds must satisfy 0 <= min <= max")
        return self

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
