"""Configuration settings for the LAK backend."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings

from lak.jobs.config import JobsConfig


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Storage
    storage_backend: Literal["supabase", "memory"] = "supabase"
    supabase_url: str | None = None
    supabase_secret_key: str | None = None  # Backend/admin access
    jobs_table: str = "jobs"
    job_transitions_table: str = "job_state_transitions"
    media_bucket: str = "job-images"

    # JWT (issued by the identity provider)
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 1 week

    # Jobs core
    require_applicant_for_assignment: bool = True
    max_images_per_job: int = 10
    max_image_bytes: int = 5 * 1024 * 1024
    max_page_size: int = 100
    repository_timeout_seconds: float = 5.0
    retry_backoff_seconds: float = 0.25

    # App
    debug: bool = False
    log_level: str = "INFO"
    rate_limit_enabled: bool = True
    # CORS: Allowed origins for cross-origin requests
    cors_origins: list[str] = [
        "http://localhost:8081",
        "http://127.0.0.1:8081",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model

    def jobs_config(self) -> JobsConfig:
        return JobsConfig(
            require_applicant_for_assignment=self.require_applicant_for_assignment,
            max_images_per_job=self.max_images_per_job,
            max_image_bytes=self.max_image_bytes,
            max_page_size=self.max_page_size,
            repository_timeout_seconds=self.repository_timeout_seconds,
            retry_backoff_seconds=self.retry_backoff_seconds,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
