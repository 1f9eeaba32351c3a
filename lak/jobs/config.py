"""Configuration for the jobs core."""

from dataclasses import dataclass


@dataclass
class JobsConfig:
    """Tunable limits and policies for job operations.

    require_applicant_for_assignment: when True, an owner can only assign a
        driver who is currently in the job's applicants. When False, the owner
        may assign any user except themselves or a denied driver; the driver is
        then recorded as an applicant as part of the assignment.
    """

    require_applicant_for_assignment: bool = True
    max_images_per_job: int = 10
    max_image_bytes: int = 5 * 1024 * 1024
    max_page_size: int = 100
    repository_timeout_seconds: float = 5.0
    retry_backoff_seconds: float = 0.25

    def __post_init__(self):
        if self.max_images_per_job < 0:
            raise ValueError("max_images_per_job cannot be negative")
        if self.max_image_bytes <= 0:
            raise ValueError("max_image_bytes must be positive")
        if self.max_page_size <= 0:
            raise ValueError("max_page_size must be positive")
        if self.repository_timeout_seconds <= 0:
            raise ValueError("repository_timeout_seconds must be positive")
        if self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds cannot be negative")
