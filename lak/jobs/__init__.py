"""Jobs subsystem for LAK.

Owners post short-term labor jobs, drivers apply, and the owner assigns,
denies or completes.

Models:
- Job: A labor job listing
- JobStatus: Job lifecycle status
- JobStateTransition: Audit log entry for lifecycle events

Services:
- JobService: Lifecycle operations (create, apply, assign, deny, complete, ...)
- JobQueryService: Filtered listings and document resolution

Storage:
- InMemoryJobStorage, SupabaseJobStorage
- InMemoryMediaStore, SupabaseMediaStore
"""

from lak.jobs.config import JobsConfig
from lak.jobs.errors import (
    AuthorizationError,
    ConflictError,
    JobServiceError,
    NotFoundError,
    RepositoryUnavailable,
    StateError,
    UnknownInternalError,
    ValidationError,
    VersionConflictError,
)
from lak.jobs.media import ImageUpload, InMemoryMediaStore, StoredImage, SupabaseMediaStore
from lak.jobs.models import (
    VALID_JOB_TRANSITIONS,
    Job,
    JobEvent,
    JobStateTransition,
    JobStatus,
)
from lak.jobs.queries import JobQueryService
from lak.jobs.service import JobService
from lak.jobs.storage import InMemoryJobStorage, JobQuery
from lak.jobs.supabase_storage import SupabaseJobStorage

__all__ = [
    # Models
    "Job",
    "JobStatus",
    "JobEvent",
    "JobStateTransition",
    "VALID_JOB_TRANSITIONS",
    "JobsConfig",
    # Services
    "JobService",
    "JobQueryService",
    # Storage
    "JobQuery",
    "InMemoryJobStorage",
    "SupabaseJobStorage",
    "ImageUpload",
    "StoredImage",
    "InMemoryMediaStore",
    "SupabaseMediaStore",
    # Errors
    "JobServiceError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "StateError",
    "VersionConflictError",
    "RepositoryUnavailable",
    "UnknownInternalError",
]
