"""
Jobs storage layer.

Defines the repository protocol the lifecycle engine and query service
depend on, and an in-memory implementation for tests and local development.
The Supabase implementation lives in ``lak.jobs.supabase_storage``.

Every mutating call is conditional on the job's ``version``: the write only
happens if the stored version still equals the version the caller read.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Protocol, Sequence

from lak.jobs.errors import ConflictError, NotFoundError, RepositoryTimeout, VersionConflictError
from lak.jobs.models import Job, JobStateTransition, JobStatus, SEARCHABLE_FIELDS, utc_now
from lak.jobs.retry import retry_on_timeout

logger = logging.getLogger(__name__)


@dataclass
class JobQuery:
    """Filter for job id searches.

    Each flag is tri-state: True applies the constraint, False applies its
    negation, None leaves it out.

    Attributes:
        user_id: User the flags are relative to.
        owned: owner_id == user_id.
        assigned: assigned_driver_id == user_id.
        finished: status == completed.
        applied: user_id in applicants.
        search: Case-insensitive substring matched against searchable fields.
        limit: Page size.
        offset: Number of matching ids to skip.
    """

    user_id: str
    owned: Optional[bool] = None
    assigned: Optional[bool] = None
    finished: Optional[bool] = None
    applied: Optional[bool] = None
    search: Optional[str] = None
    limit: int = 20
    offset: int = 0

    def matches(self, job: Job) -> bool:
        """Evaluate the filter against a job in memory."""
        checks = (
            (self.owned, job.owner_id == self.user_id),
            (self.assigned, job.assigned_driver_id == self.user_id),
            (self.finished, job.status == JobStatus.COMPLETED.value),
            (self.applied, self.user_id in job.applicants),
        )
        for wanted, actual in checks:
            if wanted is not None and wanted != actual:
                return False
        if self.search:
            needle = self.search.lower()
            if not any(needle in str(getattr(job, name)).lower() for name in SEARCHABLE_FIELDS):
                return False
        return True


def recency_key(job: Job):
    """Sort key for most-recent-first ordering with a stable tiebreak."""
    return (job.created_at or utc_now(), job.id)


class JobStorage(Protocol):
    """Protocol for job persistence backends."""

    def create_job(self, job: Job) -> str:
        """Insert a new job. Returns the job ID."""
        ...

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        ...

    def get_jobs_by_ids(self, job_ids: Sequence[str]) -> List[Job]:
        """Get the jobs that exist among ``job_ids`` (any order)."""
        ...

    def update_job(self, job: Job) -> Job:
        """Write ``job`` if the stored version still equals ``job.version``.

        Returns the stored job, whose version is incremented.
        Raises NotFoundError or VersionConflictError.
        """
        ...

    def delete_job(self, job_id: str, expected_version: int) -> None:
        """Delete a job and its transitions if the version still matches.

        Raises NotFoundError or VersionConflictError.
        """
        ...

    def find_job_ids(self, query: JobQuery) -> List[str]:
        """Job ids matching ``query``, most recent first, paginated."""
        ...

    # Transitions (audit log)
    def save_transition(self, transition: JobStateTransition) -> str:
        """Save a state transition record. Returns the transition ID."""
        ...

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        """Get all state transitions for a job, oldest first."""
        ...

    def ping(self) -> bool:
        """Check the backend is reachable."""
        ...


class InMemoryJobStorage:
    """In-memory job storage for testing and local development.

    A single lock serializes writes. It is acquired with a timeout so that no
    call blocks indefinitely.

    Args:
        timeout: Seconds to wait for the lock before timing out.
        retry_backoff: Seconds to wait before retrying a timed out call.
    """

    def __init__(self, timeout: float = 5.0, retry_backoff: float = 0.25):
        self.timeout = timeout
        self.retry_backoff = retry_backoff
        self._jobs: Dict[str, Job] = {}
        self._deleted_ids: set = set()
        self._transitions: Dict[str, List[JobStateTransition]] = {}  # job_id -> list
        self._lock = threading.Lock()

    @contextmanager
    def _locked(self):
        if not self._lock.acquire(timeout=self.timeout):
            raise RepositoryTimeout("Job storage timed out", context=f"lock wait > {self.timeout}s")
        try:
            yield
        finally:
            self._lock.release()

    # === Jobs ===

    @retry_on_timeout
    def create_job(self, job: Job) -> str:
        """Insert a new job."""
        with self._locked():
            if job.id in self._jobs or job.id in self._deleted_ids:
                raise ConflictError("Job ID already in use", context=f"job_id={job.id}")
            self._jobs[job.id] = copy.deepcopy(job)
            self._transitions.setdefault(job.id, [])
        return job.id

    @retry_on_timeout
    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        with self._locked():
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job else None

    @retry_on_timeout
    def get_jobs_by_ids(self, job_ids: Sequence[str]) -> List[Job]:
        with self._locked():
            return [copy.deepcopy(self._jobs[j]) for j in set(job_ids) if j in self._jobs]

    @retry_on_timeout
    def update_job(self, job: Job) -> Job:
        """Conditionally replace a job."""
        with self._locked():
            current = self._jobs.get(job.id)
            if current is None:
                raise NotFoundError("Job not found")
            if current.version != job.version:
                logger.warning(
                    f"Race condition detected on job {job.id}: "
                    f"expected version {job.version}, found {current.version}"
                )
                raise VersionConflictError(job.id, job.version, current.version)
            stored = replace(job, version=job.version + 1)
            self._jobs[job.id] = copy.deepcopy(stored)
        return stored

    @retry_on_timeout
    def delete_job(self, job_id: str, expected_version: int) -> None:
        """Conditionally delete a job and its transitions."""
        with self._locked():
            current = self._jobs.get(job_id)
            if current is None:
                raise NotFoundError("Job not found")
            if current.version != expected_version:
                raise VersionConflictError(job_id, expected_version, current.version)
            del self._jobs[job_id]
            self._transitions.pop(job_id, None)
            self._deleted_ids.add(job_id)

    @retry_on_timeout
    def find_job_ids(self, query: JobQuery) -> List[str]:
        """Filter, sort by created_at desc and paginate."""
        with self._locked():
            jobs = [j for j in self._jobs.values() if query.matches(j)]
        jobs.sort(key=recency_key, reverse=True)
        return [j.id for j in jobs[query.offset : query.offset + query.limit]]

    # === Transitions ===

    @retry_on_timeout
    def save_transition(self, transition: JobStateTransition) -> str:
        """Save a state transition record."""
        with self._locked():
            if transition.job_id not in self._jobs:
                raise NotFoundError("Job not found")
            self._transitions.setdefault(transition.job_id, []).append(copy.deepcopy(transition))
        return transition.id

    @retry_on_timeout
    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        """Get all state transitions for a job."""
        with self._locked():
            transitions = copy.deepcopy(self._transitions.get(job_id, []))
        # Sort by created_at asc
        return sorted(transitions, key=lambda t: t.created_at or utc_now())

    def ping(self) -> bool:
        return True
