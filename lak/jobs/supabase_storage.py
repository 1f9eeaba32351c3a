"""Supabase (PostgREST) job storage.

Jobs are stored one row per document in the ``jobs`` table; applicants,
denied drivers and images are text arrays. Conditional writes use the
``UPDATE ... WHERE id = ? AND version = ?`` pattern, so a concurrent writer
that read an older version matches no row and gets a VersionConflictError.

Schema: ``backend/supabase/migrations/001_jobs.sql``.
"""

import logging
from typing import List, Optional, Sequence

import httpx
from postgrest.exceptions import APIError

from lak.jobs.errors import (
    ConflictError,
    NotFoundError,
    RepositoryTimeout,
    RepositoryUnavailable,
    VersionConflictError,
)
from lak.jobs.models import SEARCHABLE_FIELDS, Job, JobStateTransition, JobStatus
from lak.jobs.retry import retry_on_timeout
from lak.jobs.storage import JobQuery

logger = logging.getLogger(__name__)

JOBS_TABLE = "jobs"
JOB_TRANSITIONS_TABLE = "job_state_transitions"

# Characters with meaning in PostgREST filter syntax or LIKE patterns
_FILTER_RESERVED = str.maketrans({c: " " for c in '%_*\\"(),'})


def sanitize_search(search: str) -> str:
    """Drop characters that would change the meaning of an ilike filter."""
    return search.translate(_FILTER_RESERVED).strip()


def quote_value(value: str) -> str:
    """Quote a value for use inside a PostgREST ``or`` expression."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class SupabaseJobStorage:
    """Job storage backed by Supabase tables.

    Args:
        client: Supabase client. Build it with a PostgREST timeout so that
            every call is bounded (see ``backend/app/database.py``).
        jobs_table: Jobs table name.
        transitions_table: Transition log table name.
        retry_backoff: Seconds to wait before retrying a timed out call.
    """

    def __init__(
        self,
        client,
        jobs_table: str = JOBS_TABLE,
        transitions_table: str = JOB_TRANSITIONS_TABLE,
        retry_backoff: float = 0.25,
    ):
        self.client = client
        self.jobs_table = jobs_table
        self.transitions_table = transitions_table
        self.retry_backoff = retry_backoff

    def _execute(self, query):
        """Run a PostgREST query, translating transport failures."""
        try:
            return query.execute()
        except httpx.TimeoutException as e:
            raise RepositoryTimeout("Job storage timed out", context=str(e)) from e
        except httpx.TransportError as e:
            raise RepositoryUnavailable(
                "Storage is temporarily unavailable. Please try again later.", context=str(e)
            ) from e

    def _jobs(self):
        return self.client.table(self.jobs_table)

    # === Jobs ===

    @retry_on_timeout
    def create_job(self, job: Job) -> str:
        try:
            self._execute(self._jobs().insert(job.to_row()))
        except APIError as e:
            if e.code == "23505":
                raise ConflictError("Job ID already in use", context=f"job_id={job.id}") from e
            raise
        return job.id

    @retry_on_timeout
    def get_job(self, job_id: str) -> Optional[Job]:
        result = self._execute(self._jobs().select("*").eq("id", job_id))
        return Job.from_row(result.data[0]) if result.data else None

    @retry_on_timeout
    def get_jobs_by_ids(self, job_ids: Sequence[str]) -> List[Job]:
        if not job_ids:
            return []
        result = self._execute(self._jobs().select("*").in_("id", list(set(job_ids))))
        return [Job.from_row(row) for row in result.data or []]

    @retry_on_timeout
    def update_job(self, job: Job) -> Job:
        row = job.to_row()
        row.pop("id")
        row["version"] = job.version + 1
        result = self._execute(
            self._jobs().update(row).eq("id", job.id).eq("version", job.version)
        )
        if result.data:
            return Job.from_row(result.data[0])

        # Update didn't match - either job doesn't exist or version changed
        current = self.get_job(job.id)
        if current is None:
            raise NotFoundError("Job not found")
        logger.warning(
            f"Race condition detected on job {job.id}: "
            f"expected version {job.version}, found {current.version}"
        )
        raise VersionConflictError(job.id, job.version, current.version)

    @retry_on_timeout
    def delete_job(self, job_id: str, expected_version: int) -> None:
        # Transitions go with the job via ON DELETE CASCADE
        result = self._execute(
            self._jobs().delete().eq("id", job_id).eq("version", expected_version)
        )
        if result.data:
            return
        current = self.get_job(job_id)
        if current is None:
            raise NotFoundError("Job not found")
        raise VersionConflictError(job_id, expected_version, current.version)

    @retry_on_timeout
    def find_job_ids(self, query: JobQuery) -> List[str]:
        if query.limit == 0:
            return []
        user = query.user_id
        q = self._jobs().select("id")

        if query.owned is True:
            q = q.eq("owner_id", user)
        elif query.owned is False:
            q = q.neq("owner_id", user)

        if query.assigned is True:
            q = q.eq("assigned_driver_id", user)
        elif query.assigned is False:
            q = q.or_(f"assigned_driver_id.is.null,assigned_driver_id.neq.{quote_value(user)}")

        if query.finished is True:
            q = q.eq("status", JobStatus.COMPLETED.value)
        elif query.finished is False:
            q = q.neq("status", JobStatus.COMPLETED.value)

        if query.applied is True:
            q = q.contains("applicants", [user])
        elif query.applied is False:
            q = q.not_.contains("applicants", [user])

        if query.search:
            term = sanitize_search(query.search)
            if term:
                pattern = quote_value(f"*{term}*")
                q = q.or_(",".join(f"{col}.ilike.{pattern}" for col in SEARCHABLE_FIELDS))

        q = (
            q.order("created_at", desc=True)
            .order("id", desc=True)
            .range(query.offset, query.offset + query.limit - 1)
        )
        result = self._execute(q)
        return [str(row["id"]) for row in result.data or []]

    # === Transitions ===

    @retry_on_timeout
    def save_transition(self, transition: JobStateTransition) -> str:
        try:
            self._execute(self.client.table(self.transitions_table).insert(transition.to_row()))
        except APIError as e:
            # Foreign key violation: the job was deleted meanwhile
            if e.code == "23503":
                raise NotFoundError("Job not found") from e
            raise
        return transition.id

    @retry_on_timeout
    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        result = self._execute(
            self.client.table(self.transitions_table)
            .select("*")
            .eq("job_id", job_id)
            .order("created_at")
        )
        return [JobStateTransition.from_row(row) for row in result.data or []]

    def ping(self) -> bool:
        self._execute(self._jobs().select("id").limit(1))
        return True
