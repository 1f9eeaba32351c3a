"""Job query service: filtered id listings and document resolution."""

import logging
from typing import Any, List, Mapping, Optional, Sequence

from lak.jobs.config import JobsConfig
from lak.jobs.errors import NotFoundError, ValidationError
from lak.jobs.models import Job, validate_job_id, validate_user_id
from lak.jobs.storage import JobQuery, JobStorage

logger = logging.getLogger(__name__)

LISTING_FLAGS = ("owned", "assigned", "finished")


def parse_flag(value: Any, name: str) -> bool:
    """Parse a required boolean filter flag (bool or "true"/"false")."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(f"Invalid boolean value for '{name}': expected true or false")


def parse_non_negative_int(value: Any, name: str) -> int:
    """Parse a required pagination value (int or numeric string)."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid pagination value for '{name}'")
    if isinstance(value, str):
        text = value.strip()
        # isdigit() alone also accepts superscripts and other non-ASCII digits
        if not (text.isascii() and text.isdigit()):
            raise ValidationError(f"Invalid pagination value for '{name}': {value[:32]!r}")
        return int(text)
    if isinstance(value, int) and value >= 0:
        return value
    raise ValidationError(f"Invalid pagination value for '{name}'")


def normalize_search(search: Optional[str]) -> Optional[str]:
    if search is None:
        return None
    if not isinstance(search, str):
        raise ValidationError("Search must be a string")
    search = search.strip()
    return search or None


class JobQueryService:
    """Read side of the jobs core.

    Job documents are visible to any authenticated user; ``user_id`` is only
    used to evaluate the owned/assigned/applied flags.
    """

    def __init__(self, storage: JobStorage, config: Optional[JobsConfig] = None):
        self.storage = storage
        self.config = config or JobsConfig()

    def _pagination(self, pagination: Optional[Mapping[str, Any]]) -> tuple[int, int]:
        pagination = pagination or {}
        if "limit" not in pagination or "offset" not in pagination:
            raise ValidationError("Pagination requires both 'limit' and 'offset'")
        limit = parse_non_negative_int(pagination["limit"], "limit")
        offset = parse_non_negative_int(pagination["offset"], "offset")
        if limit > self.config.max_page_size:
            raise ValidationError(f"limit cannot exceed {self.config.max_page_size}")
        return limit, offset

    def get_job_ids(
        self,
        user_id: str,
        filters: Optional[Mapping[str, Any]],
        pagination: Optional[Mapping[str, Any]],
        search: Optional[str] = None,
    ) -> List[str]:
        """List job ids for a listing screen, most recent first.

        Args:
            user_id: Authenticated caller
            filters: ``owned``, ``assigned`` and ``finished``, all required.
                True keeps jobs matching the constraint, False keeps the rest.
            pagination: ``limit`` and ``offset``, non-negative integers
            search: Optional free text matched against title, description
                and location

        Raises:
            ValidationError: Missing/invalid flags or pagination values
        """
        user_id = validate_user_id(user_id)
        filters = filters or {}
        flags = {name: parse_flag(filters.get(name), name) for name in LISTING_FLAGS}
        limit, offset = self._pagination(pagination)

        query = JobQuery(
            user_id=user_id,
            search=normalize_search(search),
            limit=limit,
            offset=offset,
            **flags,
        )
        job_ids = self.storage.find_job_ids(query)
        logger.debug(f"get_job_ids | user={user_id} | {flags} | offset={offset} | found={len(job_ids)}")
        return job_ids

    def get_applied_job_ids(
        self,
        user_id: str,
        pagination: Optional[Mapping[str, Any]],
    ) -> List[str]:
        """Jobs the user currently appears in as an applicant, most recent first."""
        user_id = validate_user_id(user_id)
        limit, offset = self._pagination(pagination)
        return self.storage.find_job_ids(
            JobQuery(user_id=user_id, applied=True, limit=limit, offset=offset)
        )

    def get_job(self, job_id: str, user_id: str) -> Job:
        """Get a job document.

        Raises:
            ValidationError: Malformed id
            NotFoundError: Job doesn't exist (or was deleted)
        """
        job = self.storage.get_job(validate_job_id(job_id))
        if job is None:
            raise NotFoundError("Job not found")
        return job

    def get_jobs(self, job_ids: Sequence[str], user_id: str) -> List[Job]:
        """Resolve ids to documents in input order, skipping deleted jobs."""
        if isinstance(job_ids, (str, bytes)) or not isinstance(job_ids, Sequence):
            raise ValidationError("jobIds must be a list")
        ids = [validate_job_id(job_id) for job_id in job_ids]
        found = {job.id: job for job in self.storage.get_jobs_by_ids(ids)}
        missing = len(set(ids) - found.keys())
        if missing:
            logger.debug(f"get_jobs | user={user_id} | skipped {missing} missing ids")
        return [found[job_id] for job_id in ids if job_id in found]
