"""Job lifecycle transitions.

Pure functions of (current job snapshot, caller id, requested transition).
Each one either raises a JobServiceError or returns the next snapshot; none
of them touch storage. The snapshot keeps the version it was read with, so
the repository write that follows is conditional on it.

    posted --apply--> applied --apply--> applied
    posted/applied --assign--> assigned --complete--> completed
    deny removes an applicant and keeps the status label
"""

from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List

from lak.jobs.errors import AuthorizationError, ConflictError, NotFoundError, StateError, ValidationError
from lak.jobs.models import Job, JobStatus


def ensure_owner(job: Job, caller_id: str, action: str) -> None:
    if caller_id != job.owner_id:
        raise AuthorizationError(f"Only the job owner can {action}")


def add_applicant(job: Job, user_id: str, now: datetime) -> Job:
    """Register ``user_id`` as an applicant."""
    if user_id == job.owner_id:
        raise AuthorizationError("Cannot apply to your own job")
    if user_id in job.applicants:
        raise ConflictError("You have already applied to this job")
    if user_id in job.denied_driver_ids:
        raise ConflictError("You were denied for this job")
    if not job.is_open:
        raise StateError(f"Job is not accepting applicants (status: {job.status})")

    return replace(
        job,
        status=JobStatus.APPLIED.value,
        applicants=job.applicants + [user_id],
        updated_at=now,
    )


def assign_driver(
    job: Job,
    caller_id: str,
    driver_id: str,
    now: datetime,
    require_applicant: bool = True,
) -> Job:
    """Assign ``driver_id`` to the job; the applicant set is frozen afterwards."""
    ensure_owner(job, caller_id, "assign a driver")
    if not job.can_transition_to(JobStatus.ASSIGNED):
        raise StateError(f"Cannot assign a driver to a job in status: {job.status}")
    if driver_id == job.owner_id:
        raise ValidationError("Owner cannot be assigned to their own job")
    if driver_id in job.denied_driver_ids:
        raise ConflictError("Driver was denied for this job")

    applicants = job.applicants
    if driver_id not in applicants:
        if require_applicant:
            raise NotFoundError("Driver has not applied to this job")
        applicants = applicants + [driver_id]

    return replace(
        job,
        status=JobStatus.ASSIGNED.value,
        applicants=applicants,
        assigned_driver_id=driver_id,
        updated_at=now,
    )


def deny_driver(job: Job, caller_id: str, driver_id: str, now: datetime) -> Job:
    """Remove exactly ``driver_id`` from the applicants; status is unchanged."""
    ensure_owner(job, caller_id, "deny a driver")
    if job.is_finished:
        raise StateError("Cannot deny drivers on a completed job")
    if driver_id not in job.applicants:
        raise NotFoundError("Driver is not an applicant of this job")
    if driver_id == job.assigned_driver_id:
        raise StateError("Cannot deny the assigned driver")

    return replace(
        job,
        applicants=[a for a in job.applicants if a != driver_id],
        denied_driver_ids=job.denied_driver_ids + [driver_id],
        updated_at=now,
    )


def complete(job: Job, caller_id: str, now: datetime) -> Job:
    """Mark an assigned job as completed."""
    if not job.is_participant(caller_id):
        raise AuthorizationError("Only the job owner or the assigned driver can complete the job")
    if not job.can_transition_to(JobStatus.COMPLETED):
        raise StateError(f"Cannot complete a job in status: {job.status}")

    return replace(
        job,
        status=JobStatus.COMPLETED.value,
        finished_at=now,
        updated_at=now,
    )


def update_details(
    job: Job,
    caller_id: str,
    changes: Dict[str, Any],
    new_images: List[str],
    now: datetime,
) -> Job:
    """Merge validated descriptive fields and append new image references."""
    ensure_owner(job, caller_id, "update it")
    return replace(job, **changes, images=job.images + list(new_images), updated_at=now)


def ensure_can_delete(job: Job, caller_id: str) -> None:
    ensure_owner(job, caller_id, "delete it")
    if job.is_finished:
        raise StateError("Cannot delete a completed job")
