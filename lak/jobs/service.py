"""
Job service for LAK.

Orchestrates the lifecycle transitions in ``lak.jobs.lifecycle`` against a
job repository: every mutation reads a snapshot, applies a pure transition
and writes it back conditional on the snapshot's version. The service keeps
no state between calls; the caller's user id is passed into every method.
"""

import logging
import uuid
from typing import Any, Callable, List, Mapping, Optional, Sequence

from lak.jobs import lifecycle
from lak.jobs.config import JobsConfig
from lak.jobs.errors import JobServiceError, NotFoundError, ValidationError
from lak.jobs.media import ImageUpload, MediaStore, validate_images
from lak.jobs.models import (
    Job,
    JobEvent,
    JobStateTransition,
    JobStatus,
    new_job_id,
    utc_now,
    validate_job_id,
    validate_payload,
    validate_user_id,
)
from lak.jobs.storage import JobStorage
from lak.logging_config import log_transition

logger = logging.getLogger(__name__)


class JobService:
    """Service for the job lifecycle.

    Handles:
    - Posting and editing jobs (owner only)
    - Driver applications
    - Assigning and denying drivers (owner only)
    - Completion (owner or assigned driver)
    - Deletion (owner only)
    - The per-job transition log
    """

    def __init__(
        self,
        storage: JobStorage,
        media: MediaStore,
        config: Optional[JobsConfig] = None,
    ):
        """Initialize job service.

        Args:
            storage: Job repository
            media: Image store for job pictures
            config: Limits and assignment policy
        """
        self.storage = storage
        self.media = media
        self.config = config or JobsConfig()

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _load(self, job_id: str) -> Job:
        job = self.storage.get_job(validate_job_id(job_id))
        if job is None:
            raise NotFoundError("Job not found")
        return job

    def _record(
        self,
        job: Job,
        event: JobEvent,
        from_status: Optional[str],
        actor_id: str,
        subject_id: Optional[str] = None,
    ) -> None:
        transition = JobStateTransition(
            id=str(uuid.uuid4()),
            job_id=job.id,
            event=event,
            from_status=from_status,
            to_status=job.status,
            actor_id=actor_id,
            subject_id=subject_id,
            created_at=utc_now(),
        )
        # The job write is already committed, so the audit entry is best-effort
        try:
            self.storage.save_transition(transition)
        except JobServiceError as e:
            logger.warning(
                f"Failed to record {transition.event} transition for job {job.id}: "
                f"{e.format(client_safe=False)}"
            )
        log_transition(job.id, transition.event, from_status, job.status, actor_id, subject_id)

    def _mutate(
        self,
        job_id: str,
        actor_id: str,
        event: JobEvent,
        transition: Callable[[Job], Job],
        subject_id: Optional[str] = None,
    ) -> Job:
        """Atomic read-modify-write of one job."""
        job = self._load(job_id)
        stored = self.storage.update_job(transition(job))
        self._record(stored, event, job.status, actor_id, subject_id)
        return stored

    def _upload_images(self, owner_id: str, images: List[ImageUpload]) -> List[str]:
        references: List[str] = []
        try:
            for image in images:
                references.append(self.media.put(owner_id, image))
        except JobServiceError:
            self._discard_images(references)
            raise
        return references

    def _discard_images(self, references: Sequence[str]) -> None:
        # Orphaned images are harmless, so cleanup failures are only logged
        if not references:
            return
        try:
            self.media.delete(references)
        except JobServiceError as e:
            logger.warning(f"Failed to remove {len(references)} images: {e.format(client_safe=False)}")

    # ==========================================================================
    # Job Management
    # ==========================================================================

    def create_job(
        self,
        user_id: str,
        payload: Mapping[str, Any],
        images: Optional[Sequence[ImageUpload]] = None,
    ) -> Job:
        """Post a new job owned by ``user_id``.

        Args:
            user_id: Authenticated caller, becomes the owner
            payload: Descriptive fields (title, description, location, pay)
            images: Optional image uploads

        Returns:
            The created job, in status ``posted``

        Raises:
            ValidationError: Malformed payload or images
        """
        user_id = validate_user_id(user_id)
        fields = validate_payload(payload)
        uploads = validate_images(images, self.config)

        references = self._upload_images(user_id, uploads)
        now = utc_now()
        job = Job(
            id=new_job_id(),
            owner_id=user_id,
            status=JobStatus.POSTED,
            images=references,
            created_at=now,
            updated_at=now,
            **fields,
        )
        try:
            self.storage.create_job(job)
        except JobServiceError:
            self._discard_images(references)
            raise

        self._record(job, JobEvent.CREATED, None, user_id)
        logger.info(f"Created job {job.id} for owner {user_id} with {len(references)} images")
        return job

    def update_job(
        self,
        user_id: str,
        job_id: str,
        payload: Optional[Mapping[str, Any]],
        images: Optional[Sequence[ImageUpload]] = None,
    ) -> Job:
        """Edit descriptive fields and add images. Owner only, any status.

        Null or missing payload fields are left unchanged. New images are
        appended to the existing ones.

        Raises:
            NotFoundError: Job doesn't exist
            AuthorizationError: Caller isn't the owner
            ValidationError: Malformed payload or images
            ConflictError: Job changed concurrently
        """
        job = self._load(job_id)
        lifecycle.ensure_owner(job, user_id, "update it")
        changes = validate_payload(payload, partial=True)
        uploads = validate_images(images, self.config)
        if len(job.images) + len(uploads) > self.config.max_images_per_job:
            raise ValidationError(f"Too many images (max {self.config.max_images_per_job})")

        references = self._upload_images(job.owner_id, uploads)
        try:
            stored = self.storage.update_job(
                lifecycle.update_details(job, user_id, changes, references, utc_now())
            )
        except JobServiceError:
            self._discard_images(references)
            raise

        self._record(stored, JobEvent.UPDATED, job.status, user_id)
        return stored

    def delete_job(self, user_id: str, job_id: str) -> None:
        """Delete a job. Owner only; completed jobs are kept.

        The job document and its transitions are removed together, so no
        listing (owned, assigned or applied) can return the id afterwards.
        """
        job = self._load(job_id)
        lifecycle.ensure_can_delete(job, user_id)
        self.storage.delete_job(job.id, job.version)
        self._discard_images(job.images)
        logger.info(
            f"Deleted job {job.id} | owner={user_id} | "
            f"released {len(job.applicants)} applicants"
        )

    # ==========================================================================
    # Applications
    # ==========================================================================

    def add_job_applicant(self, job_id: str, user_id: str) -> Job:
        """Apply ``user_id`` to a job.

        Raises:
            AuthorizationError: Caller owns the job
            ConflictError: Already applied, previously denied
            StateError: Job already has an assigned driver
        """
        user_id = validate_user_id(user_id)
        return self._mutate(
            job_id,
            user_id,
            JobEvent.APPLIED,
            lambda job: lifecycle.add_applicant(job, user_id, utc_now()),
            subject_id=user_id,
        )

    def assign_driver(self, job_id: str, owner_id: str, driver_id: str) -> Job:
        """Assign a driver. Owner only.

        Raises:
            AuthorizationError: Caller isn't the owner
            StateError: Job already assigned or completed
            NotFoundError: Driver hasn't applied (when applicants are required)
            ConflictError: Driver was denied, or the job changed concurrently
        """
        driver_id = validate_user_id(driver_id, "driver ID")
        return self._mutate(
            job_id,
            owner_id,
            JobEvent.ASSIGNED,
            lambda job: lifecycle.assign_driver(
                job,
                owner_id,
                driver_id,
                utc_now(),
                require_applicant=self.config.require_applicant_for_assignment,
            ),
            subject_id=driver_id,
        )

    def deny_driver(self, job_id: str, owner_id: str, driver_id: str) -> Job:
        """Remove an applicant. Owner only; other applicants are untouched.

        Raises:
            AuthorizationError: Caller isn't the owner
            NotFoundError: Driver isn't an applicant
            StateError: Job completed, or driver is the assignee
        """
        driver_id = validate_user_id(driver_id, "driver ID")
        return self._mutate(
            job_id,
            owner_id,
            JobEvent.DENIED,
            lambda job: lifecycle.deny_driver(job, owner_id, driver_id, utc_now()),
            subject_id=driver_id,
        )

    def complete_job(self, job_id: str, user_id: str) -> Job:
        """Mark an assigned job completed. Owner or assigned driver.

        Raises:
            AuthorizationError: Caller is neither owner nor assignee
            StateError: Job isn't assigned
        """
        return self._mutate(
            job_id,
            user_id,
            JobEvent.COMPLETED,
            lambda job: lifecycle.complete(job, user_id, utc_now()),
        )

    # ==========================================================================
    # History
    # ==========================================================================

    def get_job_history(self, job_id: str, user_id: str) -> List[JobStateTransition]:
        """Transition log of a job, oldest first. Owner only."""
        job = self._load(job_id)
        lifecycle.ensure_owner(job, user_id, "view its history")
        return self.storage.get_transitions(job.id)
