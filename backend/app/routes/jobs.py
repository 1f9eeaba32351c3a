"""Jobs routes for LAK.

Thin translation from HTTP to the jobs core: the lifecycle engine raises
typed errors, which ``app.errors`` turns into ``{message, error}`` responses.
Route functions are synchronous so FastAPI runs them on its thread pool.
"""

from fastapi import APIRouter, File, Form, Query, Request, UploadFile, status

from lak.jobs import ImageUpload

from ..auth import CurrentUser
from ..database import JobQueries, Jobs
from ..logging_config import get_logger
from ..models import (
    ApplyResponse,
    DriverRequest,
    DriverResponse,
    GetByIdsRequest,
    JobDocument,
    JobIdResponse,
    JobListResponse,
    JobPageResponse,
    JobResponse,
    TransitionDocument,
    TransitionListResponse,
)
from ..rate_limit import LIFECYCLE_LIMIT, READ_LIMIT, WRITE_LIMIT, limiter

logger = get_logger("api.jobs")
router = APIRouter(prefix="/jobs", tags=["jobs"])


def read_uploads(images: list[UploadFile] | None) -> list[ImageUpload]:
    """Read multipart image parts into memory."""
    uploads = []
    for image in images or []:
        uploads.append(
            ImageUpload(
                content=image.file.read(),
                content_type=image.content_type or "",
                filename=image.filename,
            )
        )
    return uploads


def form_payload(**fields) -> dict:
    """Drop form fields the client didn't send."""
    return {name: value for name, value in fields.items() if value is not None}


def is_last_page(job_ids: list[str], limit: str) -> bool:
    """A short page ends the listing; a zero-size page never advances."""
    page_size = int(limit)
    return page_size == 0 or len(job_ids) < page_size


# =============================================================================
# Listing and lookup
# =============================================================================


@router.get("", response_model=JobPageResponse)
@limiter.limit(READ_LIMIT)
def list_jobs(
    request: Request,
    auth: CurrentUser,
    queries: JobQueries,
    owned: str | None = Query(None),
    assigned: str | None = Query(None),
    finished: str | None = Query(None),
    offset: str | None = Query(None),
    limit: str | None = Query(None),
    search: str | None = Query(None, max_length=200),
):
    """
    List jobs for the authenticated user.

    owned / assigned / finished are required booleans. True keeps jobs you
    own / are assigned to / that are completed; false keeps the others.
    """
    logger.info(
        f"GET /jobs | user={auth.user_id} | owned={owned} | assigned={assigned} | "
        f"finished={finished} | offset={offset} | limit={limit}"
    )
    job_ids = queries.get_job_ids(
        auth.user_id,
        {"owned": owned, "assigned": assigned, "finished": finished},
        {"limit": limit, "offset": offset},
        search,
    )
    jobs = queries.get_jobs(job_ids, auth.user_id)
    return JobPageResponse(
        message=f"Sent {len(jobs)} jobs",
        jobs=[JobDocument.from_job(job) for job in jobs],
        last_page=is_last_page(job_ids, limit),
    )


@router.get("/applied", response_model=JobPageResponse)
@limiter.limit(READ_LIMIT)
def list_applied_jobs(
    request: Request,
    auth: CurrentUser,
    queries: JobQueries,
    offset: str | None = Query(None),
    limit: str | None = Query(None),
):
    """List jobs the authenticated user has applied to (and was not denied)."""
    logger.info(f"GET /jobs/applied | user={auth.user_id} | offset={offset} | limit={limit}")
    job_ids = queries.get_applied_job_ids(auth.user_id, {"limit": limit, "offset": offset})
    jobs = queries.get_jobs(job_ids, auth.user_id)
    return JobPageResponse(
        message=f"Sent {len(jobs)} jobs",
        jobs=[JobDocument.from_job(job) for job in jobs],
        last_page=is_last_page(job_ids, limit),
    )


@router.post("/get-by-ids", response_model=JobListResponse)
@limiter.limit(READ_LIMIT)
def get_jobs_by_ids(
    request: Request,
    body: GetByIdsRequest,
    auth: CurrentUser,
    queries: JobQueries,
):
    """Bulk fetch; ids of deleted jobs are skipped."""
    logger.info(f"POST /jobs/get-by-ids | user={auth.user_id} | count={len(body.job_ids)}")
    jobs = queries.get_jobs(body.job_ids, auth.user_id)
    return JobListResponse(
        message=f"Sent {len(jobs)} jobs",
        jobs=[JobDocument.from_job(job) for job in jobs],
    )


@router.get("/{job_id}", response_model=JobResponse)
@limiter.limit(READ_LIMIT)
def get_job_details(
    request: Request,
    job_id: str,
    auth: CurrentUser,
    queries: JobQueries,
):
    """Get details of a specific job."""
    logger.info(f"GET /jobs/{job_id} | user={auth.user_id}")
    job = queries.get_job(job_id, auth.user_id)
    return JobResponse(message=f"Sent job {job.id}", job=JobDocument.from_job(job))


@router.get("/{job_id}/transitions", response_model=TransitionListResponse)
@limiter.limit(READ_LIMIT)
def get_job_transitions(
    request: Request,
    job_id: str,
    auth: CurrentUser,
    jobs: Jobs,
):
    """Lifecycle history of a job. Only the owner can view it."""
    logger.info(f"GET /jobs/{job_id}/transitions | user={auth.user_id}")
    transitions = jobs.get_job_history(job_id, auth.user_id)
    return TransitionListResponse(
        message=f"Sent {len(transitions)} transitions",
        transitions=[TransitionDocument.from_transition(t) for t in transitions],
    )


# =============================================================================
# Job management
# =============================================================================


@router.post("", response_model=JobIdResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
def create_job_listing(
    request: Request,
    auth: CurrentUser,
    jobs: Jobs,
    title: str | None = Form(None),
    description: str | None = Form(None),
    location: str | None = Form(None),
    pay: str | None = Form(None),
    images: list[UploadFile] | None = File(None),
):
    """
    Post a new job.

    Multipart form with title, description, location, pay and optional
    images. The authenticated user becomes the owner.
    """
    logger.info(f"POST /jobs | user={auth.user_id} | title={(title or '')[:50]}")
    job = jobs.create_job(
        auth.user_id,
        form_payload(title=title, description=description, location=location, pay=pay),
        read_uploads(images),
    )
    logger.info(f"Job created | id={job.id} | owner={auth.user_id}")
    return JobIdResponse(message=f"Job ID {job.id} was successfully created", job_id=job.id)


@router.patch("/{job_id}", response_model=JobIdResponse)
@limiter.limit(WRITE_LIMIT)
def update_job_listing(
    request: Request,
    job_id: str,
    auth: CurrentUser,
    jobs: Jobs,
    title: str | None = Form(None),
    description: str | None = Form(None),
    location: str | None = Form(None),
    pay: str | None = Form(None),
    images: list[UploadFile] | None = File(None),
):
    """Edit a job's fields and add images. Only the owner can edit."""
    logger.info(f"PATCH /jobs/{job_id} | user={auth.user_id}")
    job = jobs.update_job(
        auth.user_id,
        job_id,
        form_payload(title=title, description=description, location=location, pay=pay),
        read_uploads(images),
    )
    return JobIdResponse(message=f"Job ID {job.id} was successfully updated", job_id=job.id)


@router.delete("/{job_id}", response_model=JobIdResponse)
@limiter.limit(WRITE_LIMIT)
def delete_job_listing(
    request: Request,
    job_id: str,
    auth: CurrentUser,
    jobs: Jobs,
):
    """Delete a job. Only the owner can delete; completed jobs are kept."""
    logger.info(f"DELETE /jobs/{job_id} | user={auth.user_id}")
    jobs.delete_job(auth.user_id, job_id)
    logger.info(f"Job deleted | id={job_id} | owner={auth.user_id}")
    return JobIdResponse(message=f"Job ID {job_id} was successfully deleted", job_id=job_id)


# =============================================================================
# Lifecycle
# =============================================================================


@router.patch("/{job_id}/apply", response_model=ApplyResponse)
@limiter.limit(LIFECYCLE_LIMIT)
def apply_to_job(
    request: Request,
    job_id: str,
    auth: CurrentUser,
    jobs: Jobs,
):
    """Apply to a job as a driver. Owners cannot apply to their own jobs."""
    logger.info(f"PATCH /jobs/{job_id}/apply | user={auth.user_id}")
    job = jobs.add_job_applicant(job_id, auth.user_id)
    return ApplyResponse(
        message=f"Job {job.id} successfully applied by {auth.user_id}",
        job_id=job.id,
        user_id=auth.user_id,
    )


@router.patch("/{job_id}/assign-driver", response_model=DriverResponse)
@limiter.limit(LIFECYCLE_LIMIT)
def assign_driver(
    request: Request,
    job_id: str,
    body: DriverRequest,
    auth: CurrentUser,
    jobs: Jobs,
):
    """
    Assign a driver to the job.

    Only the owner can assign. Concurrent assignments are resolved by the
    repository: exactly one wins, the others get 409.
    """
    logger.info(f"PATCH /jobs/{job_id}/assign-driver | user={auth.user_id} | driver={body.driver_id}")
    job = jobs.assign_driver(job_id, auth.user_id, body.driver_id)
    logger.info(f"Driver assigned | job={job.id} | driver={job.assigned_driver_id}")
    return DriverResponse(
        message=f"Driver {body.driver_id} successfully assigned to {job.id}",
        driver_id=body.driver_id,
        job_id=job.id,
    )


@router.patch("/{job_id}/deny-driver", response_model=DriverResponse)
@limiter.limit(LIFECYCLE_LIMIT)
def deny_driver(
    request: Request,
    job_id: str,
    body: DriverRequest,
    auth: CurrentUser,
    jobs: Jobs,
):
    """Deny an applicant (removes them from the applicants). Only the owner can deny."""
    logger.info(f"PATCH /jobs/{job_id}/deny-driver | user={auth.user_id} | driver={body.driver_id}")
    job = jobs.deny_driver(job_id, auth.user_id, body.driver_id)
    return DriverResponse(
        message=f"Driver {body.driver_id} successfully denied from {job.id}",
        driver_id=body.driver_id,
        job_id=job.id,
    )


@router.patch("/{job_id}/complete", response_model=JobIdResponse)
@limiter.limit(LIFECYCLE_LIMIT)
def complete_job(
    request: Request,
    job_id: str,
    auth: CurrentUser,
    jobs: Jobs,
):
    """Mark an assigned job as completed. Owner or assigned driver."""
    logger.info(f"PATCH /jobs/{job_id}/complete | user={auth.user_id}")
    job = jobs.complete_job(job_id, auth.user_id)
    logger.info(f"Job completed | id={job.id} | by={auth.user_id}")
    return JobIdResponse(message=f"Job {job.id} marked as completed", job_id=job.id)
