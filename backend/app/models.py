"""Pydantic models for API requests and responses.

The mobile client speaks camelCase; fields are declared in snake_case and
aliased.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lak.jobs import Job, JobStateTransition

JobStatusValue = Literal["posted", "applied", "assigned", "denied", "completed"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Documents
# =============================================================================


class JobDocument(CamelModel):
    """A job as returned to clients."""

    id: str
    owner_id: str
    title: str
    description: str
    location: str
    pay: float
    status: JobStatusValue
    applicants: list[str] = []
    denied_driver_ids: list[str] = []
    assigned_driver_id: str | None = None
    images: list[str] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None
    finished_at: datetime | None = None
    version: int = 1

    @classmethod
    def from_job(cls, job: Job) -> "JobDocument":
        return cls.model_validate(job.to_dict())


class TransitionDocument(CamelModel):
    """A lifecycle event from the job's transition log."""

    id: str
    job_id: str
    event: str
    from_status: str | None = None
    to_status: str
    actor_id: str
    subject_id: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_transition(cls, transition: JobStateTransition) -> "TransitionDocument":
        return cls.model_validate(transition.to_dict())


# =============================================================================
# Requests
# =============================================================================


class DriverRequest(CamelModel):
    """Body of assign-driver / deny-driver."""

    driver_id: str = Field(..., min_length=1, max_length=128)


class GetByIdsRequest(CamelModel):
    """Body of get-by-ids."""

    job_ids: list[str] = Field(..., max_length=100)


# =============================================================================
# Responses
# =============================================================================


class JobIdResponse(CamelModel):
    message: str
    job_id: str


class JobResponse(CamelModel):
    message: str
    job: JobDocument


class JobListResponse(CamelModel):
    message: str
    jobs: list[JobDocument]


class JobPageResponse(JobListResponse):
    last_page: bool


class ApplyResponse(CamelModel):
    message: str
    job_id: str
    user_id: str


class DriverResponse(CamelModel):
    message: str
    driver_id: str
    job_id: str


class TransitionListResponse(CamelModel):
    message: str
    transitions: list[TransitionDocument]
