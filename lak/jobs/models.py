"""Job data models.

Job is the central entity of the marketplace. Its invariants are checked in
``__post_init__`` so that no code path (including ``dataclasses.replace``
inside the lifecycle engine) can produce an inconsistent snapshot.
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from lak.jobs.errors import ValidationError

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 5000
MAX_LOCATION_LENGTH = 200

DESCRIPTIVE_FIELDS = ("title", "description", "location", "pay")
SEARCHABLE_FIELDS = ("title", "description", "location")

# Keys a client may never set through a create/update payload.
LIFECYCLE_FIELDS = frozenset(
    {
        "id",
        "_id",
        "ownerId",
        "owner_id",
        "status",
        "applicants",
        "deniedDriverIds",
        "denied_driver_ids",
        "assignedDriverId",
        "assigned_driver_id",
        "images",
        "createdAt",
        "created_at",
        "updatedAt",
        "updated_at",
        "finishedAt",
        "finished_at",
        "version",
    }
)


class JobStatus(str, Enum):
    """Job lifecycle status.

    DENIED is a per-driver outcome kept for compatibility with stored
    documents; no transition moves a job into it.
    """

    POSTED = "posted"
    APPLIED = "applied"
    ASSIGNED = "assigned"
    DENIED = "denied"
    COMPLETED = "completed"


# Status edges. Denial and payload updates keep the current status and are
# not listed here.
VALID_JOB_TRANSITIONS: Dict[JobStatus, set] = {
    JobStatus.POSTED: {JobStatus.APPLIED, JobStatus.ASSIGNED},
    JobStatus.APPLIED: {JobStatus.APPLIED, JobStatus.ASSIGNED},
    JobStatus.ASSIGNED: {JobStatus.COMPLETED},
    JobStatus.DENIED: set(),
    JobStatus.COMPLETED: set(),
}

OPEN_STATUSES = frozenset({JobStatus.POSTED.value, JobStatus.APPLIED.value})
ASSIGNEE_STATUSES = frozenset({JobStatus.ASSIGNED.value, JobStatus.COMPLETED.value})


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp (datetime or ISO-8601 string)."""
    if value is None or isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def new_job_id() -> str:
    return str(uuid.uuid4())


def validate_job_id(job_id: Any) -> str:
    """Check that ``job_id`` is in the repository's native id format (UUID)."""
    if not isinstance(job_id, str):
        raise ValidationError("Invalid job ID", context=f"job_id={job_id!r}")
    try:
        uuid.UUID(job_id)
    except ValueError:
        raise ValidationError(f"Invalid job ID: {job_id[:64]}") from None
    return job_id


def validate_user_id(user_id: Any, label: str = "user ID") -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError(f"Missing or invalid {label}")
    return user_id.strip()


def _clean_text(name: str, value: Any, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"Field '{name}' must be a string")
    value = value.strip()
    if not value:
        raise ValidationError(f"Field '{name}' cannot be empty")
    if len(value) > max_length:
        raise ValidationError(f"Field '{name}' too long (max {max_length} characters)")
    return value


def _clean_pay(value: Any) -> float:
    # Multipart forms deliver numbers as strings
    if isinstance(value, bool):
        raise ValidationError("Field 'pay' must be a number")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise ValidationError("Field 'pay' must be a number") from None
    if not isinstance(value, (int, float)):
        raise ValidationError("Field 'pay' must be a number")
    value = float(value)
    if value != value or value in (float("inf"), float("-inf")):
        raise ValidationError("Field 'pay' must be a finite number")
    if value < 0:
        raise ValidationError("Field 'pay' cannot be negative")
    return value


_FIELD_CLEANERS = {
    "title": lambda v: _clean_text("title", v, MAX_TITLE_LENGTH),
    "description": lambda v: _clean_text("description", v, MAX_DESCRIPTION_LENGTH),
    "location": lambda v: _clean_text("location", v, MAX_LOCATION_LENGTH),
    "pay": _clean_pay,
}


def validate_payload(payload: Optional[Mapping[str, Any]], partial: bool = False) -> Dict[str, Any]:
    """Validate the descriptive fields of a create (or partial update) payload.

    Args:
        payload: Raw fields from the client.
        partial: When True (updates), missing and null fields are skipped.
            When False (creation), every descriptive field is required.

    Returns:
        Dict of cleaned descriptive fields.

    Raises:
        ValidationError: If the payload is not a mapping, tries to set a
            lifecycle field, or has a missing or mistyped descriptive field.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ValidationError("Job payload must be an object")

    forbidden = sorted(k for k in payload if k in LIFECYCLE_FIELDS)
    if forbidden:
        raise ValidationError(f"Cannot set lifecycle fields: {', '.join(forbidden)}")

    cleaned: Dict[str, Any] = {}
    for name in DESCRIPTIVE_FIELDS:
        value = payload.get(name)
        if value is None:
            if not partial:
                raise ValidationError(f"Missing required field '{name}'")
            continue
        cleaned[name] = _FIELD_CLEANERS[name](value)
    return cleaned


@dataclass
class Job:
    """A labor job posted by an owner.

    Attributes:
        id: UUID assigned at creation.
        owner_id: User who posted the job.
        title: Short title.
        description: What needs doing.
        location: Where the work happens.
        pay: Offered pay, non-negative.
        status: JobStatus value.
        applicants: Users who applied, in application order.
        denied_driver_ids: Users the owner denied; they may not re-apply.
        assigned_driver_id: Driver chosen by the owner.
        images: Media store references.
        created_at: Creation timestamp.
        updated_at: Last write timestamp.
        finished_at: Completion timestamp.
        version: Write sequence number used for conditional writes.
    """

    id: str
    owner_id: str
    title: str
    description: str
    location: str
    pay: float
    status: str = JobStatus.POSTED.value
    applicants: List[str] = field(default_factory=list)
    denied_driver_ids: List[str] = field(default_factory=list)
    assigned_driver_id: Optional[str] = None
    images: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    version: int = 1

    def __post_init__(self):
        if isinstance(self.status, JobStatus):
            self.status = self.status.value
        valid_statuses = [s.value for s in JobStatus]
        if self.status not in valid_statuses:
            raise ValueError(f"Invalid status: {self.status}. Must be one of {valid_statuses}")
        if not self.owner_id:
            raise ValueError("owner_id is required")
        if len(self.title) > MAX_TITLE_LENGTH:
            raise ValueError(f"Title too long (max {MAX_TITLE_LENGTH} characters)")
        if self.pay < 0:
            raise ValueError("Pay cannot be negative")
        if len(set(self.applicants)) != len(self.applicants):
            raise ValueError("Applicants must be unique")
        if self.owner_id in self.applicants:
            raise ValueError("Owner cannot be an applicant of their own job")
        if set(self.applicants) & set(self.denied_driver_ids):
            raise ValueError("A denied driver cannot also be an applicant")

        has_assignee = self.assigned_driver_id is not None
        if has_assignee != (self.status in ASSIGNEE_STATUSES):
            raise ValueError(
                f"assigned_driver_id must be set iff status is assigned or completed "
                f"(status={self.status}, assigned_driver_id={self.assigned_driver_id})"
            )
        if has_assignee:
            if self.assigned_driver_id == self.owner_id:
                raise ValueError("Owner cannot be assigned to their own job")
            if self.assigned_driver_id not in self.applicants:
                raise ValueError("Assigned driver must be an applicant")
        if (self.finished_at is not None) != (self.status == JobStatus.COMPLETED.value):
            raise ValueError("finished_at must be set iff status is completed")
        if self.version < 1:
            raise ValueError("version must be >= 1")

    @property
    def is_open(self) -> bool:
        """Check if job still accepts applicants."""
        return self.status in OPEN_STATUSES

    @property
    def is_finished(self) -> bool:
        return self.status == JobStatus.COMPLETED.value

    def can_transition_to(self, new_status: JobStatus) -> bool:
        """Check if transition to new_status is valid."""
        current = JobStatus(self.status)
        return JobStatus(new_status) in VALID_JOB_TRANSITIONS.get(current, set())

    def is_participant(self, user_id: str) -> bool:
        return user_id == self.owner_id or user_id == self.assigned_driver_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (snake_case keys, datetimes kept as objects)."""
        return asdict(self)

    def to_row(self) -> Dict[str, Any]:
        """Convert to a storage row with ISO-8601 timestamps."""
        row = self.to_dict()
        for key in ("created_at", "updated_at", "finished_at"):
            if row[key] is not None:
                row[key] = row[key].isoformat()
        return row

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Job":
        """Build a Job from a storage row."""
        return cls(
            id=str(row["id"]),
            owner_id=row["owner_id"],
            title=row["title"],
            description=row["description"],
            location=row["location"],
            pay=float(row["pay"]),
            status=row["status"],
            applicants=list(row.get("applicants") or []),
            denied_driver_ids=list(row.get("denied_driver_ids") or []),
            assigned_driver_id=row.get("assigned_driver_id"),
            images=list(row.get("images") or []),
            created_at=parse_datetime(row.get("created_at")),
            updated_at=parse_datetime(row.get("updated_at")),
            finished_at=parse_datetime(row.get("finished_at")),
            version=int(row.get("version") or 1),
        )


class JobEvent(str, Enum):
    """Lifecycle events recorded in the transition log."""

    CREATED = "created"
    UPDATED = "updated"
    APPLIED = "applied"
    ASSIGNED = "assigned"
    DENIED = "denied"
    COMPLETED = "completed"


@dataclass
class JobStateTransition:
    """Audit log entry for a lifecycle event on a job.

    Attributes:
        id: Unique identifier.
        job_id: Job the event happened on.
        event: JobEvent value.
        from_status: Status before the event (None on creation).
        to_status: Status after the event.
        actor_id: User who performed the event.
        subject_id: Driver the event was about, if any.
        created_at: When it happened.
    """

    id: str
    job_id: str
    event: str
    to_status: str
    actor_id: str
    from_status: Optional[str] = None
    subject_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.event, JobEvent):
            self.event = self.event.value
        valid_events = [e.value for e in JobEvent]
        if self.event not in valid_events:
            raise ValueError(f"Invalid event: {self.event}. Must be one of {valid_events}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_row(self) -> Dict[str, Any]:
        row = self.to_dict()
        if row["created_at"] is not None:
            row["created_at"] = row["created_at"].isoformat()
        return row

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "JobStateTransition":
        return cls(
            id=str(row["id"]),
            job_id=str(row["job_id"]),
            event=row["event"],
            to_status=row["to_status"],
            actor_id=row["actor_id"],
            from_status=row.get("from_status"),
            subject_id=row.get("subject_id"),
            created_at=parse_datetime(row.get("created_at")),
        )
