"""Error kinds raised by the jobs core.

Every failure in the lifecycle engine, the query service and the
repositories surfaces as one of these. Each kind carries the HTTP status
the API boundary should answer with and a message that is safe to show
to the client.
"""

from typing import Optional


class JobServiceError(Exception):
    """Base error for job operations."""

    status_code: int = 500
    kind: str = "JobServiceError"

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(message)

    def format(self, client_safe: bool = True) -> str:
        """Render the error for a client response or for an internal log line."""
        if client_safe or not self.context:
            return self.message
        return f"{self.message} | context: {self.context}"


class ValidationError(JobServiceError):
    """Malformed or missing input."""

    status_code = 400
    kind = "ValidationError"


class AuthorizationError(JobServiceError):
    """Caller lacks permission for the requested operation."""

    status_code = 403
    kind = "AuthorizationError"


class NotFoundError(JobServiceError):
    """Job (or referenced applicant) does not exist."""

    status_code = 404
    kind = "NotFoundError"


class ConflictError(JobServiceError):
    """Request conflicts with existing state or lost a concurrent write."""

    status_code = 409
    kind = "ConflictError"


class StateError(ConflictError):
    """Requested transition is invalid from the job's current status."""

    kind = "StateError"


class RepositoryUnavailable(JobServiceError):
    """Storage timed out or is unreachable."""

    status_code = 503
    kind = "RepositoryUnavailable"


class RepositoryTimeout(RepositoryUnavailable):
    """A single repository call exceeded its time bound (retryable)."""

    kind = "RepositoryTimeout"


class UnknownInternalError(JobServiceError):
    """Anything unclassified. The client only ever sees a generic message."""

    status_code = 500
    kind = "UnknownInternalError"

    def __init__(self, context: Optional[str] = None):
        super().__init__("An unknown internal error occurred", context=context)


class VersionConflictError(ConflictError):
    """Raised when a job's version doesn't match the expected version.

    Another request updated the job between our read and our write.
    """

    def __init__(self, job_id: str, expected_version: int, actual_version: int):
        self.job_id = job_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            "Job was modified by another request. Please refresh and try again.",
            context=(
                f"version conflict on jobs/{job_id}: "
                f"expected version {expected_version}, found {actual_version}"
            ),
        )
