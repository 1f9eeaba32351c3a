"""Mapping of errors to HTTP responses.

Every error response has the body ``{"message": ..., "error": true}``.
Internal errors are logged with full context but the client only ever
sees a generic message.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from lak.jobs.errors import JobServiceError, UnknownInternalError, ValidationError

from .logging_config import get_logger, log_request_error

logger = get_logger("api.errors")


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"message": message, "error": True},
        headers=headers,
    )


async def job_service_error_handler(request: Request, exc: JobServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            f"{request.method} {request.url.path} | {exc.kind}: {exc.format(client_safe=False)}"
        )
    else:
        log_request_error(logger, request, exc.kind, exc.format(client_safe=False))
    return error_response(exc.status_code, exc.format(client_safe=True))


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    error = ValidationError("Invalid request: " + "; ".join(problems))
    log_request_error(logger, request, error.kind, error.message)
    return error_response(error.status_code, error.message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log_request_error(logger, request, "RateLimitExceeded", str(exc.detail))
    return error_response(429, f"Rate limit exceeded: {exc.detail}")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    error = UnknownInternalError(context=f"{type(exc).__name__}: {exc}")
    user_id = getattr(request.state, "user_id", None) or "-"
    logger.error(
        f"{request.method} {request.url.path} | user={user_id} | "
        f"{error.kind}: {error.format(client_safe=False)}",
        exc_info=exc,
    )
    return error_response(error.status_code, error.message)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(JobServiceError, job_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
