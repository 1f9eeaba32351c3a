"""Logging setup for the LAK backend.

Backend loggers share the ``lak`` namespace with the library so one handler
covers request logs and lifecycle transition logs.
"""

import logging

from lak.logging_config import get_logger as _get_lak_logger
from lak.logging_config import setup_lak_logging

from .config import Settings


def configure_logging(settings: Settings) -> logging.Logger:
    """Configure the ``lak`` logger from settings."""
    level = "DEBUG" if settings.debug else settings.log_level
    return setup_lak_logging(level=level)


def get_logger(name: str) -> logging.Logger:
    """Get a backend logger, e.g. ``get_logger("api.jobs")``."""
    return _get_lak_logger(name)


def log_request_error(logger: logging.Logger, request, error_kind: str, detail: str) -> None:
    """Log a failed request with its method, path and authenticated user."""
    user_id = getattr(request.state, "user_id", None) or "-"
    logger.warning(f"{request.method} {request.url.path} | user={user_id} | {error_kind}: {detail}")
