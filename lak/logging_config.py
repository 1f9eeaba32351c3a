"""Logging configuration for LAK.

All library loggers live under the ``lak`` namespace. Nothing is configured
on import; applications call :func:`setup_lak_logging` once.
"""

import logging
import sys
from typing import Optional

LOGGER_NAME = "lak"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_transition_logger = logging.getLogger(f"{LOGGER_NAME}.transitions")


def setup_lak_logging(level: str = "INFO", stream=None) -> logging.Logger:
    """Attach a stream handler to the ``lak`` logger.

    Calling it again replaces the handler instead of adding a second one.

    Args:
        level: Log level name, case-insensitive.
        stream: Output stream (default: stderr).

    Returns:
        The configured ``lak`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")
    logger.setLevel(numeric_level)

    for handler in list(logger.handlers):
        if getattr(handler, "_lak_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._lak_handler = True
    logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger inside the ``lak`` namespace."""
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def log_transition(
    job_id: str,
    event: str,
    from_status: Optional[str],
    to_status: str,
    actor_id: str,
    subject_id: Optional[str] = None,
) -> None:
    """Log a lifecycle event as a single structured line."""
    line = f"job={job_id} | event={event} | {from_status or '-'} -> {to_status} | actor={actor_id}"
    if subject_id:
        line += f" | driver={subject_id}"
    _transition_logger.info(line)
