"""
LAK - Short-term labor jobs for owners and drivers.

Job lifecycle engine, query service and persistence backends.
"""

from .jobs import JobQueryService, JobService

try:
    from importlib.metadata import version

    __version__ = version("lak-jobs")
except Exception:
    __version__ = "0.0.0"

__all__ = ["JobService", "JobQueryService"]
