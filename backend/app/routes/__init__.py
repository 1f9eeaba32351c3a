"""API routes."""

from .images import router as images_router
from .jobs import router as jobs_router

__all__ = [
    "jobs_router",
    "images_router",
]
