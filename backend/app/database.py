"""Storage wiring for the LAK backend.

Builds the job repository and media store selected by ``STORAGE_BACKEND``
and the services on top of them. Instances are process-wide; routes get
them through the FastAPI dependencies at the bottom of this module.
"""

from typing import Annotated

from fastapi import Depends
from supabase import Client, ClientOptions, create_client

from lak.jobs import (
    InMemoryJobStorage,
    InMemoryMediaStore,
    JobQueryService,
    JobService,
    SupabaseJobStorage,
    SupabaseMediaStore,
)
from lak.jobs.media import MediaStore
from lak.jobs.storage import JobStorage

from .config import Settings, get_settings

_supabase_client: Client | None = None
_job_storage: JobStorage | None = None
_media_store: MediaStore | None = None


def get_supabase_client(settings: Settings | None = None) -> Client:
    """Get cached Supabase client with bounded request timeouts."""
    global _supabase_client
    if _supabase_client is None:
        if settings is None:
            settings = get_settings()
        if not settings.supabase_url or not settings.supabase_secret_key:
            raise ValueError("SUPABASE_URL and SUPABASE_SECRET_KEY must be set for the supabase backend")
        options = ClientOptions(
            postgrest_client_timeout=settings.repository_timeout_seconds,
            storage_client_timeout=int(max(1, settings.repository_timeout_seconds)),
        )
        _supabase_client = create_client(settings.supabase_url, settings.supabase_secret_key, options)
    return _supabase_client


def get_job_storage(settings: Settings | None = None) -> JobStorage:
    """Get the process-wide job repository."""
    global _job_storage
    if _job_storage is None:
        settings = settings or get_settings()
        if settings.storage_backend == "memory":
            _job_storage = InMemoryJobStorage(
                timeout=settings.repository_timeout_seconds,
                retry_backoff=settings.retry_backoff_seconds,
            )
        else:
            _job_storage = SupabaseJobStorage(
                get_supabase_client(settings),
                jobs_table=settings.jobs_table,
                transitions_table=settings.job_transitions_table,
                retry_backoff=settings.retry_backoff_seconds,
            )
    return _job_storage


def get_media_store(settings: Settings | None = None) -> MediaStore:
    """Get the process-wide media store."""
    global _media_store
    if _media_store is None:
        settings = settings or get_settings()
        if settings.storage_backend == "memory":
            _media_store = InMemoryMediaStore()
        else:
            _media_store = SupabaseMediaStore(
                get_supabase_client(settings),
                bucket=settings.media_bucket,
                retry_backoff=settings.retry_backoff_seconds,
            )
    return _media_store


def get_job_service(settings: Annotated[Settings, Depends(get_settings)]) -> JobService:
    """FastAPI dependency for the lifecycle engine."""
    return JobService(
        storage=get_job_storage(settings),
        media=get_media_store(settings),
        config=settings.jobs_config(),
    )


def get_query_service(settings: Annotated[Settings, Depends(get_settings)]) -> JobQueryService:
    """FastAPI dependency for the query service."""
    return JobQueryService(storage=get_job_storage(settings), config=settings.jobs_config())


def get_media(settings: Annotated[Settings, Depends(get_settings)]) -> MediaStore:
    """FastAPI dependency for the media store."""
    return get_media_store(settings)


# Type aliases for dependency injection
Jobs = Annotated[JobService, Depends(get_job_service)]
JobQueries = Annotated[JobQueryService, Depends(get_query_service)]
Media = Annotated[MediaStore, Depends(get_media)]
