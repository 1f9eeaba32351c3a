"""LAK Backend API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .errors import register_error_handlers
from .logging_config import configure_logging, get_logger
from .rate_limit import limiter
from .routes import images_router, jobs_router

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    configure_logging(settings)
    logger.info(
        f"Starting LAK Backend API (debug={settings.debug}, storage={settings.storage_backend})"
    )
    yield
    logger.info("Shutting down LAK Backend API")


app = FastAPI(
    title="LAK Backend API",
    description="Job lifecycle API for owners and drivers",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter

register_error_handlers(app)

# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(jobs_router, prefix="/api")
app.include_router(images_router, prefix="/api")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "lak-backend",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health")
def health():
    """Detailed health check with an actual repository round trip."""
    from .database import get_job_storage

    db_status = "disconnected"
    try:
        get_job_storage().ping()
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)[:50]}"

    overall_status = "healthy" if db_status == "connected" else "degraded"

    return {
        "status": overall_status,
        "database": db_status,
    }
