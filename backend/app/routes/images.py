"""Image retrieval routes for job pictures."""

from fastapi import APIRouter, Request
from fastapi.responses import Response

from ..auth import CurrentUser
from ..database import Media
from ..logging_config import get_logger
from ..rate_limit import READ_LIMIT, limiter

logger = get_logger("api.images")
router = APIRouter(prefix="/images", tags=["images"])


@router.get("/{reference:path}")
@limiter.limit(READ_LIMIT)
def get_image(
    request: Request,
    reference: str,
    auth: CurrentUser,
    media: Media,
):
    """Serve an image by the reference stored on a job."""
    logger.info(f"GET /images/{reference} | user={auth.user_id}")
    image = media.get(reference)
    return Response(
        content=image.content,
        media_type=image.content_type,
        headers={"Cache-Control": "private, max-age=3600"},
    )
