"""Rate limiting configuration for the LAK backend.

Authenticated requests are limited per user; anything else per client
address. The auth dependency stores the user id on ``request.state`` before
the limit is checked.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings

# Per-route limits
READ_LIMIT = "120/minute"
WRITE_LIMIT = "30/minute"
LIFECYCLE_LIMIT = "20/minute"


def get_rate_limit_key(request) -> str:
    """Key requests by authenticated user, falling back to client address."""
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(key_func=get_rate_limit_key, enabled=get_settings().rate_limit_enabled)
