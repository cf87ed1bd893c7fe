"""Rate limiting utilities.

Wraps the slowapi limiter with a no-op variant under APP_ENV=test so fixtures stay
deterministic. Requests are keyed by the gateway user header when present and
fall back to the remote address.
"""

import os

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings


class _NoOpLimiter:
    """Disable rate limiting when running tests."""

    enabled = False

    def limit(self, *args, **kwargs):
        def decorator(func):
            return func

        return decorator


def rate_limit_key(request: Request) -> str:
    user_id = request.headers.get("X-User-Id")
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


if os.getenv("APP_ENV", settings.environment).lower() == "test":
    limiter = _NoOpLimiter()
else:
    limiter = Limiter(key_func=rate_limit_key, default_limits=["300 per minute"])


__all__ = ["limiter", "rate_limit_key"]
