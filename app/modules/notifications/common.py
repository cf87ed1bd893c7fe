"""Shared helpers and state for the notifications domain."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Mapping, TypeVar

logger = logging.getLogger("app.notifications")

F = TypeVar("F", bound=Callable[..., Any])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp() -> str:
    """UTC ISO-8601 timestamp with a trailing ``Z`` as the mobile clients expect."""
    return utcnow().isoformat().replace("+00:00", "Z")


def canonical_json(value: Any) -> str:
    """Stable JSON form used for set-style deduplication."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def stringify_data(data: Mapping[str, Any] | None) -> Dict[str, str]:
    """Coerce an FCM data payload to ``{str: str}``; non-strings are JSON encoded."""
    result: Dict[str, str] = {}
    for key, value in (data or {}).items():
        if value is None:
            continue
        if isinstance(value, str):
            result[str(key)] = value
        else:
            result[str(key)] = json.dumps(value, default=str)
    return result


def swallow_delivery_errors(func: F) -> F:
    """Log and absorb errors from delivery entry points.

    Business callers must never fail because a notification could not be sent,
    so orchestrator entry points are wrapped with this.
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except Exception:
            logger.exception("Delivery step %s failed", func.__name__)
            return None

    return wrapper  # type: ignore[return-value]


__all__ = [
    "logger",
    "utcnow",
    "iso_timestamp",
    "canonical_json",
    "stringify_data",
    "swallow_delivery_errors",
]
