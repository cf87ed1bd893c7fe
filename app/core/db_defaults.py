"""Column default helpers that work on both Postgres and SQLite."""

from sqlalchemy.sql import text


def timestamp_default():
    """Server-side `CURRENT_TIMESTAMP`, portable across the supported dialects."""
    return text("CURRENT_TIMESTAMP")


__all__ = ["timestamp_default"]
