"""App package init."""

from app.core.config import Settings, settings

__all__ = ["settings", "Settings"]
