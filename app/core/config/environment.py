"""Environment-aware settings loader."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Dict, Type

from .settings import Settings


class DevelopmentSettings(Settings):
    """Settings tuned for local development (verbose logging, plain-text logs)."""

    environment: str = "development"
    use_json_logs: bool = False


class ProductionSettings(Settings):
    """Settings tuned for production."""

    environment: str = "production"


class TestSettings(Settings):
    """Settings for automated tests: test database URL, no FCM, console-only logs."""

    environment: str = "test"
    push_notifications_enabled: bool = False
    log_dir: str | None = None

    def model_post_init(self, __context) -> None:
        super().model_post_init(__context)
        if not self.database_url:
            object.__setattr__(
                self, "database_url", self.get_database_url(use_test=True)
            )


ENVIRONMENTS: Dict[str, Type[Settings]] = {
    "development": DevelopmentSettings,
    "dev": DevelopmentSettings,
    "production": ProductionSettings,
    "prod": ProductionSettings,
    "test": TestSettings,
    "testing": TestSettings,
}


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance keyed by APP_ENV to avoid repeated disk/env reads."""
    env = os.getenv("APP_ENV", "production").lower()
    settings_cls = ENVIRONMENTS.get(env, ProductionSettings)
    return settings_cls()
