import pytest

from app.core.config import get_settings
from app.core.config.environment import (
    DevelopmentSettings,
    ProductionSettings,
    TestSettings,
)
from app.core.config.settings import Settings, _env_flag


def test_env_flag_parses_truthy_values(monkeypatch):
    monkeypatch.setenv("SOME_FLAG", "Yes")
    assert _env_flag("SOME_FLAG") is True
    monkeypatch.setenv("SOME_FLAG", "0")
    assert _env_flag("SOME_FLAG") is False
    monkeypatch.delenv("SOME_FLAG")
    assert _env_flag("SOME_FLAG", default=None) is None


def test_test_settings_disable_push_and_use_sqlite():
    settings = get_settings()
    assert isinstance(settings, TestSettings)
    assert settings.push_notifications_enabled is False
    assert settings.environment == "test"


def test_cors_origins_from_env(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example,")
    settings = ProductionSettings()
    assert settings.cors_origins == ["https://a.example", "https://b.example"]


def test_cors_defaults_to_frontend_url(monkeypatch):
    monkeypatch.delenv("CORS_ORIGINS", raising=False)
    settings = DevelopmentSettings(frontend_url="https://rota.example")
    assert settings.cors_origins == ["https://rota.example"]


def test_socket_paths_default():
    assert Settings().socket_paths == {
        "chat": "/ws-chat",
        "tasks": "/ws-tasks",
        "timesheet": "/timesheet-ws",
    }


def test_database_url_prefers_explicit_value():
    settings = Settings(database_url="postgresql://u:p@db/care")
    assert settings.get_database_url() == "postgresql://u:p@db/care"
    assert settings.get_database_url(use_test=True) == "postgresql://u:p@db/care_test"


def test_database_url_composed_from_parts():
    settings = Settings(
        database_url=None,
        test_database_url=None,
        database_hostname="db",
        database_username="care",
        database_password="secret",
        database_name="staffing",
        database_ssl_mode="disable",
    )
    assert settings.get_database_url() == (
        "postgresql+psycopg2://care:secret@db:5432/staffing?sslmode=disable"
    )


def test_test_database_url_must_be_dedicated():
    settings = Settings(test_database_url="postgresql://u:p@db/care")
    with pytest.raises(ValueError):
        settings.get_database_url(use_test=True)
