"""ASGI entrypoint (`uvicorn app.main:app`); the app itself is built by the factory."""

from app.core.app_factory import create_app

app = create_app()
