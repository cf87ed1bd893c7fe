"""Declarative base shared by the notification tables and Alembic."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()

__all__ = ["Base"]
