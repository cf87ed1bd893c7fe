"""Models package initialiser.

- Exposes the shared SQLAlchemy `Base`.
- Lazily exposes the notification models via module-level attribute access so importing
  `app.core.database` (which pulls `Base`) doesn't import the domain modules during setup.
- `load_all()` imports every model module; Alembic and test fixtures call it before
  touching `Base.metadata`.
"""

import importlib

from app.models.base import Base

_MODEL_MODULES = ("app.modules.notifications.models",)

__all__ = ["Base", "load_all"]


def load_all() -> None:
    """Import every module that declares tables on `Base`."""
    for module_name in _MODEL_MODULES:
        importlib.import_module(module_name)


def __getattr__(name: str):
    for module_name in _MODEL_MODULES:
        module = importlib.import_module(module_name)
        if hasattr(module, name):
            return getattr(module, name)
    raise AttributeError(f"module 'app.models' has no attribute {name!r}")
