"""WatchQuest document store and social cataloguing services."""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = ["WatchQuest", "create_application", "lifespan"]


def __getattr__(name: str) -> Any:
    if name in __all__:
        module = import_module("watchquest.main")
        return getattr(module, name)
    raise AttributeError(f"module 'watchquest' has no attribute {name}")
