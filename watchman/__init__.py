"""Watchman: TMDB browsing, discovery and personal library tracking."""

from __future__ import annotations

from importlib import import_module
from typing import Any

_LAZY_EXPORTS = {
    "app": "watchman.main",
    "create_app": "watchman.main",
    "Settings": "watchman.config",
    "get_settings": "watchman.config",
}

__all__ = sorted(_LAZY_EXPORTS)


def __getattr__(name: str) -> Any:
    # Deferred so importing a submodule does not build the FastAPI app.
    module_name = _LAZY_EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module 'watchman' has no attribute {name}")
    return getattr(import_module(module_name), name)
