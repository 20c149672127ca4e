# quickten/registry.py
from __future__ import annotations
from typing import Callable, TypeVar
from flask import current_app

T = TypeVar("T")


def get_component(key: str, factory: Callable[[], T]) -> T:
    """Per-app singleton living in current_app.extensions[key]."""
    ext = current_app.extensions
    comp: T | None = ext.get(key)
    if comp is None:
        comp = factory()
        ext[key] = comp
    return comp
