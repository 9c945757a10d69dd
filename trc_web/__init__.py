"""Server-side services for the TRC coaching website."""

from __future__ import annotations

from typing import Any

from .database import Database, resolve_database_path


def create_application(*args: Any, **kwargs: Any):
    """Factory function that returns the combined API + admin application."""

    from .application import create_application as _create_application

    return _create_application(*args, **kwargs)


def create_contact_app(*args: Any, **kwargs: Any):
    """Factory function for the standalone contact relay."""

    from .contact import create_app as _create_contact_app

    return _create_contact_app(*args, **kwargs)


__all__ = [
    "Database",
    "resolve_database_path",
    "create_application",
    "create_contact_app",
]
