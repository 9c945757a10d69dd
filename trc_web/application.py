"""Application factory that serves the APIs and the admin pages together."""
from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from .admin import create_app as create_admin_app
from .api import create_app as create_api_app
from .config import Settings, load_settings
from .contact import ContactService, create_router as create_contact_router
from .database import Database, resolve_database_path
from .security import ServiceTokenAuth, parse_tokens


def create_application(
    *,
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """Create the combined ASGI application."""

    if settings is None:
        settings = load_settings()

    if database is None:
        database = Database(resolve_database_path(settings.database_path))
        database.initialize()

    api_auth = ServiceTokenAuth(parse_tokens(settings.user_api_token))
    api_app = create_api_app(database=database, auth=api_auth)

    contact_service = ContactService(settings)
    api_app.include_router(create_contact_router(contact_service))

    admin_app = create_admin_app(settings=settings)

    app = FastAPI(
        title="TRC Website Services",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.api = api_app
    app.state.admin = admin_app
    app.state.contact_service = contact_service

    @app.get("/health")
    async def healthcheck():
        return {"status": "ok"}

    app.mount("/api", api_app)
    app.mount("/", admin_app)

    return app


__all__ = ["create_application"]
