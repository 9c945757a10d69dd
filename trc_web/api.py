"""FastAPI application that exposes the administrator user-record endpoints."""
from __future__ import annotations

import logging
import os
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from .database import Database, DuplicateEmailError, PASSWORD_MIN_LENGTH, resolve_database_path
from .security import ServiceTokenAuth, acting_user_id, parse_tokens

logger = logging.getLogger("trc.api")


class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(default="", max_length=200)
    email: str = Field(default="", max_length=320)
    password: Optional[str] = Field(default=None, max_length=256)
    is_admin: bool = Field(alias="isAdmin")
    is_active: bool = Field(alias="isActive")

    @field_validator("name", "email")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @field_validator("password")
    @classmethod
    def _blank_means_unchanged(cls, value: Optional[str]) -> Optional[str]:
        if value == "":
            return None
        return value


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    *,
    database: Database | None = None,
    auth: ServiceTokenAuth | None = None,
    initialize_database: bool = False,
) -> FastAPI:
    if database is None:
        db_path = resolve_database_path(os.getenv("TRC_DB_PATH"))
        database = Database(db_path)
        database.initialize()
    elif initialize_database:
        database.initialize()

    if auth is None:
        auth = ServiceTokenAuth(parse_tokens(os.getenv("TRC_USER_API_TOKEN")))

    app = FastAPI(
        title="TRC User Administration API",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.database = database

    def get_db() -> Database:
        return database

    @app.get("/admin/users/{user_id}", dependencies=[Depends(auth)])
    async def read_user(user_id: int, db: Database = Depends(get_db)):
        user = db.get_user(user_id)
        if user is None:
            return _error(status.HTTP_404_NOT_FOUND, "User not found")
        return JSONResponse(content=user.to_public_dict())

    @app.put("/admin/users/{user_id}", dependencies=[Depends(auth)])
    async def update_user(
        request: Request,
        user_id: int,
        payload: UpdateUserRequest,
        db: Database = Depends(get_db),
    ):
        if not payload.name or not payload.email:
            return _error(status.HTTP_400_BAD_REQUEST, "Name and email are required")
        if payload.password is not None and len(payload.password) < PASSWORD_MIN_LENGTH:
            return _error(
                status.HTTP_400_BAD_REQUEST,
                f"Password must be at least {PASSWORD_MIN_LENGTH} characters",
            )

        actor_id = acting_user_id(request)
        actor = db.get_user(actor_id) if actor_id is not None else None
        if actor is None or not actor.is_admin or not actor.is_active:
            return _error(status.HTTP_403_FORBIDDEN, "Administrator privileges required")

        if db.get_user(user_id) is None:
            return _error(status.HTTP_404_NOT_FOUND, "User not found")

        if actor.id == user_id:
            if not payload.is_admin:
                logger.warning("Administrator %d attempted to remove their own admin status", actor_id)
                return _error(status.HTTP_403_FORBIDDEN, "You cannot remove your own admin privileges")
            if not payload.is_active:
                logger.warning("Administrator %d attempted to deactivate their own account", actor_id)
                return _error(status.HTTP_403_FORBIDDEN, "You cannot deactivate your own account")

        try:
            updated = db.update_user(
                user_id,
                name=payload.name,
                email=payload.email,
                password=payload.password,
                is_admin=payload.is_admin,
                is_active=payload.is_active,
            )
        except DuplicateEmailError as exc:
            return _error(status.HTTP_409_CONFLICT, str(exc))
        except ValueError as exc:
            return _error(status.HTTP_400_BAD_REQUEST, str(exc))

        if updated is None:
            return _error(status.HTTP_404_NOT_FOUND, "User not found")

        logger.info(
            "User %d updated by administrator %d (password %s)",
            user_id,
            actor.id,
            "changed" if payload.password is not None else "unchanged",
        )
        return JSONResponse(content=updated.to_public_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid request payload")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException):
        payload: Dict[str, object] = {"error": str(exc.detail)}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers)

    return app


__all__ = ["UpdateUserRequest", "create_app"]
