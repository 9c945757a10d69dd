"""Browser-based user administration pages."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import anyio
from fastapi import FastAPI, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.middleware.sessions import SessionMiddleware

from .config import Settings, load_settings
from .models import SessionUser
from .user_edit import AccessDecision, EditSession, UserEditController, UserForm, check_access
from .users_client import UserDirectoryClient

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

SESSION_USER_KEY = "user"

logger = logging.getLogger("trc.admin")


def session_user_from_mapping(data: object) -> Optional[SessionUser]:
    """Build a :class:`SessionUser` from the identity provider's session payload."""

    if not isinstance(data, dict):
        return None
    try:
        user_id = int(data["id"])
    except (KeyError, TypeError, ValueError):
        return None
    email = data.get("email")
    return SessionUser(
        id=user_id,
        name=str(data.get("name") or ""),
        email=str(email) if email else None,
        is_admin=bool(data.get("isAdmin", False)),
    )


def create_app(
    *,
    settings: Optional[Settings] = None,
    session_secret: Optional[str] = None,
    user_api_base_url: Optional[str] = None,
    user_api_token: Optional[str] = None,
) -> FastAPI:
    """Create the user administration web application."""

    if settings is None:
        settings = load_settings()

    session_secret = session_secret or settings.session_secret
    if not session_secret:
        raise RuntimeError("TRC_SESSION_SECRET must be configured to use the admin interface")

    app = FastAPI(
        title="TRC User Administration",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.user_api_base_url = user_api_base_url or settings.user_api_base_url
    app.state.user_api_token = user_api_token or settings.user_api_token

    app.add_middleware(
        SessionMiddleware,
        secret_key=session_secret,
        session_cookie="trc_session",
        https_only=settings.session_secure,
        same_site="lax",
        max_age=60 * 60 * 8,
    )

    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

    def _get_current_user(request: Request) -> Optional[SessionUser]:
        override = getattr(app.state, "identity_resolver", None)
        if callable(override):
            return override(request)
        return session_user_from_mapping(request.session.get(SESSION_USER_KEY))

    def _build_client() -> UserDirectoryClient:
        override = getattr(app.state, "user_client_factory", None)
        if callable(override):
            client = override()
            if client is None:
                raise RuntimeError("User client override must return a client instance")
            return client
        token = app.state.user_api_token
        if not token:
            raise RuntimeError("TRC_USER_API_TOKEN must be configured to manage users")
        return UserDirectoryClient(app.state.user_api_base_url, token)

    def _guard_redirect(actor: Optional[SessionUser]) -> Optional[RedirectResponse]:
        decision = check_access(actor)
        if decision is AccessDecision.LOGIN_REQUIRED:
            target = settings.login_path
        elif decision is AccessDecision.UNAUTHORIZED:
            target = settings.unauthorized_path
        else:
            return None
        return RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)

    def _render(request: Request, user_id: int, state: EditSession) -> HTMLResponse:
        return templates.TemplateResponse(
            request,
            "edit_user.html",
            {
                "user_id": user_id,
                "state": state,
                "form": state.form,
                "user_list_path": settings.user_list_path,
            },
        )

    @app.get("/admin/users/{user_id}/edit", response_class=HTMLResponse, name="edit_user")
    async def edit_user(request: Request, user_id: int):
        actor = _get_current_user(request)
        redirect = _guard_redirect(actor)
        if redirect is not None:
            return redirect

        controller = UserEditController(_build_client(), user_id=user_id, actor=actor)
        state = await anyio.to_thread.run_sync(controller.load)
        return _render(request, user_id, state)

    @app.post("/admin/users/{user_id}/edit", name="submit_user_edit")
    async def submit_user_edit(
        request: Request,
        user_id: int,
        name: str = Form(""),
        email: str = Form(""),
        password: str = Form(""),
        is_admin: Optional[str] = Form(None),
        is_active: Optional[str] = Form(None),
    ):
        actor = _get_current_user(request)
        redirect = _guard_redirect(actor)
        if redirect is not None:
            return redirect

        controller = UserEditController(_build_client(), user_id=user_id, actor=actor)
        form = UserForm(
            name=name,
            email=email,
            password=password,
            is_admin=is_admin is not None,
            is_active=is_active is not None,
        )
        state = await anyio.to_thread.run_sync(controller.submit, form)
        if state.navigated:
            return RedirectResponse(settings.user_list_path, status_code=status.HTTP_303_SEE_OTHER)
        return _render(request, user_id, state)

    return app


__all__ = ["SESSION_USER_KEY", "create_app", "session_user_from_mapping"]
