"""State handling for the administrator "edit user" form."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from .database import PASSWORD_MIN_LENGTH
from .models import SessionUser, UserUpdate
from .users_client import UserDirectoryClient, UserServiceError

logger = logging.getLogger("trc.admin.user_edit")

LOAD_ERROR = "Failed to load user"
REQUIRED_FIELDS_ERROR = "Name and email are required"
PASSWORD_LENGTH_ERROR = f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
UPDATE_ERROR = "Failed to update user"
UPDATE_TRANSPORT_ERROR = "An error occurred while updating the user"


class AccessDecision(enum.Enum):
    ALLOWED = "allowed"
    LOGIN_REQUIRED = "login_required"
    UNAUTHORIZED = "unauthorized"


def check_access(actor: Optional[SessionUser]) -> AccessDecision:
    """Decide whether ``actor`` may open the edit form."""

    if actor is None:
        return AccessDecision.LOGIN_REQUIRED
    if not actor.is_admin:
        return AccessDecision.UNAUTHORIZED
    return AccessDecision.ALLOWED


@dataclass
class UserForm:
    name: str = ""
    email: str = ""
    password: str = ""
    is_admin: bool = True
    is_active: bool = True


@dataclass
class EditSession:
    form: UserForm = field(default_factory=UserForm)
    loading: bool = True
    saving: bool = False
    error: str = ""
    is_self: bool = False
    navigated: bool = False

    @property
    def toggles_disabled(self) -> bool:
        return self.is_self


def validate_form(form: UserForm) -> Optional[str]:
    """Return the message that blocks submission, or ``None`` when the form is valid."""

    if not form.name.strip() or not form.email.strip():
        return REQUIRED_FIELDS_ERROR
    if form.password and len(form.password) < PASSWORD_MIN_LENGTH:
        return PASSWORD_LENGTH_ERROR
    return None


class UserEditController:
    """Load one user account and push an administrator's changes back.

    The controller never raises for fetch or update failures; it records the
    message on :attr:`state` so the page can stay interactive.
    """

    def __init__(self, client: UserDirectoryClient, *, user_id: int, actor: SessionUser) -> None:
        if check_access(actor) is not AccessDecision.ALLOWED:
            raise PermissionError("An administrator session is required to edit users")
        self._client = client
        self._user_id = user_id
        self._actor = actor
        self.state = EditSession(is_self=user_id == actor.id)

    def load(self) -> EditSession:
        try:
            user = self._client.fetch_user(self._user_id)
        except UserServiceError as exc:
            logger.warning("Failed to fetch user %d: %s", self._user_id, exc)
            self.state.error = LOAD_ERROR
        else:
            self.state.form = UserForm(
                name=user.name,
                email=user.email,
                password="",
                is_admin=user.is_admin,
                is_active=user.is_active,
            )
        finally:
            self.state.loading = False
        return self.state

    def submit(self, form: UserForm) -> EditSession:
        state = self.state
        state.loading = False
        state.error = ""
        if state.is_self:
            # Disabled toggles are not posted; an acting administrator is always active.
            form = replace(form, is_admin=True, is_active=True)
        state.form = form

        blocking = validate_form(form)
        if blocking is not None:
            state.error = blocking
            return state

        update = UserUpdate(
            name=form.name.strip(),
            email=form.email.strip(),
            password=form.password or None,
            is_admin=form.is_admin,
            is_active=form.is_active,
        )

        state.saving = True
        try:
            self._client.update_user(self._user_id, update, acting_user_id=self._actor.id)
        except UserServiceError as exc:
            if exc.status_code is None:
                logger.error("User update for %d failed: %s", self._user_id, exc)
                state.error = UPDATE_TRANSPORT_ERROR
            else:
                state.error = str(exc) or UPDATE_ERROR
        else:
            state.navigated = True
            logger.info("Administrator %d updated user %d", self._actor.id, self._user_id)
        finally:
            state.saving = False
        return state


__all__ = [
    "AccessDecision",
    "EditSession",
    "UserEditController",
    "UserForm",
    "check_access",
    "validate_form",
]
