from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from trc_web.models import SessionUser, UserRecord, UserUpdate
from trc_web.user_edit import (
    AccessDecision,
    PASSWORD_LENGTH_ERROR,
    REQUIRED_FIELDS_ERROR,
    UPDATE_ERROR,
    UPDATE_TRANSPORT_ERROR,
    UserEditController,
    UserForm,
    check_access,
)
from trc_web.users_client import UserServiceError


ADMIN = SessionUser(id=1, name="Karen", email="karen@example.com", is_admin=True)


class FakeDirectory:
    def __init__(
        self,
        record: Optional[UserRecord] = None,
        *,
        fetch_error: Optional[UserServiceError] = None,
        update_error: Optional[UserServiceError] = None,
    ) -> None:
        self.record = record
        self.fetch_error = fetch_error
        self.update_error = update_error
        self.updates: List[tuple[int, UserUpdate, int]] = []

    def fetch_user(self, user_id: int) -> UserRecord:
        if self.fetch_error is not None:
            raise self.fetch_error
        assert self.record is not None
        return self.record

    def update_user(self, user_id: int, update: UserUpdate, *, acting_user_id: int) -> UserRecord:
        self.updates.append((user_id, update, acting_user_id))
        if self.update_error is not None:
            raise self.update_error
        assert self.record is not None
        return self.record


def _record(user_id: int = 2, *, is_admin: bool = False, is_active: bool = False) -> UserRecord:
    return UserRecord(
        id=user_id,
        name="Member",
        email="member@example.com",
        is_admin=is_admin,
        is_active=is_active,
    )


def test_access_guard_decisions():
    assert check_access(None) is AccessDecision.LOGIN_REQUIRED
    assert (
        check_access(SessionUser(id=3, name="Viewer", email=None, is_admin=False))
        is AccessDecision.UNAUTHORIZED
    )
    assert check_access(ADMIN) is AccessDecision.ALLOWED


def test_controller_refuses_non_admin_actor():
    with pytest.raises(PermissionError):
        UserEditController(
            FakeDirectory(_record()),
            user_id=2,
            actor=SessionUser(id=3, name="Viewer", email=None, is_admin=False),
        )


def test_load_populates_form_with_blank_password():
    controller = UserEditController(FakeDirectory(_record(is_admin=True, is_active=True)), user_id=2, actor=ADMIN)
    assert controller.state.loading is True

    state = controller.load()

    assert state.loading is False
    assert state.error == ""
    assert state.form == UserForm(
        name="Member",
        email="member@example.com",
        password="",
        is_admin=True,
        is_active=True,
    )
    assert state.is_self is False
    assert state.toggles_disabled is False


def test_failed_load_sets_error_without_raising():
    directory = FakeDirectory(fetch_error=UserServiceError("boom", status_code=500))
    controller = UserEditController(directory, user_id=2, actor=ADMIN)

    state = controller.load()

    assert state.loading is False
    assert state.error == "Failed to load user"


def test_self_edit_disables_toggles_regardless_of_stored_values():
    controller = UserEditController(
        FakeDirectory(_record(user_id=ADMIN.id, is_admin=False, is_active=False)),
        user_id=ADMIN.id,
        actor=ADMIN,
    )

    state = controller.load()

    assert state.is_self is True
    assert state.toggles_disabled is True


@pytest.mark.parametrize(
    "form",
    [
        UserForm(name="", email="member@example.com"),
        UserForm(name="Member", email="   "),
    ],
)
def test_submit_requires_name_and_email(form):
    directory = FakeDirectory(_record())
    controller = UserEditController(directory, user_id=2, actor=ADMIN)

    state = controller.submit(form)

    assert state.error == REQUIRED_FIELDS_ERROR
    assert directory.updates == []


@pytest.mark.parametrize("password", ["a", "1234567"])
def test_submit_blocks_short_passwords(password):
    directory = FakeDirectory(_record())
    controller = UserEditController(directory, user_id=2, actor=ADMIN)

    state = controller.submit(UserForm(name="Member", email="member@example.com", password=password))

    assert state.error == PASSWORD_LENGTH_ERROR
    assert state.saving is False
    assert directory.updates == []


def test_submit_blank_password_is_omitted():
    directory = FakeDirectory(_record())
    controller = UserEditController(directory, user_id=2, actor=ADMIN)

    state = controller.submit(UserForm(name="Member", email="member@example.com", password=""))

    assert state.navigated is True
    _, update, acting_id = directory.updates[0]
    assert update.password is None
    assert "password" not in update.to_payload()
    assert acting_id == ADMIN.id


def test_submit_long_password_is_sent():
    directory = FakeDirectory(_record())
    controller = UserEditController(directory, user_id=2, actor=ADMIN)

    state = controller.submit(
        UserForm(name="Member", email="member@example.com", password="12345678", is_admin=False, is_active=False)
    )

    assert state.navigated is True
    _, update, _ = directory.updates[0]
    assert update.to_payload()["password"] == "12345678"
    assert update.is_active is False


def test_self_submit_keeps_admin_and_active_flags():
    directory = FakeDirectory(_record(user_id=ADMIN.id))
    controller = UserEditController(directory, user_id=ADMIN.id, actor=ADMIN)

    controller.submit(UserForm(name="Karen", email="karen@example.com", is_admin=False, is_active=False))

    _, update, _ = directory.updates[0]
    assert update.is_admin is True
    assert update.is_active is True


def test_submit_surfaces_server_message():
    directory = FakeDirectory(
        _record(),
        update_error=UserServiceError("A user with that email already exists", status_code=409),
    )
    controller = UserEditController(directory, user_id=2, actor=ADMIN)

    state = controller.submit(UserForm(name="Member", email="taken@example.com"))

    assert state.navigated is False
    assert state.saving is False
    assert state.error == "A user with that email already exists"


def test_submit_uses_fallback_messages():
    directory = FakeDirectory(_record(), update_error=UserServiceError("", status_code=500))
    controller = UserEditController(directory, user_id=2, actor=ADMIN)
    assert controller.submit(UserForm(name="Member", email="member@example.com")).error == UPDATE_ERROR

    directory.update_error = UserServiceError("Failed to contact user API: refused")
    assert controller.submit(UserForm(name="Member", email="member@example.com")).error == UPDATE_TRANSPORT_ERROR


def test_error_is_cleared_on_next_submit():
    directory = FakeDirectory(_record())
    controller = UserEditController(directory, user_id=2, actor=ADMIN)

    controller.submit(UserForm(name="", email=""))
    state = controller.submit(UserForm(name="Member", email="member@example.com"))

    assert state.error == ""
    assert state.navigated is True


def test_submit_navigates_when_update_returns_no_record():
    class EmptyBodyDirectory(FakeDirectory):
        def update_user(self, user_id, update, *, acting_user_id):
            self.updates.append((user_id, update, acting_user_id))
            return None

    directory = EmptyBodyDirectory(_record())
    controller = UserEditController(directory, user_id=2, actor=ADMIN)

    state = controller.submit(UserForm(name="Member", email="member@example.com"))

    assert state.error == ""
    assert state.navigated is True
