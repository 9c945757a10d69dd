from __future__ import annotations

import sqlite3
import sys
from pathlib import Path

import pytest
from passlib.hash import pbkdf2_sha256

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from trc_web.database import Database, DuplicateEmailError


def _password_matches(database, email, password):
    with sqlite3.connect(database.path) as conn:
        row = conn.execute("SELECT password_hash FROM users WHERE email = ?", (email,)).fetchone()
    return row is not None and pbkdf2_sha256.verify(password, row[0])


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "users.sqlite3")
    db.initialize()
    return db


def test_create_user_normalises_email_and_hides_password(database: Database) -> None:
    user = database.create_user("Karen", " Karen@Example.com ", "coaching-rocks", is_admin=True)

    assert user.email == "karen@example.com"
    assert user.is_admin is True
    assert user.is_active is True
    assert "password" not in user.to_public_dict()
    assert database.get_user_by_email("KAREN@example.com") == database.get_user(user.id)


def test_create_user_rejects_duplicate_email(database: Database) -> None:
    database.create_user("First", "dup@example.com", "password-one")
    with pytest.raises(DuplicateEmailError):
        database.create_user("Second", "DUP@example.com", "password-two")


def test_create_user_rejects_short_password(database: Database) -> None:
    with pytest.raises(ValueError, match="at least 8 characters"):
        database.create_user("Short", "short@example.com", "1234567")


def test_update_without_password_keeps_existing_hash(database: Database) -> None:
    user = database.create_user("Member", "member@example.com", "original-pass")

    updated = database.update_user(
        user.id,
        name="Member Renamed",
        email="member@example.com",
        is_admin=False,
        is_active=True,
        password=None,
    )

    assert updated is not None
    assert updated.name == "Member Renamed"
    assert _password_matches(database, "member@example.com", "original-pass")


def test_update_with_password_replaces_hash(database: Database) -> None:
    user = database.create_user("Member", "member@example.com", "original-pass")

    database.update_user(
        user.id,
        name="Member",
        email="member@example.com",
        is_admin=False,
        is_active=True,
        password="brand-new-pass",
    )

    assert not _password_matches(database, "member@example.com", "original-pass")
    assert _password_matches(database, "member@example.com", "brand-new-pass")


def test_deactivation_is_stored_without_touching_password(database: Database) -> None:
    user = database.create_user("Member", "member@example.com", "original-pass")
    database.update_user(
        user.id,
        name="Member",
        email="member@example.com",
        is_admin=False,
        is_active=False,
    )

    stored = database.get_user(user.id)
    assert stored is not None
    assert stored.is_active is False
    assert _password_matches(database, "member@example.com", "original-pass")


def test_update_unknown_user_returns_none(database: Database) -> None:
    assert (
        database.update_user(
            999,
            name="Ghost",
            email="ghost@example.com",
            is_admin=False,
            is_active=True,
        )
        is None
    )


def test_update_to_taken_email_raises(database: Database) -> None:
    database.create_user("One", "one@example.com", "password-one")
    second = database.create_user("Two", "two@example.com", "password-two")

    with pytest.raises(DuplicateEmailError):
        database.update_user(
            second.id,
            name="Two",
            email="one@example.com",
            is_admin=False,
            is_active=True,
        )
