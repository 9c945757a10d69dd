"""SQLite-backed persistence for website user accounts."""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from passlib.context import CryptContext

from .models import UserRecord

PASSWORD_MIN_LENGTH = 8

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the user database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "users.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _hash_password(password: str) -> str:
    return _pwd_context.hash(password)


class DuplicateEmailError(ValueError):
    """Raised when an email address is already used by another account."""


def _validate_password(password: str) -> None:
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")


class Database:
    """Simple wrapper around SQLite for persisting user accounts."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT,
                    is_admin INTEGER NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                );
                """
            )

    def create_user(
        self,
        name: str,
        email: str,
        password: str,
        *,
        is_admin: bool = False,
        is_active: bool = True,
    ) -> UserRecord:
        normalized_name = name.strip()
        normalized_email = _normalize_email(email)
        if not normalized_name or not normalized_email:
            raise ValueError("Name and email are required")
        _validate_password(password)

        created_at = _current_timestamp()
        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO users (name, email, password_hash, is_admin, is_active, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        normalized_name,
                        normalized_email,
                        _hash_password(password),
                        int(bool(is_admin)),
                        int(bool(is_active)),
                        created_at.isoformat(),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateEmailError("A user with that email already exists") from exc
            user_id = cursor.lastrowid

        return UserRecord(
            id=int(user_id),
            name=normalized_name,
            email=normalized_email,
            is_admin=bool(is_admin),
            is_active=bool(is_active),
            created_at=created_at,
        )

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?",
                (_normalize_email(email),),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_users(self) -> List[UserRecord]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY name").fetchall()
        return [self._row_to_user(row) for row in rows]

    def update_user(
        self,
        user_id: int,
        *,
        name: str,
        email: str,
        is_admin: bool,
        is_active: bool,
        password: Optional[str] = None,
    ) -> Optional[UserRecord]:
        """Apply an administrator's changes; ``password=None`` keeps the current one.

        Returns ``None`` when the user does not exist.
        """

        normalized_name = name.strip()
        normalized_email = _normalize_email(email)
        if not normalized_name or not normalized_email:
            raise ValueError("Name and email are required")

        updates = ["name = ?", "email = ?", "is_admin = ?", "is_active = ?"]
        values: List[object] = [
            normalized_name,
            normalized_email,
            int(bool(is_admin)),
            int(bool(is_active)),
        ]
        if password is not None:
            _validate_password(password)
            updates.append("password_hash = ?")
            values.append(_hash_password(password))
        values.append(user_id)

        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    f"UPDATE users SET {', '.join(updates)} WHERE id = ?",
                    values,
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateEmailError("A user with that email already exists") from exc
            if cursor.rowcount == 0:
                return None

        return self.get_user(user_id)

    def _row_to_user(self, row: sqlite3.Row) -> UserRecord:
        return UserRecord(
            id=int(row["id"]),
            name=str(row["name"]),
            email=str(row["email"]),
            is_admin=bool(row["is_admin"]),
            is_active=bool(row["is_active"]),
            created_at=datetime.fromisoformat(str(row["created_at"])),
        )


__all__ = ["Database", "DuplicateEmailError", "PASSWORD_MIN_LENGTH", "resolve_database_path"]
