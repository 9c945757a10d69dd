"""Domain models shared by the user administration and contact services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional


@dataclass(frozen=True)
class UserRecord:
    """A user account as exposed to administrators.

    Password material is never part of a record; it can only be written.
    """

    id: int
    name: str
    email: str
    is_admin: bool
    is_active: bool
    created_at: Optional[datetime] = None

    def to_public_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "isAdmin": self.is_admin,
            "isActive": self.is_active,
        }


@dataclass(frozen=True)
class UserUpdate:
    """Changes submitted for an existing account.

    ``password`` is ``None`` when the current password must be kept.
    """

    name: str
    email: str
    is_admin: bool
    is_active: bool
    password: Optional[str] = None

    def to_payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "name": self.name,
            "email": self.email,
            "isAdmin": self.is_admin,
            "isActive": self.is_active,
        }
        if self.password is not None:
            payload["password"] = self.password
        return payload


@dataclass(frozen=True)
class SessionUser:
    """The authenticated actor resolved from the signed session cookie."""

    id: int
    name: str
    email: Optional[str]
    is_admin: bool


__all__ = ["SessionUser", "UserRecord", "UserUpdate"]
