"""HTTP client for the administrator user-record API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from .models import UserRecord, UserUpdate
from .security import ACTING_USER_HEADER


class UserServiceError(RuntimeError):
    """Raised when the user-record API cannot complete a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class _ClientConfig:
    base_url: str
    token: str
    timeout: float


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("User API base URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        for key in ("error", "message", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def _record_from_payload(payload: object) -> UserRecord:
    if not isinstance(payload, dict):
        raise UserServiceError("User API returned an unexpected response payload")
    try:
        return UserRecord(
            id=int(payload["id"]),
            name=str(payload.get("name") or ""),
            email=str(payload.get("email") or ""),
            is_admin=bool(payload.get("isAdmin", False)),
            is_active=bool(payload.get("isActive", False)),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise UserServiceError("User API response was missing required fields") from exc


class UserDirectoryClient:
    """Read and update user records through the administration API."""

    def __init__(self, base_url: str, token: str, *, timeout: float = 15.0) -> None:
        self._config = _ClientConfig(
            base_url=_normalize_base_url(base_url),
            token=(token or "").strip(),
            timeout=timeout,
        )
        if not self._config.token:
            raise ValueError("Service token must not be empty when using UserDirectoryClient")

    def _endpoint(self, user_id: int) -> str:
        return f"{self._config.base_url}/admin/users/{user_id}"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._config.token}"}

    def _raise_for_status(self, response: httpx.Response, default_error: str) -> None:
        if not response.is_success:
            message = _extract_error_message(response) or default_error
            raise UserServiceError(message, status_code=response.status_code)

    def _parse(self, response: httpx.Response, default_error: str) -> UserRecord:
        self._raise_for_status(response, default_error)
        try:
            payload = response.json()
        except ValueError as exc:
            raise UserServiceError("User API returned an invalid response") from exc
        return _record_from_payload(payload)

    def fetch_user(self, user_id: int) -> UserRecord:
        try:
            response = httpx.get(
                self._endpoint(user_id),
                headers=self._headers(),
                timeout=self._config.timeout,
            )
        except httpx.RequestError as exc:
            raise UserServiceError(f"Failed to contact user API: {exc}") from exc
        return self._parse(response, "Failed to load user")

    def update_user(
        self, user_id: int, update: UserUpdate, *, acting_user_id: int
    ) -> Optional[UserRecord]:
        """Apply ``update``. Any 2xx answer counts as applied; an unreadable body yields ``None``."""

        headers = self._headers()
        headers[ACTING_USER_HEADER] = str(acting_user_id)
        try:
            response = httpx.put(
                self._endpoint(user_id),
                json=update.to_payload(),
                headers=headers,
                timeout=self._config.timeout,
            )
        except httpx.RequestError as exc:
            raise UserServiceError(f"Failed to contact user API: {exc}") from exc
        self._raise_for_status(response, "Failed to update user")
        try:
            return _record_from_payload(response.json())
        except (ValueError, UserServiceError):
            return None


__all__ = ["UserDirectoryClient", "UserServiceError"]
