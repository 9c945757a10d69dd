"""Security helpers for the user administration API."""
from __future__ import annotations

import secrets
from typing import Iterable, List, Optional

from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

ACTING_USER_HEADER = "X-Acting-User-Id"


class ServiceTokenAuth:
    """Bearer token authentication using constant-time comparisons."""

    def __init__(self, tokens: Iterable[str]):
        token_list: List[str] = [token.strip() for token in tokens if token and token.strip()]
        if not token_list:
            raise ValueError("At least one service token must be provided")
        self._tokens = token_list
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> None:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

        provided = credentials.credentials
        for token in self._tokens:
            if secrets.compare_digest(provided, token):
                return None

        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid service token")


def parse_tokens(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [token.strip() for token in raw.split(",") if token.strip()]


def acting_user_id(request: Request) -> Optional[int]:
    """Return the administrator id forwarded by the admin interface, if any."""

    raw = request.headers.get(ACTING_USER_HEADER)
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


__all__ = ["ACTING_USER_HEADER", "ServiceTokenAuth", "acting_user_id", "parse_tokens"]
