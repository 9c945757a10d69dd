"""Outbound email delivery through the Resend HTTP API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import httpx

RESEND_EMAILS_URL = "https://api.resend.com/emails"


class EmailDeliveryError(RuntimeError):
    """Raised when the email provider does not accept a message."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class EmailMessage:
    sender: str
    to: str
    subject: str
    html: str
    reply_to: Optional[str] = None

    def to_payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "from": self.sender,
            "to": [self.to],
            "subject": self.subject,
            "html": self.html,
        }
        if self.reply_to:
            payload["reply_to"] = self.reply_to
        return payload


def _extract_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in ("message", "error", "name"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return f"Email provider responded with status {response.status_code}"


class ResendMailer:
    """Send HTML email through Resend."""

    def __init__(self, api_key: str, *, timeout: float = 15.0) -> None:
        cleaned = (api_key or "").strip()
        if not cleaned:
            raise ValueError("Resend API key must not be empty")
        self._api_key = cleaned
        self._timeout = timeout

    def send(self, message: EmailMessage) -> str:
        """Deliver ``message`` and return the provider's message id."""

        try:
            response = httpx.post(
                RESEND_EMAILS_URL,
                json=message.to_payload(),
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except httpx.RequestError as exc:
            raise EmailDeliveryError(f"Failed to contact email provider: {exc}") from exc

        if response.status_code >= 400:
            raise EmailDeliveryError(_extract_error_message(response), status_code=response.status_code)

        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("id"):
            return str(data["id"])
        return ""


__all__ = ["EmailDeliveryError", "EmailMessage", "RESEND_EMAILS_URL", "ResendMailer"]
