"""Google reCAPTCHA v3 token verification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger("trc.recaptcha")

VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    score: Optional[float] = None
    action: Optional[str] = None
    error: Optional[str] = None


class RecaptchaVerifier:
    """Check client tokens against the reCAPTCHA ``siteverify`` endpoint.

    A token passes when Google accepts it, the action it was issued for
    matches the expected one and its score reaches ``min_score``. Without a
    secret key verification is disabled and every token is accepted.
    """

    def __init__(
        self,
        secret_key: Optional[str],
        *,
        min_score: float = 0.5,
        timeout: float = 10.0,
    ) -> None:
        self._secret_key = (secret_key or "").strip() or None
        self._min_score = min_score
        self._timeout = timeout

    @property
    def enabled(self) -> bool:
        return self._secret_key is not None

    def verify(self, token: str, action: str, *, remote_ip: Optional[str] = None) -> VerificationResult:
        if not self.enabled:
            logger.warning("RECAPTCHA_SECRET_KEY is not set; skipping verification for %s", action)
            return VerificationResult(success=True, action=action)

        data = {"secret": self._secret_key, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip

        try:
            response = httpx.post(VERIFY_URL, data=data, timeout=self._timeout)
        except httpx.RequestError as exc:
            logger.error("reCAPTCHA verification request failed: %s", exc)
            return VerificationResult(success=False, error="Unable to verify reCAPTCHA. Please try again.")

        if response.status_code != 200:
            logger.error("reCAPTCHA API returned status %s", response.status_code)
            return VerificationResult(success=False, error="Unable to verify reCAPTCHA. Please try again.")

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            return VerificationResult(success=False, error="Unable to verify reCAPTCHA. Please try again.")

        score = payload.get("score")
        score = float(score) if isinstance(score, (int, float)) else None
        returned_action = payload.get("action")

        if not payload.get("success"):
            logger.info("reCAPTCHA rejected token: %s", payload.get("error-codes", []))
            return VerificationResult(
                success=False,
                score=score,
                action=returned_action,
                error="reCAPTCHA verification failed. Please try again.",
            )

        if returned_action != action:
            return VerificationResult(
                success=False,
                score=score,
                action=returned_action,
                error="reCAPTCHA action mismatch.",
            )

        if score is not None and score < self._min_score:
            return VerificationResult(
                success=False,
                score=score,
                action=returned_action,
                error="Suspicious activity detected. Please try again later.",
            )

        return VerificationResult(success=True, score=score, action=returned_action)


__all__ = ["RecaptchaVerifier", "VERIFY_URL", "VerificationResult"]
