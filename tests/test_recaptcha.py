import sys
from pathlib import Path

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from trc_web.recaptcha import VERIFY_URL, RecaptchaVerifier


ACTION = "submit_contact_form"


def _respond(monkeypatch, response=None, *, error=None):
    captured = {}

    def fake_post(url, data=None, timeout=None):
        captured.update({"url": url, "data": data})
        if error is not None:
            raise error
        return response

    monkeypatch.setattr(httpx, "post", fake_post)
    return captured


def test_accepts_token_with_matching_action_and_score(monkeypatch):
    captured = _respond(
        monkeypatch,
        httpx.Response(200, json={"success": True, "score": 0.9, "action": ACTION}),
    )

    result = RecaptchaVerifier("secret").verify("token", ACTION, remote_ip="203.0.113.5")

    assert result.success is True
    assert result.score == 0.9
    assert captured["url"] == VERIFY_URL
    assert captured["data"] == {"secret": "secret", "response": "token", "remoteip": "203.0.113.5"}


def test_rejects_low_score(monkeypatch):
    _respond(monkeypatch, httpx.Response(200, json={"success": True, "score": 0.3, "action": ACTION}))

    result = RecaptchaVerifier("secret", min_score=0.5).verify("token", ACTION)

    assert result.success is False
    assert result.error == "Suspicious activity detected. Please try again later."


def test_score_at_threshold_passes(monkeypatch):
    _respond(monkeypatch, httpx.Response(200, json={"success": True, "score": 0.5, "action": ACTION}))

    assert RecaptchaVerifier("secret").verify("token", ACTION).success is True


def test_rejects_action_mismatch(monkeypatch):
    _respond(monkeypatch, httpx.Response(200, json={"success": True, "score": 0.9, "action": "login"}))

    result = RecaptchaVerifier("secret").verify("token", ACTION)

    assert result.success is False
    assert result.error == "reCAPTCHA action mismatch."


def test_rejects_unsuccessful_token(monkeypatch):
    _respond(
        monkeypatch,
        httpx.Response(200, json={"success": False, "error-codes": ["invalid-input-response"]}),
    )

    result = RecaptchaVerifier("secret").verify("token", ACTION)

    assert result.success is False
    assert result.error == "reCAPTCHA verification failed. Please try again."


@pytest.mark.parametrize(
    "kwargs",
    [
        {"response": httpx.Response(500, text="unavailable")},
        {"error": httpx.ConnectError("unreachable")},
    ],
)
def test_transport_problems_fail_closed(monkeypatch, kwargs):
    _respond(monkeypatch, **kwargs)

    result = RecaptchaVerifier("secret").verify("token", ACTION)

    assert result.success is False
    assert result.error == "Unable to verify reCAPTCHA. Please try again."


def test_missing_secret_disables_verification(monkeypatch):
    def fail_post(*_args, **_kwargs):
        raise AssertionError("verification must not call Google without a secret")

    monkeypatch.setattr(httpx, "post", fail_post)

    verifier = RecaptchaVerifier(None)

    assert verifier.enabled is False
    assert verifier.verify("token", ACTION).success is True
