"""Configuration management for the TRC website services."""
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

PLACEHOLDER_RESEND_API_KEY = "re_YOUR_RESEND_API_KEY"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

_ENVIRONMENT_KEYS: Dict[str, str] = {
    "RESEND_API_KEY": "resend_api_key",
    "RECAPTCHA_SECRET_KEY": "recaptcha_secret_key",
    "RECAPTCHA_MIN_SCORE": "recaptcha_min_score",
    "TRC_OWNER_NAME": "owner_name",
    "TRC_BUSINESS_EMAIL": "business_email",
    "TRC_BUSINESS_PHONE": "business_phone",
    "TRC_BRAND_NAME": "brand_name",
    "TRC_SITE_DOMAIN": "site_domain",
    "TRC_NOTIFICATION_SENDER": "notification_sender",
    "TRC_CONFIRMATION_SENDER": "confirmation_sender",
    "TRC_USER_API_URL": "user_api_base_url",
    "TRC_USER_API_TOKEN": "user_api_token",
    "TRC_SESSION_SECRET": "session_secret",
    "TRC_SESSION_SECURE": "session_secure",
    "TRC_DB_PATH": "database_path",
    "TRC_LOGIN_PATH": "login_path",
    "TRC_UNAUTHORIZED_PATH": "unauthorized_path",
    "TRC_USER_LIST_PATH": "user_list_path",
}


def _parse_flag(key: str, value: object) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"{key} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the website services."""

    resend_api_key: Optional[str] = None
    recaptcha_secret_key: Optional[str] = None
    recaptcha_min_score: float = 0.5
    owner_name: str = "Karen"
    business_email: str = "karen@tabularasacoaching.com"
    business_phone: str = "(610) 228-4145"
    brand_name: str = "TRC Training Academy"
    site_domain: str = "trctrainingacademy.com"
    notification_sender: str = "TRC Contact Form <onboarding@resend.dev>"
    confirmation_sender: str = "TRC Training Academy <onboarding@resend.dev>"
    user_api_base_url: str = "http://127.0.0.1:8000/api"
    user_api_token: Optional[str] = None
    session_secret: Optional[str] = None
    session_secure: bool = False
    database_path: Optional[str] = None
    login_path: str = "/login"
    unauthorized_path: str = "/unauthorized"
    user_list_path: str = "/admin/users"

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "Settings":
        """Create :class:`Settings` from raw key/value data, ignoring unknown keys."""
        known = {item.name for item in fields(Settings)}
        values: Dict[str, object] = {}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            if key == "recaptcha_min_score":
                try:
                    value = float(value)  # type: ignore[arg-type]
                except (TypeError, ValueError) as exc:
                    raise ValueError(f"recaptcha_min_score must be a number, got {value!r}") from exc
            elif key == "session_secure":
                value = _parse_flag(key, value)
            else:
                value = str(value).strip()
                if not value:
                    continue
            values[key] = value
        return Settings(**values)  # type: ignore[arg-type]


def email_service_configured(settings: Settings) -> bool:
    """Return ``True`` when a usable Resend credential has been provided."""

    key = settings.resend_api_key
    return bool(key) and key != PLACEHOLDER_RESEND_API_KEY


def _read_config_file(config_path: Path) -> Dict[str, object]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    return dict(raw)


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from an optional YAML file, then apply environment overrides."""

    env = os.environ if environ is None else environ
    if config_path is None and env.get("TRC_CONFIG_PATH"):
        config_path = Path(env["TRC_CONFIG_PATH"]).expanduser()

    data: Dict[str, object] = {}
    if config_path is not None and config_path.exists():
        data.update(_read_config_file(config_path))

    for env_key, attribute in _ENVIRONMENT_KEYS.items():
        value = env.get(env_key)
        if value is not None and value.strip():
            data[attribute] = value

    return Settings.from_dict(data)


__all__ = [
    "PLACEHOLDER_RESEND_API_KEY",
    "Settings",
    "email_service_configured",
    "load_settings",
]
