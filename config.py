import os
from dataclasses import dataclass
from datetime import timedelta, timezone
from pathlib import Path
from typing import Optional


BASE_DIR = Path(__file__).parent

DEFAULT_EMAILJS_API_URL = "https://api.emailjs.com/api/v1.0/email/send"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw.strip())


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    admin_username: str
    admin_password: str
    session_ttl_seconds: int
    officer_email_domain: str
    emailjs_service_id: Optional[str]
    emailjs_template_id: Optional[str]
    emailjs_public_key: Optional[str]
    emailjs_private_key: Optional[str]
    emailjs_api_url: str
    notify_channel: str
    relay_timeout_seconds: int
    utc_offset_minutes: int
    log_level: str

    @property
    def emailjs_configured(self) -> bool:
        return bool(self.emailjs_service_id and self.emailjs_template_id and self.emailjs_public_key)

    @property
    def display_timezone(self) -> timezone:
        return timezone(timedelta(minutes=self.utc_offset_minutes))


def load_settings() -> Settings:
    """
    Build settings from LANKASAFE_* / EMAILJS_* environment variables.
    Relay credentials are optional; without them notifications fall back to mailto links.
    """
    service_id = _env_str("EMAILJS_SERVICE_ID")
    template_id = _env_str("EMAILJS_TEMPLATE_ID")
    public_key = _env_str("EMAILJS_PUBLIC_KEY")

    channel = (_env_str("LANKASAFE_NOTIFY_CHANNEL") or "").lower()
    if channel not in ("relay", "mailto"):
        channel = "relay" if (service_id and template_id and public_key) else "mailto"

    return Settings(
        data_dir=Path(_env_str("LANKASAFE_DATA_DIR") or BASE_DIR / "database"),
        admin_username=_env_str("LANKASAFE_ADMIN_USERNAME") or "admin",
        admin_password=_env_str("LANKASAFE_ADMIN_PASSWORD") or "admin123",
        session_ttl_seconds=_env_int("LANKASAFE_SESSION_TTL_SECONDS", 12 * 60 * 60),
        officer_email_domain=_env_str("LANKASAFE_OFFICER_EMAIL_DOMAIN") or "mailinator.com",
        emailjs_service_id=service_id,
        emailjs_template_id=template_id,
        emailjs_public_key=public_key,
        emailjs_private_key=_env_str("EMAILJS_PRIVATE_KEY"),
        emailjs_api_url=_env_str("EMAILJS_API_URL") or DEFAULT_EMAILJS_API_URL,
        notify_channel=channel,
        relay_timeout_seconds=_env_int("LANKASAFE_RELAY_TIMEOUT_SECONDS", 10),
        utc_offset_minutes=_env_int("LANKASAFE_UTC_OFFSET_MINUTES", 330),
        log_level=(_env_str("LANKASAFE_LOG_LEVEL") or "INFO").upper(),
    )
