import os
import logging
from pydantic import BaseModel, Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class ScheduleBlockSettings(BaseModel):
    # Buffer minutes blocked before/after an interview when the candidate has no override
    onsite_block_minutes: int = Field(default=int(os.getenv("ONSITE_BLOCK_MINUTES", "60")))
    online_block_minutes: int = Field(default=int(os.getenv("ONLINE_BLOCK_MINUTES", "30")))
    release_blocks_on_cancel: bool = Field(default=_env_flag("RELEASE_BLOCKS_ON_CANCEL", "true"))


class NotificationSettings(BaseModel):
    smtp_host: Optional[str] = Field(default=os.getenv("SMTP_HOST"))
    smtp_port: int = Field(default=int(os.getenv("SMTP_PORT", "465")))
    smtp_user: Optional[str] = Field(default=os.getenv("SMTP_USER"))
    smtp_password: Optional[str] = Field(default=os.getenv("SMTP_PASSWORD"))
    email_from: Optional[str] = Field(default=os.getenv("EMAIL_FROM"))
    slack_webhook_url: Optional[str] = Field(default=os.getenv("SLACK_WEBHOOK_URL"))
    slack_bot_token: Optional[str] = Field(default=os.getenv("SLACK_BOT_TOKEN"))
    http_timeout: int = 10


class Config(BaseModel):
    app_name: str = "Interview Scheduling Service"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    app_base_url: str = os.getenv("APP_BASE_URL", "http://localhost:3000")

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./database.db")

    # Staff API guard
    enable_api_key_security: bool = _env_flag("ENABLE_API_KEY_SECURITY", "false")
    staff_api_key: Optional[str] = os.getenv("STAFF_API_KEY")

    # Scheduling
    schedule_block: ScheduleBlockSettings = ScheduleBlockSettings()
    display_locale: str = os.getenv("DISPLAY_LOCALE", "en")

    # Rate limiting ("memory://" for a single instance, "redis://host:6379" when shared)
    rate_limit_storage_uri: str = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")

    notifications: NotificationSettings = NotificationSettings()

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"


settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    if settings.enable_api_key_security and not settings.staff_api_key:
        raise RuntimeError(
            "FATAL: STAFF_API_KEY must be set when ENABLE_API_KEY_SECURITY is enabled "
            "outside development."
        )
elif not settings.enable_api_key_security:
    _logger.warning("⚠ Staff endpoints are not protected by an API key. Only acceptable in development.")
