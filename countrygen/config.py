from typing import Optional
from urllib.parse import urlparse

from pydantic import field_validator
from pydantic_settings import BaseSettings

from .errors import ConfigError

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseSettings):
    # bot credentials (used only for the one-shot admin calls at startup)
    BOT_KEY: str = ""
    APPLICATION_ID: str = ""

    # hex Ed25519 verifying key; when empty it is fetched from the platform
    PUBLIC_KEY: str = ""

    # when set, registered as the interactions endpoint in the background
    INTERACTION_ENDPOINTS_URL: Optional[str] = None

    DISCORD_API_URL: str = "https://discord.com/api/v10"
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # background endpoint registration
    REGISTRATION_MAX_ATTEMPTS: int = 5
    REGISTRATION_BACKOFF_SECONDS: float = 2.0
    # wait before the first attempt so the listener is bound when the
    # platform sends its validating PING
    REGISTRATION_INITIAL_DELAY_SECONDS: float = 1.0

    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # empty disables the audit log
    AUDIT_LOG_PATH: str = ""

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

    @field_validator("BOT_KEY", "APPLICATION_ID")
    @classmethod
    def strip_credentials(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("PUBLIC_KEY")
    @classmethod
    def normalize_public_key(cls, v: str) -> str:
        # hex is case-insensitive; keep one canonical form for logs/comparisons
        return (v or "").strip().lower()

    @field_validator("INTERACTION_ENDPOINTS_URL")
    @classmethod
    def validate_endpoint_url(cls, v: Optional[str]) -> Optional[str]:
        """
        The platform only accepts absolute https URLs in production, but
        http is allowed so a local tunnel can be used during development.
        An empty value means "do not register".
        """
        v = (v or "").strip()
        if not v:
            return None

        p = urlparse(v)
        if p.scheme not in ("http", "https"):
            raise ValueError("INTERACTION_ENDPOINTS_URL must start with http:// or https://")
        if not p.hostname:
            raise ValueError("INTERACTION_ENDPOINTS_URL must include a hostname")
        return v

    @field_validator("DISCORD_API_URL")
    @classmethod
    def normalize_api_url(cls, v: str) -> str:
        return (v or "").strip().rstrip("/")

    @field_validator("REGISTRATION_MAX_ATTEMPTS")
    @classmethod
    def at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("REGISTRATION_MAX_ATTEMPTS must be >= 1")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        v = (v or "").strip().upper() or "INFO"
        # names understood by both logging.basicConfig and uvicorn
        if v not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return v

    def require_credentials(self) -> None:
        """Fail fast when the startup admin calls cannot be made."""
        missing = [k for k in ("BOT_KEY", "APPLICATION_ID") if not getattr(self, k)]
        if missing:
            raise ConfigError(f"missing required settings: {', '.join(missing)}")


settings = Settings()
