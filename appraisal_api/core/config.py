import os
import logging
from pydantic import BaseModel, Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()

class PushSettings(BaseModel):
    onesignal_app_id: Optional[str] = Field(default=os.getenv("ONESIGNAL_APP_ID"))
    onesignal_rest_api_key: Optional[str] = Field(default=os.getenv("ONESIGNAL_REST_API_KEY"))
    api_url: str = Field(default=os.getenv("ONESIGNAL_API_URL", "https://onesignal.com/api/v1/notifications"))
    timeout_seconds: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.onesignal_app_id and self.onesignal_rest_api_key)

class Config(BaseModel):
    app_name: str = "Appraisal Platform"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./appraisal.db")

    # Auth
    secret_key: str = os.getenv("SECRET_KEY", "dev-only-insecure-key-DO-NOT-USE-IN-PROD")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))
    refresh_token_expire_days: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # CORS: comma-separated origins loaded from env.
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:5173,http://localhost:8080,"
                "http://127.0.0.1:5173,http://127.0.0.1:8080",
            ).split(",")
            if o.strip()
        ]
    )

    rate_limit_login: str = os.getenv("RATE_LIMIT_LOGIN", "20/minute")

    # Reads in the analytics path are retried; writes never are
    read_retry_attempts: int = 2
    read_retry_delay_seconds: float = float(os.getenv("READ_RETRY_DELAY_SECONDS", "1.0"))

    # Push delivery (OneSignal)
    push: PushSettings = PushSettings()

    # Feature Flags
    enable_analytics: bool = os.getenv("ANALYTICS_ENABLED", "true").lower() == "true"

settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    if "dev-only" in settings.secret_key or "change-it" in settings.secret_key:
        raise RuntimeError(
            "FATAL: SECRET_KEY must be set for non-development environments. "
            "Set it as an environment variable."
        )
elif "dev-only" in settings.secret_key:
    _logger.warning("Using insecure default SECRET_KEY, only acceptable in development.")
