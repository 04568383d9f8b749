import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()

class NotificationSettings(BaseModel):
    # Soft-deleted rows older than this are hard-purged; 0 disables purging.
    retention_days: int = Field(default=int(os.getenv("NOTIFICATION_RETENTION_DAYS", "30")))
    create_rate_limit: str = Field(default=os.getenv("NOTIFICATION_CREATE_RATE_LIMIT", "30/minute"))
    page_size: int = Field(default=int(os.getenv("NOTIFICATION_PAGE_SIZE", "50")))
    max_page_size: int = 200
    # Present "missing" and "not yours" identically to callers
    conceal_existence: bool = Field(default=os.getenv("CONCEAL_EXISTENCE", "true").lower() == "true")

class Config(BaseModel):
    app_name: str = "Notification Store"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./notifications.db")

    # Auth
    secret_key: str = os.getenv("SECRET_KEY", "dev-only-insecure-key-DO-NOT-USE-IN-PROD")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    access_token_expire_minutes: int = 60 * 24  # 24 hours

    notifications: NotificationSettings = NotificationSettings()

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    # CORS: comma-separated origins loaded from env.
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

    rate_limit_enabled: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    if "dev-only" in settings.secret_key or "change-it" in settings.secret_key:
        raise RuntimeError(
            "FATAL: SECRET_KEY must be set for non-development environments. "
            "Set it as an environment variable."
        )
else:
    if "dev-only" in settings.secret_key:
        _logger.warning("Using insecure default SECRET_KEY, only acceptable in development.")
