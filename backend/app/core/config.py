import json
import os

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "GiftLink API"
    frontend_url: str = "http://localhost:3000"
    environment: str = "local"
    host: str = "0.0.0.0"
    port: int = 8000
    backend_cors_origins_raw: str = ""  # Comma-separated or JSON array

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "allow",
    }

    @property
    def backend_cors_origins(self) -> list[str]:
        """Parse CORS origins from raw string."""
        raw = os.getenv("BACKEND_CORS_ORIGINS", self.backend_cors_origins_raw).strip()
        if not raw:
            return ["http://localhost:3000", "http://127.0.0.1:3000"]
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        return [item.strip() for item in raw.split(",") if item.strip()]

    # Database: sqlite+aiosqlite:///./giftlink.db (dev) | postgresql+asyncpg://... (prod)
    database_url: str = "sqlite+aiosqlite:///./giftlink.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_recycle: int = 1800
    db_pool_timeout: int = 30

    # Tokens are issued by the identity provider; we only verify them.
    # SECURITY: override via JWT_SECRET_KEY env var
    jwt_secret_key: str = "CHANGE_ME"
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = None
    access_token_expire_minutes: int = 60

    default_currency: str = "EUR"
    share_token_bytes: int = 16

    rate_limit_enabled: bool = True
    rate_limit_reservation_requests: int = 20
    rate_limit_window_seconds: int = 60

    log_level: str = "INFO"
    log_file: str = ""


settings = Settings()
