from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_JWT_SECRET = "dev-only-insecure-secret"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Merendels"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "testing", "staging", "production"] = "development"
    log_level: str = "INFO"
    database_url: str = "postgresql+asyncpg://merendels:merendels@db:5432/merendels"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]

    # Tokens
    jwt_secret: str = _INSECURE_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "merendels-backend"
    token_ttl_hours: int = 24

    # Credentials
    bcrypt_rounds: int = 12
    login_lockout_window_minutes: int = 15
    login_lockout_threshold: int = 5

    # Transactions
    transaction_isolation_level: str | None = "SERIALIZABLE"
    transaction_timeout_seconds: float = 10.0
    transaction_retries: int = 3

    # Leave entitlement
    default_holiday_days: float = 22.0
    default_permit_days: float = 4.0
    deduct_balance_on_approval: bool = True

    def check_secrets(self) -> None:
        """Refuse to run outside development with the built-in signing secret."""
        if self.environment not in ("development", "testing") and self.jwt_secret == _INSECURE_JWT_SECRET:
            msg = "JWT_SECRET must be set for non-development environments"
            raise RuntimeError(msg)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
