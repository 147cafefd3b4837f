from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Restaurant Security"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"
    log_json: bool = False

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./restaurant_security.db"

    # Security settings
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    service_api_key: str = ""

    # CORS settings
    allowed_origins: list[str] = ["*"]

    # Two-factor authentication
    totp_issuer: str = "RestaurantApp"
    totp_digest: str = "sha1"
    totp_valid_window: int = 1
    totp_encryption_key: str = ""  # Fernet key, empty keeps secrets in plaintext
    backup_code_count: int = 10
    backup_code_length: int = 8
    two_factor_max_failed_attempts: int = 5
    two_factor_lockout_minutes: int = 15

    # Sessions and risk scoring
    session_ttl_hours: int = 24
    max_active_sessions: int = 3
    risk_recommend_threshold: int = 15
    risk_require_threshold: int = 25
    risk_new_ip_weight: int = 10
    risk_new_device_weight: int = 10
    risk_failed_attempt_weight: int = 5
    risk_geo_weight: int = 20
    risk_failure_window_minutes: int = 60
    risk_history_limit: int = 50

    # Backups
    backup_scheduler_enabled: bool = True
    backup_check_interval_minutes: int = 60
    store_timeout_seconds: float = 10.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("totp_digest")
    @classmethod
    def _check_digest(cls, value: str) -> str:
        value = value.lower()
        if value not in ("sha1", "sha256"):
            raise ValueError("totp_digest must be 'sha1' or 'sha256'")
        return value


settings = Settings()
