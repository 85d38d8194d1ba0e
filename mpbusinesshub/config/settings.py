"""
MPBusinessHub configuration settings.

All values can be overridden through environment variables prefixed with
``MPBH_`` or a local ``.env`` file.
"""

from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration settings"""

    # Service
    service_name: str = "MPBusinessHub API"
    service_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./mpbusinesshub.sqlite"
    sql_echo: bool = False

    # Tokens
    secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    token_expiration_minutes: int = 1440
    password_reset_expire_minutes: int = 60
    email_verification_expire_minutes: int = 1440

    # Login lockout
    max_login_attempts: int = 5
    lockout_minutes: int = 10

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # Frontend (verification links, payment redirects)
    frontend_url: str = "http://localhost:5173"
    api_url: str = "http://localhost:8000"

    # PayFast
    payfast_merchant_id: str = "10000100"
    payfast_merchant_key: str = "46f0cd694581a"
    payfast_passphrase: Optional[str] = None
    payfast_test_mode: bool = True
    payfast_validate_ip: bool = True
    payfast_validate_server: bool = True
    payfast_valid_hosts: List[str] = [
        "197.97.145.144",
        "197.97.145.145",
        "197.97.145.146",
        "41.74.179.194",
        "127.0.0.1",
    ]
    payfast_timeout_seconds: float = 10.0

    # Billing
    currency: str = "ZAR"
    vat_rate: float = 0.15
    invoice_due_days: int = 7

    # Monitoring and observability
    sentry_dsn: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = "MPBH_"


# Global instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get configuration singleton"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
