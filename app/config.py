"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. This pattern keeps secrets out of source code — the .env file is
gitignored, and .env.example provides a safe template for developers.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Process settings vs. business settings:
  Everything in this module is deployment configuration. The business rules
  an operator tunes at runtime (commission percentage, withdrawal window,
  registration bonus) live in the config_documents table instead and are
  read through app.services.config_service.

Usage:
    from app.config import settings
    print(settings.SECRET_KEY)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Rewards API.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign JWT tokens
      - DATA_ENCRYPTION_KEY: Fernet key for encrypting withdrawal details at rest
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Energy Rewards API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for MVP; swap to PostgreSQL connection string for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/rewards.db"

    # How many times a balance-mutating unit is re-run after a version conflict
    TRANSACTION_MAX_ATTEMPTS: int = 3

    # --- Authentication ---
    # REQUIRED: no default, must be set in the environment
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # --- Data Encryption ---
    # REQUIRED: Fernet key for encrypting payout account details at rest
    # Generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
    DATA_ENCRYPTION_KEY: str

    # --- Business defaults ---
    # Withdrawal hour/day windows are evaluated in this zone
    BUSINESS_TIMEZONE: str = "America/Bogota"
    # Used when the config:referrals document is missing or incomplete
    DEFAULT_REGISTRATION_BONUS: int = 5000
    DEFAULT_COMMISSION_PERCENTAGE: float = 10

    # --- CORS ---
    # Origins allowed to make cross-origin requests (frontend URLs)
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
