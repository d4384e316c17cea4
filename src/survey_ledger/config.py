"""
Runtime configuration using Pydantic Settings.

Values come from environment variables or a local ``.env`` file.
"""

from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the ledger, the reference provider and the HTTP API."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "survey-ledger"
    DEBUG: bool = False

    # Rating scale accepted by the validity proofs (inclusive)
    RATING_MIN: int = 1
    RATING_MAX: int = 5

    # Upper bound the oracle searches when recovering a plaintext sum
    MAX_DECRYPTABLE_SUM: int = 1_000_000

    # Identity the ledger uses when asking the provider for decryption rights
    LEDGER_IDENTITY: str = "survey-ledger"

    # When False anyone may request a reveal once the survey has ended
    REVEAL_REQUIRES_ADMIN: bool = False

    # Hex-encoded HMAC key for respondent tokens. Random per process when unset.
    TOKEN_KEY: str | None = None

    # Deliver oracle results right after a reveal request instead of waiting
    # for POST /oracle/process
    ORACLE_AUTO_PROCESS: bool = False

    # Shared secret the oracle presents on POST /oracle/callback. Callback disabled when unset.
    ORACLE_KEY: str | None = None

    # HTTP server / client
    SERVER_HOST: str = "127.0.0.1"
    SERVER_PORT: int = 5000
    SERVER_URL: str = "http://127.0.0.1:5000"

    @model_validator(mode="after")
    def validate_rating_scale(self) -> "Settings":
        """Rating bounds must describe a non-empty, non-negative range."""
        if self.RATING_MIN < 0 or self.RATING_MAX < self.RATING_MIN:
            raise ValueError("RATING_MIN..RATING_MAX must be a non-empty non-negative range")
        return self

    @property
    def rating_range(self) -> range:
        return range(self.RATING_MIN, self.RATING_MAX + 1)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
