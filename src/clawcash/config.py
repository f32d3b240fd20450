"""Runtime configuration loaded from CLAWCASH_* environment variables or .env."""

import logging
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from clawcash.core.mixer import DEFAULT_DENOMINATIONS, DEFAULT_FEE, MAX_POOLS
from clawcash.core.zero_hashes import MAX_TREE_DEPTH

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Claw Cash settings."""

    model_config = SettingsConfigDict(
        env_prefix="CLAWCASH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Protocol
    tree_depth: int = Field(default=20, gt=0, le=MAX_TREE_DEPTH)
    pool_denominations: List[int] = Field(default_factory=lambda: list(DEFAULT_DENOMINATIONS))
    fee_amount: int = Field(default=DEFAULT_FEE, ge=0)
    authority: str = "authority"
    treasury_account: str = "treasury"

    # Storage
    database_url: str = "sqlite:///clawcash.db"

    # Logging
    log_level: str = "INFO"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @field_validator("pool_denominations")
    @classmethod
    def validate_denominations(cls, v: List[int]) -> List[int]:
        if not v or len(v) > MAX_POOLS:
            raise ValueError(f"Between 1 and {MAX_POOLS} denominations are required")
        if any(d <= 0 for d in v):
            raise ValueError("Denominations must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings instance."""
    return Settings()


_logging_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once per process."""
    global _logging_configured
    if _logging_configured:
        return
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    _logging_configured = True
