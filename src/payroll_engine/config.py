"""Configuration management for payroll engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    engine_version: str
    log_level: str
    rules_path: str | None
    default_rounding_mode: str
    default_rounding_precision: int
    max_workers: int

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            engine_version=os.getenv("ENGINE_VERSION", "1.0.0"),
            log_level=os.getenv("PAYROLL_LOG_LEVEL", "INFO").upper(),
            rules_path=os.getenv("PAYROLL_RULES_PATH") or None,
            default_rounding_mode=os.getenv("PAYROLL_DEFAULT_ROUNDING_MODE", "nearest"),
            default_rounding_precision=int(os.getenv("PAYROLL_DEFAULT_ROUNDING_PRECISION", "1")),
            max_workers=max(1, int(os.getenv("PAYROLL_MAX_WORKERS", "1"))),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
