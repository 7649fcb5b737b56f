"""
Package settings.

Uses Pydantic settings for environment-based configuration with sensible
defaults for interactive use. Every field can be overridden with an
``SBIC_``-prefixed environment variable (``SBIC_N_JOBS=8``) or a ``.env``
file in the working directory.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Defaults for fitting and scoring, loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SBIC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Scoring
    n_jobs: int = Field(default=1, ge=1)
    fit_timeout_seconds: Optional[float] = Field(default=None, gt=0)

    # EM defaults (latent classes, mixtures)
    default_n_init: int = Field(default=10, ge=1)
    default_max_iter: int = Field(default=1000, ge=1)
    default_tol: float = Field(default=1e-6, gt=0)

    # Factor analysis optimizer restarts
    fa_n_starts: int = Field(default=3, ge=1)

    # Base seed for fit routines that draw random starts
    random_seed: int = 42


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
