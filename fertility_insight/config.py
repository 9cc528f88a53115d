"""
Engine Configuration
====================
Immutable settings for the inference pipeline and its result cache.
Values come from the environment (prefix ``FERTILITY_``) or a project-level
``.env`` file; every field has a documented default.
"""
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Paths ───────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# ── Load .env ───────────────────────────────────────────────────────────
load_dotenv(PROJECT_ROOT / ".env")

# ── Defaults ────────────────────────────────────────────────────────────
DEFAULT_CACHE_MAX_ENTRIES = 1000
DEFAULT_CACHE_MAX_BYTES = 50 * 1024 * 1024      # 50 MB
DEFAULT_CACHE_TTL_SECONDS = 30 * 60             # 30 minutes


class Settings(BaseSettings):
    """Pipeline configuration. Frozen once constructed."""

    model_config = SettingsConfigDict(
        env_prefix="FERTILITY_",
        extra="ignore",
        frozen=True,
    )

    # Result cache
    cache_enabled: bool = True
    cache_max_entries: int = Field(default=DEFAULT_CACHE_MAX_ENTRIES, gt=0)
    cache_max_bytes: int = Field(default=DEFAULT_CACHE_MAX_BYTES, gt=0)
    cache_default_ttl_seconds: float = Field(default=DEFAULT_CACHE_TTL_SECONDS, gt=0)

    # Orchestrator
    analysis_timeout_seconds: float = Field(default=10.0, gt=0)
    max_workers: int = Field(default=4, ge=1)
    cumulative_cycles: int = Field(default=3, ge=1, le=12)

    # Logging
    log_level: str = "INFO"
    log_file: str = ""

    # HTTP adapter
    api_title: str = "Fertility Clinical Inference API"
    api_version: str = "1.0.0"


settings = Settings()
