"""
Environment-driven configuration.

Values are read from the process environment, optionally seeded from a
``.env`` file at the repository root. Settings are resolved once and cached;
tests can call ``reset_settings()`` after patching the environment.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from caseflow.core.logging import get_logger

logger = get_logger(__name__)

ENV_PATH = Path(__file__).parent.parent.parent.parent / ".env"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw and raw.strip() else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw and raw.strip() else default


class Settings(BaseModel):
    """Resolved runtime configuration for the AI orchestration service."""

    llm_api_base: str = "https://openrouter.ai/api/v1"
    llm_api_key: Optional[str] = None
    llm_model: str = "x-ai/grok-beta"
    llm_timeout_seconds: float = Field(30.0, gt=0)
    llm_max_retry_attempts: int = Field(3, ge=1)
    llm_cost_per_1k_tokens: float = Field(0.0, ge=0)
    site_url: str = "http://localhost:3001"
    app_name: str = "caseflow-ai"

    # Failures degrade to locally synthesized results unless this is off.
    ai_fallback_enabled: bool = True

    # Bounds for the in-process audit store and summary version tracking.
    audit_max_records_per_case: int = Field(100, ge=1)
    audit_max_cases: int = Field(1000, ge=1)
    summary_version_cache_size: int = Field(10000, ge=1)

    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            llm_api_base=os.getenv("LLM_API_BASE", "https://openrouter.ai/api/v1"),
            llm_api_key=os.getenv("LLM_API_KEY") or os.getenv("OPENROUTER_API_KEY"),
            llm_model=os.getenv("LLM_MODEL", "x-ai/grok-beta"),
            llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 30.0),
            llm_max_retry_attempts=_env_int("LLM_MAX_RETRY_ATTEMPTS", 3),
            llm_cost_per_1k_tokens=_env_float("LLM_COST_PER_1K_TOKENS", 0.0),
            site_url=os.getenv("OPENROUTER_SITE_URL", "http://localhost:3001"),
            app_name=os.getenv("OPENROUTER_APP_NAME", "caseflow-ai"),
            ai_fallback_enabled=_env_bool("AI_FALLBACK_ENABLED", True),
            audit_max_records_per_case=_env_int("AUDIT_MAX_RECORDS_PER_CASE", 100),
            audit_max_cases=_env_int("AUDIT_MAX_CASES", 1000),
            summary_version_cache_size=_env_int("SUMMARY_VERSION_CACHE_SIZE", 10000),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=_env_bool("LOG_JSON", True),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Load settings on first use (including the optional .env file)."""
    global _settings
    if _settings is None:
        if ENV_PATH.exists():
            load_dotenv(ENV_PATH)
            logger.info("env_loaded", env_path=str(ENV_PATH))
        _settings = Settings.from_env()
        if not _settings.llm_api_key:
            logger.warning(
                "llm_api_key_missing",
                message="Set LLM_API_KEY or OPENROUTER_API_KEY; AI operations will use fallback results.",
            )
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
