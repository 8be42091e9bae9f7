"""
Unit tests for environment-driven settings.
"""
import pytest

from caseflow.core import config as config_module
from caseflow.core.config import Settings, get_settings, reset_settings

ENV_VARS = [
    "LLM_API_BASE",
    "LLM_API_KEY",
    "OPENROUTER_API_KEY",
    "LLM_MODEL",
    "LLM_TIMEOUT_SECONDS",
    "LLM_MAX_RETRY_ATTEMPTS",
    "LLM_COST_PER_1K_TOKENS",
    "OPENROUTER_SITE_URL",
    "OPENROUTER_APP_NAME",
    "AI_FALLBACK_ENABLED",
    "AUDIT_MAX_RECORDS_PER_CASE",
    "AUDIT_MAX_CASES",
    "SUMMARY_VERSION_CACHE_SIZE",
    "LOG_LEVEL",
    "LOG_JSON",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        # setenv first so teardown also removes values loaded from .env files
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setattr(config_module, "ENV_PATH", tmp_path / ".env")
    reset_settings()
    yield monkeypatch
    reset_settings()


def test_defaults(clean_env):
    settings = Settings.from_env()

    assert settings.llm_api_base == "https://openrouter.ai/api/v1"
    assert settings.llm_api_key is None
    assert settings.llm_model == "x-ai/grok-beta"
    assert settings.llm_timeout_seconds == 30.0
    assert settings.llm_max_retry_attempts == 3
    assert settings.ai_fallback_enabled is True
    assert settings.audit_max_records_per_case == 100
    assert settings.audit_max_cases == 1000
    assert settings.summary_version_cache_size == 10000
    assert settings.log_json is True


def test_environment_overrides(clean_env):
    clean_env.setenv("LLM_API_KEY", "primary")
    clean_env.setenv("OPENROUTER_API_KEY", "secondary")
    clean_env.setenv("LLM_MODEL", "openai/gpt-4o-mini")
    clean_env.setenv("LLM_TIMEOUT_SECONDS", "12.5")
    clean_env.setenv("LLM_MAX_RETRY_ATTEMPTS", "5")
    clean_env.setenv("AI_FALLBACK_ENABLED", "false")
    clean_env.setenv("LOG_JSON", "0")

    settings = Settings.from_env()

    assert settings.llm_api_key == "primary"
    assert settings.llm_model == "openai/gpt-4o-mini"
    assert settings.llm_timeout_seconds == 12.5
    assert settings.llm_max_retry_attempts == 5
    assert settings.ai_fallback_enabled is False
    assert settings.log_json is False


def test_openrouter_key_is_accepted(clean_env):
    clean_env.setenv("OPENROUTER_API_KEY", "secondary")
    assert Settings.from_env().llm_api_key == "secondary"


def test_blank_boolean_uses_default(clean_env):
    clean_env.setenv("AI_FALLBACK_ENABLED", "  ")
    assert Settings.from_env().ai_fallback_enabled is True


def test_invalid_retry_count_rejected(clean_env):
    clean_env.setenv("LLM_MAX_RETRY_ATTEMPTS", "0")
    with pytest.raises(ValueError):
        Settings.from_env()


def test_audit_bounds_from_environment(clean_env):
    clean_env.setenv("AUDIT_MAX_RECORDS_PER_CASE", "20")
    clean_env.setenv("AUDIT_MAX_CASES", "50")
    clean_env.setenv("SUMMARY_VERSION_CACHE_SIZE", "75")

    settings = Settings.from_env()

    assert settings.audit_max_records_per_case == 20
    assert settings.audit_max_cases == 50
    assert settings.summary_version_cache_size == 75


def test_zero_audit_bound_rejected(clean_env):
    clean_env.setenv("AUDIT_MAX_CASES", "0")
    with pytest.raises(ValueError):
        Settings.from_env()


def test_get_settings_is_cached(clean_env):
    first = get_settings()
    clean_env.setenv("LLM_MODEL", "changed/model")

    assert get_settings() is first

    reset_settings()
    assert get_settings().llm_model == "changed/model"


def test_env_file_is_loaded(clean_env, tmp_path):
    (tmp_path / ".env").write_text("LLM_MODEL=from-dotenv/model\n")

    assert get_settings().llm_model == "from-dotenv/model"
