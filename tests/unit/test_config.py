import pytest
from pydantic import ValidationError

from artevida.config import DatabaseConfig, Settings, get_settings
from artevida.config_constants import LogLevel, PipelineRunnerType


## test for import and loading settings
def test_get_settings():
    settings = get_settings()
    assert settings is not None
    assert settings.pipeline.max_repair_attempts == 2
    assert settings.pipeline.default_limit == 200
    assert settings.llm.temperature >= 0.0
    assert settings.app.log_level in LogLevel


## test for singleton
def test_get_settings_singleton():
    settings1 = get_settings()
    settings2 = get_settings()
    assert settings1 is settings2


## nested env vars use "__"
def test_nested_env_override(monkeypatch):
    monkeypatch.setenv("PIPELINE__MAX_REPAIR_ATTEMPTS", "4")
    monkeypatch.setenv("PIPELINE__RUNNER", "sequential")
    monkeypatch.setenv("SERVER__CORS_ORIGINS", '["http://localhost:3000"]')

    settings = Settings()

    assert settings.pipeline.max_repair_attempts == 4
    assert settings.pipeline.runner == PipelineRunnerType.SEQUENTIAL
    assert settings.server.cors_origins == ["http://localhost:3000"]


## database url is required
def test_database_url_required():
    with pytest.raises(ValidationError):
        DatabaseConfig()


## defaults without any optional env var
def test_defaults(monkeypatch):
    monkeypatch.delenv("LLM__OPENROUTER_API_KEY", raising=False)

    settings = Settings(database=DatabaseConfig(database_url="postgresql://test/test"))

    assert settings.llm.openrouter_api_key == ""
    assert settings.pipeline.forced_retry_limit == 50
    assert settings.pipeline.max_context_turns == 4
    assert settings.database.enforce_read_only_default is True
