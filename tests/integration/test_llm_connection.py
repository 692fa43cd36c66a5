"""
Integration tests for LLMClient against OpenRouter.

Needs LLM__OPENROUTER_API_KEY; skipped when no key is configured.

Usage:
    pytest tests/integration/test_llm_connection.py -v --run-integration
"""

import pytest

from artevida.config import get_settings
from artevida.infrastructure.llm_client import LLMClient
from artevida.repositories.sql_extraction import extract_sql
from artevida.repositories.sql_fallback import KeywordSQLFallback
from artevida.repositories.sql_generation import SQLGenerationRepository


@pytest.fixture
def llm_config():
    """Get LLM configuration from settings."""
    config = get_settings().llm
    if not config.openrouter_api_key:
        pytest.skip("LLM__OPENROUTER_API_KEY not configured")
    return config


@pytest.fixture
async def llm_client(llm_config):
    """Create and connect LLM client."""
    client = LLMClient(llm_config)
    await client.connect()
    yield client
    if client.is_connected():
        await client.close()


@pytest.mark.integration
class TestLLMConnection:
    """Integration tests for LLM client connectivity."""

    @pytest.mark.asyncio
    async def test_simple_generation(self, llm_client):
        response = await llm_client.generate("Responde solo con la palabra: hola", max_tokens=10)
        assert response.strip()

    @pytest.mark.asyncio
    async def test_sql_generation_passes_validator(self, llm_client, llm_config, catalog, validator):
        repository = SQLGenerationRepository(llm_client, catalog, KeywordSQLFallback(), llm_config)

        result = await repository.generate("¿Cuáles son los próximos eventos?")

        assert validator.validate(extract_sql(result.sql_text)).valid
