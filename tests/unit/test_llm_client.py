from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from artevida.config import LLMConfig
from artevida.domain.errors import LLMError
from artevida.infrastructure.llm_client import LLMClient


@pytest.fixture
def offline_client():
    return LLMClient(LLMConfig(openrouter_api_key=""))


@pytest.fixture
def client():
    client = LLMClient(LLMConfig(openrouter_api_key="sk-test", max_input_chars=100))
    llm = MagicMock()
    llm.ainvoke = AsyncMock(return_value=SimpleNamespace(content="SELECT 1"))
    llm.bind.return_value = llm
    client._llm = llm
    client._is_connected = True
    return client


class TestOfflineClient:

    @pytest.mark.asyncio
    async def test_connect_without_key_stays_offline(self, offline_client):
        await offline_client.connect()

        assert not offline_client.is_configured()
        assert not offline_client.is_connected()

    @pytest.mark.asyncio
    async def test_generate_requires_connection(self, offline_client):
        with pytest.raises(LLMError, match="not connected"):
            await offline_client.generate("hola")


class TestConnectedClient:

    @pytest.mark.asyncio
    async def test_connect_builds_chat_model(self):
        client = LLMClient(LLMConfig(openrouter_api_key="sk-test"))

        await client.connect()

        assert client.is_connected()
        await client.close()
        assert not client.is_connected()

    @pytest.mark.asyncio
    async def test_generate(self, client):
        text = await client.generate("¿Qué eventos hay?", system_prompt="Eres un analista")

        assert text == "SELECT 1"
        messages = client._llm.ainvoke.call_args.args[0]
        assert [m.content for m in messages] == ["Eres un analista", "¿Qué eventos hay?"]

    @pytest.mark.asyncio
    async def test_overrides_are_bound(self, client):
        await client.generate("hola", temperature=0.2, max_tokens=50)

        client._llm.bind.assert_called_once_with(temperature=0.2, max_completion_tokens=50)

    @pytest.mark.asyncio
    async def test_input_too_large(self, client):
        with pytest.raises(LLMError):
            await client.generate("x" * 200)

        client._llm.ainvoke.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_response(self, client):
        client._llm.ainvoke.return_value = SimpleNamespace(content="")

        with pytest.raises(LLMError, match="empty"):
            await client.generate("hola")

    @pytest.mark.asyncio
    async def test_api_failure(self, client):
        client._llm.ainvoke.side_effect = RuntimeError("429 Too Many Requests")

        with pytest.raises(LLMError, match="429"):
            await client.generate("hola")
