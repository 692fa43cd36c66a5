"""Unit tests for result summaries and user-facing fallback messages."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from artevida.config import LLMConfig
from artevida.domain.base_enums import DegradeReason
from artevida.domain.errors import LLMError
from artevida.repositories.response_summary import (
    STYLE_GUIDE,
    ResponseSummaryRepository,
    count_based_message,
    sanitize_response,
)

ROWS = [{"evento": "Noche de Tango", "ciudad": "Madrid"}, {"evento": "Jazz Fest", "ciudad": "Sevilla"}]


@pytest.fixture
def llm_client():
    client = MagicMock()
    client.is_connected.return_value = True
    client.generate = AsyncMock(return_value="Hay 2 eventos: Noche de Tango en Madrid y Jazz Fest en Sevilla.")
    return client


@pytest.fixture
def summarizer(llm_client):
    return ResponseSummaryRepository(llm_client, LLMConfig(), sample_size=1, timeout_seconds=0.5)


class TestSanitize:

    def test_removes_farewells_and_emoji(self):
        assert sanitize_response("Hay 3 conciertos en Madrid 🎵. Espero que te sirva.") == "Hay 3 conciertos en Madrid"

    def test_removes_external_references(self):
        text = sanitize_response("Cuesta 20 euros, puedes consultar la página oficial")

        assert "oficial" not in text
        assert text.startswith("Cuesta 20 euros")

    def test_collapses_spaces(self):
        assert sanitize_response("  Hay   2   eventos  ") == "Hay 2 eventos"


class TestCountBasedMessage:

    @pytest.mark.parametrize("count,expected_start", [
        (0, 'No se encontraron resultados para "q"'),
        (1, 'Encontré exactamente 1 resultado para "q"'),
        (4, 'He encontrado 4 resultados para "q"'),
        (12, 'Se encontraron 12 resultados para tu consulta "q"'),
        (150, 'Tu consulta "q" devolvió 150 resultados'),
    ])
    def test_bands(self, count, expected_start):
        assert count_based_message("q", count).startswith(expected_start)


class TestSummarize:

    @pytest.mark.asyncio
    async def test_llm_summary(self, summarizer, llm_client):
        summary = await summarizer.summarize("¿Qué eventos hay?", ROWS)

        assert summary == "Hay 2 eventos: Noche de Tango en Madrid y Jazz Fest en Sevilla"
        kwargs = llm_client.generate.call_args.kwargs
        assert kwargs["system_prompt"] == STYLE_GUIDE
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 250

    @pytest.mark.asyncio
    async def test_prompt_carries_sample(self, summarizer, llm_client):
        await summarizer.summarize("¿Qué eventos hay?", ROWS)

        prompt = llm_client.generate.call_args.kwargs["prompt"]
        header, data = prompt.split("Muestra (primeros 1):\n")
        assert header == 'Pregunta: "¿Qué eventos hay?"\nFilas: 2\n'
        assert json.loads(data) == [ROWS[0]]

    @pytest.mark.asyncio
    async def test_unconfigured_llm_uses_count_message(self, summarizer, llm_client):
        llm_client.is_connected.return_value = False

        summary = await summarizer.summarize("¿Qué eventos hay?", ROWS)

        assert summary == sanitize_response(count_based_message("¿Qué eventos hay?", 2))
        llm_client.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_llm_error(self, summarizer, llm_client):
        llm_client.generate.side_effect = LLMError("boom")

        summary = await summarizer.summarize("¿Qué eventos hay?", ROWS)

        assert summary == 'Se encontraron 2 filas para "¿Qué eventos hay?". Los datos están disponibles en la tabla'

    @pytest.mark.asyncio
    async def test_llm_error_without_rows(self, summarizer, llm_client):
        llm_client.generate.side_effect = LLMError("boom")

        summary = await summarizer.summarize("¿Qué eventos hay?", [])

        assert summary.startswith('No se encontraron resultados para "¿Qué eventos hay?"')

    @pytest.mark.asyncio
    async def test_timeout(self, summarizer, llm_client):
        async def slow(**kwargs):
            await asyncio.sleep(5)

        llm_client.generate.side_effect = slow

        summary = await summarizer.summarize("¿Qué eventos hay?", ROWS[:1])

        assert summary.startswith('Se encontraron 1 fila para')

    @pytest.mark.asyncio
    async def test_empty_llm_answer_uses_count_message(self, summarizer, llm_client):
        llm_client.generate.return_value = "Saludos. 🎉"

        summary = await summarizer.summarize("¿Qué eventos hay?", ROWS)

        assert summary.startswith('He encontrado 2 resultados')


class TestDegradedMessage:

    @pytest.mark.parametrize("reason,fragment", [
        (DegradeReason.VALIDATION_EXHAUSTED, "No he podido construir una consulta segura"),
        (DegradeReason.GENERATION_FAILED, "No he podido generar una consulta"),
        (DegradeReason.SQL_ERROR, "no se pudo ejecutar en la base de datos"),
        (DegradeReason.DEADLINE, "ha tardado demasiado"),
        (None, "No he podido construir una consulta segura"),
    ])
    def test_messages(self, summarizer, reason, fragment):
        message = summarizer.degraded_message("¿Qué eventos hay?", reason)

        assert fragment in message
        assert '"¿Qué eventos hay?"' in message
