"""
Response Summary Repository.

Turns query rows into a short Spanish answer. Uses the LLM with a fixed
style guide when available; otherwise, or when the call fails or times
out, builds a deterministic message from the row count. Messages for
degraded answers (no SQL could be validated, SQL error, deadline) come
from here as well so all user-facing wording lives in one place.
"""

import asyncio
import json
import re
from typing import Any, Dict, Optional, Sequence

from artevida.config import LLMConfig
from artevida.domain.base_enums import DegradeReason
from artevida.domain.errors import LLMError
from artevida.infrastructure.llm_client import LLMClient
from artevida.utils.logging import get_module_logger
from artevida.utils.text_utils import sample_rows
from artevida.utils.tracing import current_trace_id

logger = get_module_logger()


STYLE_GUIDE = """Eres un analista de datos de eventos culturales de ArteVida.
REGLAS OBLIGATORIAS:
- Responde SOLO con datos concretos de la consulta SQL ejecutada
- NO menciones plataformas externas, páginas oficiales ni venta de boletos
- NO te despidas ("¡Hasta luego!", "Espero que...", "¡Saludos!")
- Máximo 120-160 palabras, directo al grano
- Si NO HAY DATOS: "No se encontraron [eventos/artistas/etc.] con esos criterios en nuestra base de datos"
- Si HAY DATOS: presenta los resultados específicos encontrados
- Si hay lista corta (10 filas o menos): menciona los elementos principales
- Si hay lista larga: resume el patrón con 1-2 ejemplos específicos
- Termina con una sugerencia práctica sobre los datos (prueba a buscar por ciudad, fecha...)
- USA SOLO información de la base de datos consultada"""

# Farewells and references to external sites the answer must not contain
GENERIC_PHRASES = re.compile(
    r"(hasta luego|espero que te sirva|quedo a tu disposición|saludos|espero haberte ayudado|"
    r"que tengas|disfruta|visitar plataformas|página oficial|venta de boletos|"
    r"plataformas de venta|consultar.*oficial)",
    re.IGNORECASE,
)
EMOJI = re.compile("[\U0001F300-\U0001FAFF]")
REPEATED_SPACES = re.compile(r"\s{2,}")
EDGE_PUNCTUATION = re.compile(r"^[.,\s]+|[.,\s]+$")


def sanitize_response(text: str) -> str:
    """
    Remove generic phrases, emoji, repeated spaces and stray edge punctuation.

    Example:
        >>> sanitize_response("Hay 3 conciertos en Madrid 🎵. Espero que te sirva.")
        'Hay 3 conciertos en Madrid'
    """
    text = GENERIC_PHRASES.sub("", text)
    text = EMOJI.sub("", text)
    text = REPEATED_SPACES.sub(" ", text)
    text = EDGE_PUNCTUATION.sub("", text)
    return text.strip()


def human_rows(count: int) -> str:
    return "1 fila" if count == 1 else f"{count} filas"


def count_based_message(question: str, row_count: int) -> str:
    """Deterministic answer used when no LLM summary is available."""
    if row_count == 0:
        return (
            f'No se encontraron resultados para "{question}". '
            "Intenta reformular tu pregunta con términos más generales."
        )
    if row_count == 1:
        return (
            f'Encontré exactamente 1 resultado para "{question}". '
            "Los detalles están disponibles en la tabla de resultados."
        )
    if row_count <= 5:
        return (
            f'He encontrado {row_count} resultados para "{question}". '
            "Puedes ver los detalles completos en la sección de resultados."
        )
    if row_count <= 20:
        return (
            f'Se encontraron {row_count} resultados para tu consulta "{question}". '
            "La información está organizada en la tabla de resultados."
        )
    return (
        f'Tu consulta "{question}" devolvió {row_count} resultados. '
        "Prueba a filtrar por ciudad, fecha o tipo de actividad para acotar la búsqueda."
    )


DEGRADED_MESSAGES: Dict[DegradeReason, str] = {
    DegradeReason.VALIDATION_EXHAUSTED: (
        'No he podido construir una consulta segura para "{question}". '
        "Prueba a reformularla mencionando el evento, artista, ciudad o fecha que te interesa."
    ),
    DegradeReason.GENERATION_FAILED: (
        'No he podido generar una consulta para "{question}" en este momento. '
        "Inténtalo de nuevo en unos segundos."
    ),
    DegradeReason.SQL_ERROR: (
        'La consulta para "{question}" no se pudo ejecutar en la base de datos. '
        "Prueba a formular la pregunta de otra manera."
    ),
    DegradeReason.DEADLINE: (
        'La consulta "{question}" ha tardado demasiado y se ha cancelado. '
        "Prueba con una pregunta más concreta."
    ),
}


class ResponseSummaryRepository:
    """
    Natural-language summaries of query results.

    Args:
        llm_client: Shared LLM client (may be unconfigured)
        config: LLM settings (summary temperature and token budget)
        sample_size: Rows sent to the LLM
        timeout_seconds: Upper bound for one summary call
    """

    def __init__(
        self,
        llm_client: LLMClient,
        config: LLMConfig,
        sample_size: int = 20,
        timeout_seconds: float = 20.0,
    ):
        self.llm_client = llm_client
        self.config = config
        self.sample_size = sample_size
        self.timeout_seconds = timeout_seconds

    async def summarize(self, question: str, rows: Sequence[Dict[str, Any]]) -> str:
        """Summarize rows for the user; never raises for LLM problems."""
        trace_id = current_trace_id()

        if not self.llm_client.is_connected():
            return sanitize_response(count_based_message(question, len(rows)))

        try:
            response = await asyncio.wait_for(
                self.llm_client.generate(
                    prompt=self._build_prompt(question, rows),
                    system_prompt=STYLE_GUIDE,
                    temperature=self.config.summary_temperature,
                    max_tokens=self.config.summary_max_tokens,
                ),
                timeout=self.timeout_seconds,
            )
        except (LLMError, asyncio.TimeoutError) as e:
            logger.warning(
                "Summary generation failed, using count-based message",
                error=str(e) or type(e).__name__,
                row_count=len(rows),
                trace_id=trace_id,
            )
            if not rows:
                return sanitize_response(count_based_message(question, 0))
            return sanitize_response(
                f'Se encontraron {human_rows(len(rows))} para "{question}". '
                "Los datos están disponibles en la tabla."
            )

        summary = sanitize_response(response)
        logger.info("Summary generated", response_length=len(summary), trace_id=trace_id)
        return summary or sanitize_response(count_based_message(question, len(rows)))

    def degraded_message(self, question: str, reason: Optional[DegradeReason]) -> str:
        """User-facing message for an answer without rows."""
        template = DEGRADED_MESSAGES.get(reason or DegradeReason.VALIDATION_EXHAUSTED)
        return template.format(question=question)

    def _build_prompt(self, question: str, rows: Sequence[Dict[str, Any]]) -> str:
        sample = sample_rows(rows, self.sample_size)
        label = f"Muestra (primeros {self.sample_size}):" if len(rows) > self.sample_size else "Datos:"
        data = json.dumps(sample, ensure_ascii=False, indent=2, default=str)
        return f'Pregunta: "{question}"\nFilas: {len(rows)}\n{label}\n{data}'
