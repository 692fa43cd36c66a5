"""
SQL Generation Repository.

Handles LLM-based SQL generation:
- Prompt building with the allowed catalog, live schema summary and
  conversation context
- LLM interaction through LLMClient
- Keyword fallback when the LLM is unavailable

The returned SQL text is untrusted; the pipeline always runs
extract_sql and the validator on it.
"""

from typing import List, Optional, Sequence

from artevida.config import LLMConfig
from artevida.domain.errors import LLMError
from artevida.domain.pipeline import GenerationResult
from artevida.domain.requests import ConversationTurn
from artevida.infrastructure.llm_client import LLMClient
from artevida.repositories.catalog import AllowedObjectCatalog
from artevida.repositories.schema_cache import SchemaCache
from artevida.repositories.sql_fallback import KeywordSQLFallback
from artevida.utils.logging import get_module_logger
from artevida.utils.tracing import current_trace_id

logger = get_module_logger()


SYSTEM_PROMPT = (
    "Eres un analista experto en PostgreSQL para la base de eventos culturales de ArteVida. "
    "Conviertes preguntas en español en UNA SOLA consulta SELECT segura. "
    "Responde únicamente con un bloque ```sql ... ``` y nada más."
)

SQL_RULES = """## SQL RULES (MANDATORY)
1. SELECT only (no INSERT, UPDATE, DELETE, MERGE, CREATE, ALTER, DROP, TRUNCATE, GRANT)
2. Use ONLY the tables and views listed under ALLOWED OBJECTS; prefer the views
3. One statement, no semicolons inside, no SQL comments
4. Short consistent aliases on base tables: Evento e, Actividad a, Ubicacion u,
   Entrada en, Valoracion v, Actividad_Artista aa, Artista ar
5. To find events of ANY artist always join
   Evento e -> Actividad a -> Actividad_Artista aa -> Artista ar
   and filter with LOWER(ar.nombre) LIKE '%name%'
6. Text matching: LOWER(column) LIKE '%value%' (never = on names)
7. Add LIMIT {default_limit} when missing (except single-row aggregates)
8. PostgreSQL syntax: || for concatenation, NOW() for the current time,
   EXTRACT(YEAR FROM fecha_hora) for years
9. Upcoming events: filter with fecha_hora > NOW()
"""

CONTEXT_RULES = """## CONTEXT RULES
- Referential words ("esos", "estos", "de ahí", "those", "them") or bare attributes
  ("precios", "fechas") without a new name refer to the previous results:
  copy the WHERE conditions of the previous SQL
- If the question introduces a new concrete term, do NOT keep filters of previous
  queries (city, artist, date) unless the user repeats them
"""


class SQLGenerationRepository:
    """
    Repository for LLM-based SQL generation.

    Falls back to KeywordSQLFallback when the LLM client is not configured
    or a call fails.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        catalog: AllowedObjectCatalog,
        fallback: KeywordSQLFallback,
        config: LLMConfig,
        schema_cache: Optional[SchemaCache] = None,
        default_limit: Optional[int] = 200,
    ):
        self.llm_client = llm_client
        self.catalog = catalog
        self.fallback = fallback
        self.config = config
        self.schema_cache = schema_cache
        self.default_limit = default_limit

    async def generate(
        self,
        question: str,
        conversation_context: Sequence[ConversationTurn] = (),
        repair_hint: Optional[str] = None,
    ) -> GenerationResult:
        """
        Generate SQL text for a question.

        Args:
            question: Natural language question (Spanish or English)
            conversation_context: Previous turns, oldest first
            repair_hint: Validator feedback from the previous attempt

        Returns:
            GenerationResult with raw SQL text (GENERATOR or FALLBACK origin)
        """
        trace_id = current_trace_id()

        if not self.llm_client.is_connected():
            logger.info("LLM not available, using keyword fallback", trace_id=trace_id)
            return self.fallback.generate(question)

        prompt = await self._build_prompt(question, conversation_context, repair_hint)

        logger.debug(
            "Calling LLM for SQL generation",
            prompt_length=len(prompt),
            repair=repair_hint is not None,
            trace_id=trace_id,
        )

        try:
            response = await self.llm_client.generate(
                prompt=prompt,
                system_prompt=SYSTEM_PROMPT,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        except LLMError as e:
            logger.warning(
                "LLM generation failed, using keyword fallback",
                error=str(e),
                trace_id=trace_id,
            )
            return self.fallback.generate(question)

        return GenerationResult(
            sql_text=response,
            explanation=f'Consulta SQL generada para: "{question}"',
        )

    async def _build_prompt(
        self,
        question: str,
        conversation_context: Sequence[ConversationTurn],
        repair_hint: Optional[str],
    ) -> str:
        """Build the prompt for SQL generation."""
        sections: List[str] = [
            "Generate one PostgreSQL SELECT query for the user's question.",
            SQL_RULES.format(default_limit=self.default_limit or 200),
            f"## ALLOWED OBJECTS\n{self.catalog.describe()}",
        ]

        if self.schema_cache is not None:
            dynamic_schema = await self.schema_cache.get()
            if dynamic_schema:
                sections.append(f"## LIVE SCHEMA (columns and types)\n{dynamic_schema}")

        if conversation_context:
            sections.append(self._context_section(conversation_context))
            sections.append(CONTEXT_RULES)

        sections.append(f"## USER QUESTION\n{question}")

        if repair_hint:
            sections.append(
                "## PREVIOUS ATTEMPT FAILED - FIX REQUIRED\n"
                f"{repair_hint}\n\n"
                "Fix the SQL: SELECT only, allowed tables/views only, add LIMIT if missing."
            )

        sections.append("Respond with a single ```sql block only:")
        return "\n\n".join(sections)

    @staticmethod
    def _context_section(conversation_context: Sequence[ConversationTurn]) -> str:
        lines = ["## PREVIOUS CONVERSATION (oldest first)"]
        for index, turn in enumerate(conversation_context, start=1):
            lines.append(f'{index}. User asked: "{turn.question}"')
            if turn.sql:
                lines.append(f"   SQL executed: {turn.sql}")
            if turn.summary:
                lines.append(f"   Result: {turn.summary}")
        return "\n".join(lines)
