"""
Pipeline steps shared by every pipeline runner.

Each step takes the PipelineState, delegates the actual work to a
repository and records its stage transition. Route methods decide the
next step from the state alone, so the sequential loop and the LangGraph
state machine can drive the very same steps.
"""

import asyncio
from typing import Optional

from artevida.config import PipelineConfig
from artevida.domain.base_enums import DegradeReason, Intent, PipelineStage, SqlOrigin
from artevida.domain.errors import ExecutionError, GenerationFailure, SqlExecutionError
from artevida.domain.pipeline import PipelineState
from artevida.domain.protocols import QueryExecutor, Summarizer, TextGenerator
from artevida.repositories.heuristics import HeuristicResolver
from artevida.repositories.intent import classify_intent
from artevida.repositories.sql_extraction import extract_sql
from artevida.repositories.sql_validation import SQLValidationRepository, has_top_level_limit
from artevida.utils.logging import get_module_logger
from artevida.utils.tracing import current_trace_id

logger = get_module_logger()


# Route labels
ROUTE_CONVERSATIONAL = "conversational"
ROUTE_DATA = "data"
ROUTE_GENERATE = "generate"
ROUTE_VALIDATE = "validate"
ROUTE_EXECUTE = "execute"
ROUTE_REPAIR = "repair"
ROUTE_DEGRADE = "degrade"
ROUTE_SUMMARIZE = "summarize"

REPAIR_RULES = "Reglas: SOLO SELECT, solo tablas/vistas permitidas, añade LIMIT si falta."


class PipelineSteps:
    """
    The individual stages of answering one question.

    Invariants kept here:
        - sql_final is only set from an accepted ValidationResult
        - rows are only set after sql_final executed
        - attempts never exceeds max_repair_attempts
    """

    def __init__(
        self,
        heuristics: HeuristicResolver,
        generator: TextGenerator,
        validator: SQLValidationRepository,
        executor: QueryExecutor,
        summarizer: Summarizer,
        config: PipelineConfig,
    ):
        self.heuristics = heuristics
        self.generator = generator
        self.validator = validator
        self.executor = executor
        self.summarizer = summarizer
        self.config = config

    # =========================================================================
    # Steps
    # =========================================================================

    async def start(self, state: PipelineState) -> None:
        state.advance(PipelineStage.START)

    async def detect_intent(self, state: PipelineState) -> None:
        state.intent = classify_intent(state.question)
        logger.info("Intent detected", intent=state.intent.value, trace_id=current_trace_id())
        state.advance(PipelineStage.INTENT_DETECTED)

    async def reply_small_talk(self, state: PipelineState) -> None:
        state.rows = []
        state.explanation = "Saludo: no se genera SQL"
        state.natural_response = self.config.small_talk_reply
        state.advance(PipelineStage.CONVERSATIONAL)

    async def resolve_heuristics(self, state: PipelineState) -> None:
        result = await self.heuristics.resolve(state.question, state.conversation_context)
        if result is not None:
            state.sql_draft = result.sql
            state.sql_origin = SqlOrigin.HEURISTIC
            state.explanation = result.explanation
        state.advance(PipelineStage.HEURISTIC_ATTEMPTED)

    async def generate(self, state: PipelineState) -> None:
        """Ask the text generator for SQL; failures leave an empty draft for the validator."""
        trace_id = current_trace_id()
        repair_hint = self._repair_hint(state) if state.attempts > 0 else None

        try:
            result = await asyncio.wait_for(
                self.generator.generate(state.question, state.conversation_context, repair_hint),
                timeout=self.config.generation_timeout_seconds,
            )
            sql = extract_sql(result.sql_text)
            if not sql:
                raise GenerationFailure("Generator returned no SQL")
        except (asyncio.TimeoutError, GenerationFailure) as e:
            logger.warning(
                "SQL generation failed",
                error=str(e) or type(e).__name__,
                attempt=state.attempts,
                trace_id=trace_id,
            )
            state.sql_draft = None
            state.sql_origin = SqlOrigin.GENERATOR
            state.degrade_reason = DegradeReason.GENERATION_FAILED
        else:
            state.sql_draft = sql
            state.sql_origin = result.origin
            state.explanation = result.explanation
            state.degrade_reason = None

        state.advance(PipelineStage.GENERATED)

    async def validate(self, state: PipelineState) -> None:
        result = self.validator.validate(state.sql_draft)
        if result.valid:
            state.sql_final = result.sanitized_sql
            state.validation_error = None
            state.validation_error_kind = None
        else:
            state.validation_error = result.message
            state.validation_error_kind = result.error_kind
        state.advance(PipelineStage.VALIDATED)

    async def repair(self, state: PipelineState) -> None:
        state.attempts += 1
        logger.info(
            "Repairing SQL",
            attempt=state.attempts,
            max_attempts=self.config.max_repair_attempts,
            error_kind=state.validation_error_kind.value if state.validation_error_kind else None,
            trace_id=current_trace_id(),
        )
        state.advance(PipelineStage.REPAIRING)

    async def execute(self, state: PipelineState) -> None:
        """
        Run sql_final read-only.

        A failed statement without a top-level LIMIT is retried exactly once
        with the forced retry limit, after re-validating the forced text.
        SQL errors end in a degraded answer; timeouts and connection failures
        propagate.
        """
        sql = state.sql_final or ""
        try:
            state.rows = await self.executor.execute(sql)
        except ExecutionError as e:
            forced_sql = self._forced_limit_sql(sql)
            if forced_sql is None:
                self._handle_execution_error(state, e)
                return

            logger.warning(
                "Execution failed, retrying with forced LIMIT",
                error=e.message,
                forced_limit=self.config.forced_retry_limit,
                trace_id=current_trace_id(),
            )
            try:
                state.rows = await self.executor.execute(forced_sql)
            except ExecutionError as retry_error:
                self._handle_execution_error(state, retry_error)
                return
            state.sql_final = forced_sql

        state.advance(PipelineStage.EXECUTED)

    async def degrade(self, state: PipelineState) -> None:
        state.degraded = True
        state.rows = []
        if state.degrade_reason is None:
            state.degrade_reason = DegradeReason.VALIDATION_EXHAUSTED
        state.natural_response = self.summarizer.degraded_message(state.question, state.degrade_reason)
        logger.warning(
            "Answer degraded",
            reason=state.degrade_reason.value,
            attempts=state.attempts,
            validation_error=state.validation_error,
            trace_id=current_trace_id(),
        )
        state.advance(PipelineStage.DEGRADED)

    async def summarize(self, state: PipelineState) -> None:
        if state.natural_response is None:
            state.natural_response = await self.summarizer.summarize(state.question, state.rows or [])
        state.advance(PipelineStage.SUMMARIZED)

    async def finish(self, state: PipelineState) -> None:
        state.advance(PipelineStage.DONE)

    # =========================================================================
    # Routing
    # =========================================================================

    def route_after_intent(self, state: PipelineState) -> str:
        return ROUTE_CONVERSATIONAL if state.intent == Intent.CONVERSATIONAL else ROUTE_DATA

    def route_after_heuristics(self, state: PipelineState) -> str:
        return ROUTE_VALIDATE if state.sql_draft else ROUTE_GENERATE

    def route_after_validation(self, state: PipelineState) -> str:
        if state.sql_final is not None:
            return ROUTE_EXECUTE
        if state.attempts < self.config.max_repair_attempts:
            return ROUTE_REPAIR
        return ROUTE_DEGRADE

    def route_after_execution(self, state: PipelineState) -> str:
        return ROUTE_DEGRADE if state.rows is None else ROUTE_SUMMARIZE

    # =========================================================================
    # Helpers
    # =========================================================================

    def _repair_hint(self, state: PipelineState) -> str:
        kind = state.validation_error_kind.value if state.validation_error_kind else "error"
        hint = f"{state.question} | Corrige según el validador: {kind}: {state.validation_error}. {REPAIR_RULES}"
        if state.sql_draft:
            hint = f"Previous SQL: {state.sql_draft}\n{hint}"
        return hint

    def _forced_limit_sql(self, sql: str) -> Optional[str]:
        if not sql or has_top_level_limit(sql):
            return None
        result = self.validator.validate(f"{sql} LIMIT {self.config.forced_retry_limit}")
        return result.sanitized_sql if result.valid else None

    @staticmethod
    def _handle_execution_error(state: PipelineState, error: ExecutionError) -> None:
        if not isinstance(error, SqlExecutionError):
            raise error
        logger.warning("SQL execution error, degrading", error=error.message, trace_id=current_trace_id())
        state.degrade_reason = DegradeReason.SQL_ERROR
        state.rows = None
