"""
Conversation Service - entry point for answering one question.

This service is a THIN ORCHESTRATOR:
1. Checks the question and its conversation context
2. Hands a fresh PipelineState to the configured PipelineRunner
3. Enforces the overall request deadline
4. Returns an immutable ConversationResult

All stage logic lives in PipelineSteps and the repositories behind it.
"""

import asyncio
from typing import Optional, Sequence

from artevida.config import PipelineConfig
from artevida.domain.base_enums import DegradeReason
from artevida.domain.errors import InputValidationError
from artevida.domain.pipeline import ConversationResult, PipelineState
from artevida.domain.requests import ConversationTurn
from artevida.services.pipeline_runner import PipelineRunner
from artevida.utils.logging import get_module_logger
from artevida.utils.tracing import current_trace_id

logger = get_module_logger()


class ConversationService:
    """
    Main orchestrator for question answering.

    Ordinary failures (validation exhausted, generator failure, SQL errors,
    deadline) come back as degraded results. Query timeouts and database
    outages raise so the API can answer 408 / 503.
    """

    def __init__(self, runner: PipelineRunner, config: PipelineConfig):
        self.runner = runner
        self.config = config

        logger.info(
            "ConversationService initialized",
            runner=type(runner).__name__,
            max_repair_attempts=config.max_repair_attempts,
            request_deadline_seconds=config.request_deadline_seconds,
        )

    async def run(
        self,
        question: str,
        conversation_context: Optional[Sequence[ConversationTurn]] = None,
    ) -> ConversationResult:
        """
        Answer a question.

        Args:
            question: Natural language question (1-500 characters)
            conversation_context: Up to 4 previous turns, oldest first

        Returns:
            ConversationResult with SQL, rows and the natural-language answer

        Raises:
            InputValidationError: Empty or too long question, too many turns
            QueryTimeoutError: Query exceeded its time budget
            DatabaseUnavailableError: Database unreachable
        """
        trace_id = current_trace_id()
        context = list(conversation_context or [])
        self._check_input(question, context)

        state = PipelineState(question=question.strip(), conversation_context=context)

        logger.info(
            "Starting conversation pipeline",
            question_length=len(state.question),
            context_turns=len(context),
            trace_id=trace_id,
        )

        try:
            await asyncio.wait_for(
                self.runner.run(state),
                timeout=self.config.request_deadline_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Request deadline exceeded",
                deadline_seconds=self.config.request_deadline_seconds,
                stage=state.stage.value,
                trace_id=trace_id,
            )
            await self._finish_after_deadline(state)

        result = ConversationResult.from_state(state)
        logger.info(
            "Conversation pipeline complete",
            intent=result.intent.value,
            attempts=result.attempts,
            row_count=len(result.rows),
            degraded=result.degraded,
            trace_id=trace_id,
        )
        return result

    def _check_input(self, question: str, context: Sequence[ConversationTurn]) -> None:
        stripped = (question or "").strip()
        if not stripped:
            raise InputValidationError("La pregunta no puede estar vacía")
        if len(stripped) > self.config.max_question_length:
            raise InputValidationError(
                f"La pregunta supera los {self.config.max_question_length} caracteres",
                details={"length": len(stripped), "max_length": self.config.max_question_length},
            )
        if len(context) > self.config.max_context_turns:
            raise InputValidationError(
                f"El contexto admite como máximo {self.config.max_context_turns} turnos",
                details={"turns": len(context), "max_turns": self.config.max_context_turns},
            )

    async def _finish_after_deadline(self, state: PipelineState) -> None:
        steps = self.runner.steps
        state.degrade_reason = DegradeReason.DEADLINE
        state.natural_response = None
        await steps.degrade(state)
        await steps.summarize(state)
        await steps.finish(state)
