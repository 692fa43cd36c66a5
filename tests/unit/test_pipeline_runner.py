"""
Unit tests for the pipeline steps and both pipeline runners.

Every scenario runs against the sequential loop and the LangGraph state
machine; both must record the same stage transitions.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from artevida.config import PipelineConfig
from artevida.config_constants import PipelineRunnerType
from artevida.domain.base_enums import DegradeReason, Intent, PipelineStage, SqlOrigin
from artevida.domain.errors import QueryTimeoutError, SqlExecutionError
from artevida.domain.pipeline import GenerationResult, HeuristicResult, PipelineState
from artevida.repositories.sql_validation import SQLValidationRepository
from artevida.services.pipeline_runner import (
    GraphPipelineRunner,
    SequentialPipelineRunner,
    create_pipeline_runner,
)
from artevida.services.pipeline_steps import PipelineSteps

ROWS = [{"evento_nombre": "Noche de Tango"}]
GOOD_OUTPUT = "```sql\nSELECT * FROM vw_eventos_proximos\n```"
BAD_OUTPUT = "```sql\nSELECT * FROM usuarios\n```"

RUNNERS = [SequentialPipelineRunner, GraphPipelineRunner]


class Collaborators:
    """Mocks for everything PipelineSteps delegates to."""

    def __init__(self):
        self.heuristics = MagicMock()
        self.heuristics.resolve = AsyncMock(return_value=None)

        self.generator = MagicMock()
        self.generator.generate = AsyncMock(return_value=GenerationResult(GOOD_OUTPUT, "generada"))

        self.executor = MagicMock()
        self.executor.execute = AsyncMock(return_value=ROWS)

        self.summarizer = MagicMock()
        self.summarizer.summarize = AsyncMock(return_value="Hay un evento")
        self.summarizer.degraded_message = MagicMock(return_value="No he podido responder")

    def steps(self, catalog, config=None, default_limit=200):
        config = config or PipelineConfig(default_limit=default_limit)
        validator = SQLValidationRepository(catalog, default_limit=default_limit)
        return PipelineSteps(
            heuristics=self.heuristics,
            generator=self.generator,
            validator=validator,
            executor=self.executor,
            summarizer=self.summarizer,
            config=config,
        )


@pytest.fixture
def mocks():
    return Collaborators()


async def _run(runner_class, steps, question="¿Qué eventos hay próximamente?"):
    return await runner_class(steps).run(PipelineState(question=question))


@pytest.mark.parametrize("runner_class", RUNNERS)
class TestHappyPath:

    @pytest.mark.asyncio
    async def test_generated_sql_is_validated_and_executed(self, runner_class, mocks, catalog):
        state = await _run(runner_class, mocks.steps(catalog))

        assert state.stages == [
            PipelineStage.START,
            PipelineStage.INTENT_DETECTED,
            PipelineStage.HEURISTIC_ATTEMPTED,
            PipelineStage.GENERATED,
            PipelineStage.VALIDATED,
            PipelineStage.EXECUTED,
            PipelineStage.SUMMARIZED,
            PipelineStage.DONE,
        ]
        assert state.sql_final == "SELECT * FROM vw_eventos_proximos LIMIT 200"
        assert state.sql_origin == SqlOrigin.GENERATOR
        assert state.rows == ROWS
        assert state.natural_response == "Hay un evento"
        assert state.attempts == 0
        assert not state.degraded
        mocks.executor.execute.assert_awaited_once_with("SELECT * FROM vw_eventos_proximos LIMIT 200")

    @pytest.mark.asyncio
    async def test_heuristic_sql_skips_generator(self, runner_class, mocks, catalog):
        mocks.heuristics.resolve.return_value = HeuristicResult(
            "SELECT e.nombre FROM Evento e WHERE e.id = 7 LIMIT 1", "Precio del evento"
        )

        state = await _run(runner_class, mocks.steps(catalog), "¿Cuánto cuesta el Festival de Jazz?")

        mocks.generator.generate.assert_not_called()
        assert PipelineStage.GENERATED not in state.stages
        assert state.sql_origin == SqlOrigin.HEURISTIC
        assert state.sql_final == "SELECT e.nombre FROM Evento e WHERE e.id = 7 LIMIT 1"
        assert state.explanation == "Precio del evento"


@pytest.mark.parametrize("runner_class", RUNNERS)
class TestConversationalPath:

    @pytest.mark.asyncio
    async def test_small_talk_touches_no_sql_collaborator(self, runner_class, mocks, catalog):
        steps = mocks.steps(catalog)

        state = await _run(runner_class, steps, "¡Hola!")

        assert state.intent == Intent.CONVERSATIONAL
        assert state.stages == [
            PipelineStage.START,
            PipelineStage.INTENT_DETECTED,
            PipelineStage.CONVERSATIONAL,
            PipelineStage.SUMMARIZED,
            PipelineStage.DONE,
        ]
        assert state.natural_response == steps.config.small_talk_reply
        assert state.rows == []
        assert state.sql_final is None
        mocks.heuristics.resolve.assert_not_called()
        mocks.generator.generate.assert_not_called()
        mocks.executor.execute.assert_not_called()
        mocks.summarizer.summarize.assert_not_called()


@pytest.mark.parametrize("runner_class", RUNNERS)
class TestRepairLoop:

    @pytest.mark.asyncio
    async def test_repair_then_success(self, runner_class, mocks, catalog):
        mocks.generator.generate.side_effect = [
            GenerationResult(BAD_OUTPUT),
            GenerationResult(GOOD_OUTPUT),
        ]

        state = await _run(runner_class, mocks.steps(catalog))

        assert state.attempts == 1
        assert state.rows == ROWS
        repair_hint = mocks.generator.generate.call_args_list[1].args[2]
        assert "Previous SQL: SELECT * FROM usuarios" in repair_hint
        assert "Corrige según el validador: table_not_allowed" in repair_hint

    @pytest.mark.asyncio
    async def test_repairs_are_bounded(self, runner_class, mocks, catalog):
        mocks.generator.generate.return_value = GenerationResult(BAD_OUTPUT)

        state = await _run(runner_class, mocks.steps(catalog))

        assert state.attempts == 2
        assert mocks.generator.generate.await_count == 3
        assert state.stages.count(PipelineStage.REPAIRING) == 2
        assert state.degraded
        assert state.degrade_reason == DegradeReason.VALIDATION_EXHAUSTED
        assert state.rows == []
        assert state.sql_final is None
        assert state.natural_response == "No he podido responder"
        mocks.executor.execute.assert_not_called()
        mocks.summarizer.degraded_message.assert_called_once_with(
            "¿Qué eventos hay próximamente?", DegradeReason.VALIDATION_EXHAUSTED
        )

    @pytest.mark.asyncio
    async def test_zero_repairs(self, runner_class, mocks, catalog):
        mocks.generator.generate.return_value = GenerationResult(BAD_OUTPUT)
        steps = mocks.steps(catalog, config=PipelineConfig(max_repair_attempts=0))

        state = await _run(runner_class, steps)

        assert state.attempts == 0
        assert mocks.generator.generate.await_count == 1
        assert state.degraded

    @pytest.mark.asyncio
    async def test_generation_failure_degrades(self, runner_class, mocks, catalog):
        mocks.generator.generate.return_value = GenerationResult("   ")

        state = await _run(runner_class, mocks.steps(catalog))

        assert state.degraded
        assert state.degrade_reason == DegradeReason.GENERATION_FAILED
        assert state.attempts == 2
        mocks.executor.execute.assert_not_called()


@pytest.mark.parametrize("runner_class", RUNNERS)
class TestExecution:

    @pytest.mark.asyncio
    async def test_forced_limit_retry_happens_once(self, runner_class, mocks, catalog):
        mocks.generator.generate.return_value = GenerationResult("SELECT * FROM Evento")
        mocks.executor.execute.side_effect = [SqlExecutionError("out of memory"), ROWS]

        state = await _run(runner_class, mocks.steps(catalog, default_limit=None))

        assert [c.args[0] for c in mocks.executor.execute.await_args_list] == [
            "SELECT * FROM Evento",
            "SELECT * FROM Evento LIMIT 50",
        ]
        assert state.sql_final == "SELECT * FROM Evento LIMIT 50"
        assert state.rows == ROWS
        assert not state.degraded

    @pytest.mark.asyncio
    async def test_failed_forced_retry_degrades(self, runner_class, mocks, catalog):
        mocks.generator.generate.return_value = GenerationResult("SELECT * FROM Evento")
        mocks.executor.execute.side_effect = SqlExecutionError("boom")

        state = await _run(runner_class, mocks.steps(catalog, default_limit=None))

        assert mocks.executor.execute.await_count == 2
        assert state.degraded
        assert state.degrade_reason == DegradeReason.SQL_ERROR

    @pytest.mark.asyncio
    async def test_sql_error_with_limit_degrades_without_retry(self, runner_class, mocks, catalog):
        mocks.executor.execute.side_effect = SqlExecutionError('column "x" does not exist')

        state = await _run(runner_class, mocks.steps(catalog))

        assert mocks.executor.execute.await_count == 1
        assert state.degraded
        assert state.degrade_reason == DegradeReason.SQL_ERROR
        assert state.rows == []
        assert state.stages[-3:] == [PipelineStage.DEGRADED, PipelineStage.SUMMARIZED, PipelineStage.DONE]

    @pytest.mark.asyncio
    async def test_timeout_propagates(self, runner_class, mocks, catalog):
        mocks.executor.execute.side_effect = QueryTimeoutError("Query exceeded 15s")

        with pytest.raises(QueryTimeoutError):
            await _run(runner_class, mocks.steps(catalog))


class TestRunnerEquivalence:

    @pytest.mark.parametrize("outputs", [
        [GenerationResult(GOOD_OUTPUT)],
        [GenerationResult(BAD_OUTPUT), GenerationResult(GOOD_OUTPUT)],
        [GenerationResult(BAD_OUTPUT)] * 3,
    ])
    @pytest.mark.asyncio
    async def test_same_transitions(self, catalog, outputs):
        transitions = []
        for runner_class in RUNNERS:
            mocks = Collaborators()
            mocks.generator.generate.side_effect = list(outputs)
            state = await _run(runner_class, mocks.steps(catalog))
            transitions.append(state.transitions)

        assert transitions[0] == transitions[1]


class TestRunnerFactory:

    def test_factory(self, mocks, catalog):
        steps = mocks.steps(catalog)

        assert isinstance(create_pipeline_runner(PipelineRunnerType.SEQUENTIAL, steps), SequentialPipelineRunner)
        assert isinstance(create_pipeline_runner(PipelineRunnerType.GRAPH, steps), GraphPipelineRunner)
