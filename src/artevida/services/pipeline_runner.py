"""
Pipeline runners.

Two interchangeable drivers over the same PipelineSteps:
- SequentialPipelineRunner: a plain async loop, the reference semantics
- GraphPipelineRunner: a LangGraph StateGraph with conditional edges

For the same collaborators both produce the same stage transitions.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, TypedDict

from langgraph.graph import END, StateGraph

from artevida.config_constants import PipelineRunnerType
from artevida.domain.pipeline import PipelineState
from artevida.services.pipeline_steps import (
    ROUTE_CONVERSATIONAL,
    ROUTE_DATA,
    ROUTE_DEGRADE,
    ROUTE_EXECUTE,
    ROUTE_GENERATE,
    ROUTE_REPAIR,
    ROUTE_SUMMARIZE,
    ROUTE_VALIDATE,
    PipelineSteps,
)
from artevida.utils.logging import get_module_logger

logger = get_module_logger()


class PipelineRunner(ABC):
    """Drives a PipelineState from START to DONE."""

    def __init__(self, steps: PipelineSteps):
        self.steps = steps

    @abstractmethod
    async def run(self, state: PipelineState) -> PipelineState:
        """Run every stage; the state is mutated in place and returned."""


class SequentialPipelineRunner(PipelineRunner):
    """Reference runner: the pipeline as straight-line code."""

    async def run(self, state: PipelineState) -> PipelineState:
        steps = self.steps

        await steps.start(state)
        await steps.detect_intent(state)

        if steps.route_after_intent(state) == ROUTE_CONVERSATIONAL:
            await steps.reply_small_talk(state)
        else:
            await self._run_data_path(state)

        await steps.summarize(state)
        await steps.finish(state)
        return state

    async def _run_data_path(self, state: PipelineState) -> None:
        steps = self.steps

        await steps.resolve_heuristics(state)
        if steps.route_after_heuristics(state) == ROUTE_GENERATE:
            await steps.generate(state)

        while True:
            await steps.validate(state)
            route = steps.route_after_validation(state)
            if route == ROUTE_EXECUTE:
                break
            if route == ROUTE_DEGRADE:
                await steps.degrade(state)
                return
            await steps.repair(state)
            await steps.generate(state)

        await steps.execute(state)
        if steps.route_after_execution(state) == ROUTE_DEGRADE:
            await steps.degrade(state)


class GraphState(TypedDict):
    pipeline: PipelineState


StepFunction = Callable[[PipelineState], Awaitable[None]]


class GraphPipelineRunner(PipelineRunner):
    """LangGraph state machine over the pipeline steps."""

    def __init__(self, steps: PipelineSteps):
        super().__init__(steps)
        self.graph = self._build_graph()

    async def run(self, state: PipelineState) -> PipelineState:
        result = await self.graph.ainvoke(
            {"pipeline": state},
            config={"recursion_limit": self._recursion_limit()},
        )
        return result["pipeline"]

    def _recursion_limit(self) -> int:
        # Each repair round visits repair, generate and validate
        return 16 + 3 * self.steps.config.max_repair_attempts

    def _build_graph(self):
        steps = self.steps
        workflow = StateGraph(GraphState)

        nodes: Dict[str, StepFunction] = {
            "start": steps.start,
            "intent": steps.detect_intent,
            "small_talk": steps.reply_small_talk,
            "heuristics": steps.resolve_heuristics,
            "generate": steps.generate,
            "validate": steps.validate,
            "repair": steps.repair,
            "execute": steps.execute,
            "degrade": steps.degrade,
            "summarize": steps.summarize,
            "finish": steps.finish,
        }
        for name, step in nodes.items():
            workflow.add_node(name, self._node(step))

        workflow.set_entry_point("start")
        workflow.add_edge("start", "intent")
        workflow.add_conditional_edges(
            "intent",
            self._route(steps.route_after_intent),
            {ROUTE_CONVERSATIONAL: "small_talk", ROUTE_DATA: "heuristics"},
        )
        workflow.add_edge("small_talk", "summarize")
        workflow.add_conditional_edges(
            "heuristics",
            self._route(steps.route_after_heuristics),
            {ROUTE_GENERATE: "generate", ROUTE_VALIDATE: "validate"},
        )
        workflow.add_edge("generate", "validate")
        workflow.add_conditional_edges(
            "validate",
            self._route(steps.route_after_validation),
            {ROUTE_EXECUTE: "execute", ROUTE_REPAIR: "repair", ROUTE_DEGRADE: "degrade"},
        )
        workflow.add_edge("repair", "generate")
        workflow.add_conditional_edges(
            "execute",
            self._route(steps.route_after_execution),
            {ROUTE_SUMMARIZE: "summarize", ROUTE_DEGRADE: "degrade"},
        )
        workflow.add_edge("degrade", "summarize")
        workflow.add_edge("summarize", "finish")
        workflow.add_edge("finish", END)

        return workflow.compile()

    @staticmethod
    def _node(step: StepFunction):
        async def node(graph_state: GraphState) -> GraphState:
            await step(graph_state["pipeline"])
            return {"pipeline": graph_state["pipeline"]}

        return node

    @staticmethod
    def _route(route: Callable[[PipelineState], str]):
        def decide(graph_state: GraphState) -> str:
            return route(graph_state["pipeline"])

        return decide


def create_pipeline_runner(runner_type: PipelineRunnerType, steps: PipelineSteps) -> PipelineRunner:
    """Build the configured runner."""
    if runner_type == PipelineRunnerType.SEQUENTIAL:
        runner: PipelineRunner = SequentialPipelineRunner(steps)
    else:
        runner = GraphPipelineRunner(steps)
    logger.info("Pipeline runner created", runner=type(runner).__name__)
    return runner
