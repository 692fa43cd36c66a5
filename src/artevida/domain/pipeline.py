"""
Pipeline state models for the ArteVida SQL agent.

PipelineState is the mutable record a question carries through the
pipeline stages. The other models here are immutable values exchanged
between the pipeline and its collaborators.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .base_enums import DegradeReason, Intent, PipelineStage, SqlOrigin, ValidationErrorKind
from .requests import ConversationTurn


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of validating one candidate statement.

    Either accepted (valid, sanitized_sql set) or rejected (error_kind and
    message set); never a mix of both.
    """

    valid: bool
    sanitized_sql: Optional[str] = None
    error_kind: Optional[ValidationErrorKind] = None
    message: Optional[str] = None

    def __post_init__(self) -> None:
        if self.valid:
            if self.sanitized_sql is None or self.error_kind is not None:
                raise ValueError("Accepted result needs sanitized_sql and no error_kind")
        elif self.sanitized_sql is not None or self.error_kind is None:
            raise ValueError("Rejected result needs error_kind and no sanitized_sql")

    @classmethod
    def accepted(cls, sanitized_sql: str) -> "ValidationResult":
        return cls(valid=True, sanitized_sql=sanitized_sql)

    @classmethod
    def rejected(cls, kind: ValidationErrorKind, message: str) -> "ValidationResult":
        return cls(valid=False, error_kind=kind, message=message)


@dataclass(frozen=True)
class TableReference:
    """A relation name found in a statement (table, view, CTE or table function)."""

    name: str
    schema: Optional[str] = None
    is_function: bool = False
    # Qualifier of a column reference ("e" in "e.nombre"), not a FROM/JOIN relation
    is_qualifier: bool = False


@dataclass(frozen=True)
class CatalogListing:
    tables: Tuple[str, ...]
    views: Tuple[str, ...]


@dataclass(frozen=True)
class EntityMatch:
    """Row resolved by a live fuzzy lookup (event or artist)."""

    id: int
    canonical_name: str


@dataclass(frozen=True)
class HeuristicResult:
    sql: str
    explanation: str


@dataclass(frozen=True)
class GenerationResult:
    """Raw generator output; sql_text is untrusted until validated."""

    sql_text: str
    explanation: str = ""
    origin: SqlOrigin = SqlOrigin.GENERATOR


@dataclass(frozen=True)
class StageTransition:
    stage: PipelineStage
    attempts: int


@dataclass
class PipelineState:
    """
    Mutable state passed through the pipeline steps.

    Invariants:
        - sql_final is only set after the validator accepted it
        - rows is only set after sql_final executed successfully
        - attempts never exceeds the configured repair bound
    """

    # Input
    question: str
    conversation_context: List[ConversationTurn] = field(default_factory=list)

    # Routing
    intent: Optional[Intent] = None
    stage: PipelineStage = PipelineStage.START
    transitions: List[StageTransition] = field(default_factory=list)

    # SQL
    sql_draft: Optional[str] = None
    sql_origin: Optional[SqlOrigin] = None
    sql_final: Optional[str] = None
    validation_error: Optional[str] = None
    validation_error_kind: Optional[ValidationErrorKind] = None
    attempts: int = 0

    # Results
    rows: Optional[List[Dict[str, Any]]] = None
    explanation: str = ""
    natural_response: Optional[str] = None
    degraded: bool = False
    degrade_reason: Optional[DegradeReason] = None

    def advance(self, stage: PipelineStage) -> None:
        """Move to a new stage and record the transition."""
        self.stage = stage
        self.transitions.append(StageTransition(stage=stage, attempts=self.attempts))

    @property
    def stages(self) -> List[PipelineStage]:
        return [transition.stage for transition in self.transitions]


@dataclass(frozen=True)
class ConversationResult:
    """Final answer handed back to the API layer."""

    sql: str
    rows: List[Dict[str, Any]]
    explanation: str
    natural_response: str
    attempts: int
    intent: Intent
    degraded: bool
    stages: Tuple[PipelineStage, ...] = ()

    @classmethod
    def from_state(cls, state: PipelineState) -> "ConversationResult":
        return cls(
            sql=state.sql_final or state.sql_draft or "",
            rows=list(state.rows or []),
            explanation=state.explanation,
            natural_response=state.natural_response or "",
            attempts=state.attempts,
            intent=state.intent or Intent.DATA,
            degraded=state.degraded,
            stages=tuple(state.stages),
        )
