from enum import Enum


class Intent(str, Enum):
    CONVERSATIONAL = "conversational"
    DATA = "data"


class ValidationErrorKind(str, Enum):
    """Reasons the SQL validator rejects a candidate statement."""
    EMPTY_INPUT = "empty_input"
    MULTI_STATEMENT = "multi_statement"
    PARSE_ERROR = "parse_error"
    OPERATION_NOT_ALLOWED = "operation_not_allowed"
    NOT_A_SELECT = "not_a_select"
    TABLE_NOT_ALLOWED = "table_not_allowed"


class ExecutorErrorKind(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    SYNTAX_ERROR = "syntax_error"


class PipelineStage(str, Enum):
    """Stages a question passes through; every transition is recorded."""
    START = "start"
    INTENT_DETECTED = "intent_detected"
    CONVERSATIONAL = "conversational"
    HEURISTIC_ATTEMPTED = "heuristic_attempted"
    GENERATED = "generated"
    VALIDATED = "validated"
    REPAIRING = "repairing"
    EXECUTED = "executed"
    DEGRADED = "degraded"
    SUMMARIZED = "summarized"
    DONE = "done"


class SqlOrigin(str, Enum):
    HEURISTIC = "heuristic"
    GENERATOR = "generator"
    FALLBACK = "fallback"


class AttributeIntent(str, Enum):
    PRICE = "precio"
    DATE = "fecha"
    PLACE = "lugar"
    CITY = "ciudad"
    DESCRIPTION = "descripcion"


class ActivityType(str, Enum):
    """Values of Actividad.tipo."""
    CONCERT = "concierto"
    EXHIBITION = "exposicion"
    THEATRE = "teatro"
    LECTURE = "conferencia"


class DegradeReason(str, Enum):
    """Why a data question ended without rows."""
    VALIDATION_EXHAUSTED = "validation_exhausted"
    GENERATION_FAILED = "generation_failed"
    SQL_ERROR = "sql_error"
    DEADLINE = "deadline"
