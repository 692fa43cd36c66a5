"""
Exception hierarchy for the ArteVida SQL agent.

Every exception carries:
- a machine-readable error code returned to API clients
- the HTTP status the API layer answers with
- an optional details dictionary for debugging

Exception Categories:
- Input errors: InputValidationError (400)
- SQL validation: SqlSyntaxError, SqlPolicyError (400)
- Execution: QueryTimeoutError (408), DatabaseUnavailableError (503), SqlExecutionError (400)
- Internal: GenerationFailure, LLMError, ConfigurationError

Usage:
    raise QueryTimeoutError("Query exceeded 15s")
    raise SqlPolicyError("Table not allowed: usuarios", details={"table": "usuarios"})
"""

from typing import Any, Dict, Optional

from .base_enums import ExecutorErrorKind, ValidationErrorKind


class ArteVidaException(Exception):
    """
    Base exception for all ArteVida agent errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code (e.g., "QUERY_TIMEOUT")
        http_status: HTTP status code to return (default: 500)
        details: Optional dictionary with additional error context
    """

    error_code: str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        if http_status:
            self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Client Errors (4xx)
# =============================================================================


class InputValidationError(ArteVidaException):
    """
    Raised when a question or its conversation context is malformed.

    HTTP Status: 400 Bad Request

    Examples:
        - Empty question
        - Question longer than 500 characters
        - More than 4 context turns
    """

    error_code = "VALIDATION_ERROR"
    http_status = 400


class SqlValidationError(ArteVidaException):
    """
    Raised when hand-written SQL is rejected by the validator.

    The pipeline itself never raises it: rejected candidates go through
    the repair loop instead.
    """

    error_code = "SQL_VALIDATION_ERROR"
    http_status = 400

    def __init__(
        self,
        message: str,
        kind: ValidationErrorKind,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details={"kind": kind.value, **(details or {})})
        self.kind = kind


class SqlSyntaxError(SqlValidationError):
    """Empty input, several statements, or text that does not parse."""


class SqlPolicyError(SqlValidationError):
    """Parsed statement that writes, is not a query, or reads a forbidden object."""


# =============================================================================
# Execution Errors
# =============================================================================


class ExecutionError(ArteVidaException):
    """
    Raised when a validated query fails inside PostgreSQL.

    Attributes:
        kind: Executor failure category used by the pipeline to decide
              between degrading and surfacing the error
    """

    error_code = "SQL_ERROR"
    http_status = 400
    kind: ExecutorErrorKind = ExecutorErrorKind.SYNTAX_ERROR


class QueryTimeoutError(ExecutionError):
    """
    Raised when the statement timeout or the execution budget is exceeded.

    HTTP Status: 408 Request Timeout
    """

    error_code = "QUERY_TIMEOUT"
    http_status = 408
    kind = ExecutorErrorKind.TIMEOUT


class DatabaseUnavailableError(ExecutionError):
    """
    Raised when PostgreSQL cannot be reached.

    HTTP Status: 503 Service Unavailable
    """

    error_code = "DATABASE_UNAVAILABLE"
    http_status = 503
    kind = ExecutorErrorKind.CONNECTION_REFUSED


class SqlExecutionError(ExecutionError):
    """
    Raised for errors reported by PostgreSQL for the statement itself
    (syntax, unknown column, type mismatch).

    HTTP Status: 400 Bad Request
    """

    error_code = "SQL_ERROR"
    http_status = 400
    kind = ExecutorErrorKind.SYNTAX_ERROR


# =============================================================================
# Server Errors (5xx)
# =============================================================================


class DatabaseConnectionError(DatabaseUnavailableError):
    """Raised when the connection pool cannot be created or used."""

    error_code = "DATABASE_UNAVAILABLE"


class GenerationFailure(ArteVidaException):
    """
    Raised when the text generator yields no usable SQL (timeout, empty output).

    Handled by the repair loop; never reaches API clients.
    """

    error_code = "INTERNAL_ERROR"
    http_status = 500


class LLMError(ArteVidaException):
    """
    Raised when LLM API calls fail.

    HTTP Status: 503 Service Unavailable

    Examples:
        - OpenRouter API timeout
        - Rate limit exceeded
        - Empty response
    """

    error_code = "LLM_ERROR"
    http_status = 503


class ConfigurationError(ArteVidaException):
    """
    Raised when configuration files are invalid.

    HTTP Status: 500 Internal Server Error

    Examples:
        - Missing catalog file
        - Catalog without tables
    """

    error_code = "CONFIGURATION_ERROR"
    http_status = 500


_SYNTAX_KINDS = frozenset({
    ValidationErrorKind.EMPTY_INPUT,
    ValidationErrorKind.MULTI_STATEMENT,
    ValidationErrorKind.PARSE_ERROR,
})


def validation_error_for(kind: ValidationErrorKind, message: str) -> SqlValidationError:
    """Build the exception matching a validator rejection kind."""
    if kind in _SYNTAX_KINDS:
        return SqlSyntaxError(message, kind)
    return SqlPolicyError(message, kind)
