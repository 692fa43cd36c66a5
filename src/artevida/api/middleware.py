"""
Middleware and exception handlers for the ArteVida FastAPI application.

This module contains:
- HTTP middleware for trace IDs, request logging and processing time
- Centralized exception handlers for the ArteVida exception hierarchy
- OpenAPI error response examples

Exception Handling Strategy:
- ArteVidaException subclasses map to their own HTTP status and error code
  (VALIDATION_ERROR 400, SQL_VALIDATION_ERROR 400, QUERY_TIMEOUT 408,
  DATABASE_UNAVAILABLE 503, SQL_ERROR 400)
- Request body validation errors are answered with 400 VALIDATION_ERROR
- Anything else becomes a generic 500 INTERNAL_ERROR; details go to the logs only

Usage in main.py:
    from .api.middleware import register_exception_handlers
    register_exception_handlers(app)
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..domain.errors import ArteVidaException
from ..domain.responses import ErrorResponse
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id, generate_trace_id, reset_trace_id, set_trace_id

logger = get_module_logger()

INTERNAL_ERROR_MESSAGE = "Se produjo un error interno. Inténtalo de nuevo más tarde."


# =============================================================================
# Middleware Functions
# =============================================================================


async def trace_id_middleware(request: Request, call_next: Callable) -> Response:
    """
    Middleware to generate and manage trace IDs for each request.

    - Uses the X-Trace-ID header when the client sends one
    - Generates a new UUID trace_id otherwise
    - Keeps it in the context for the whole request and echoes it back
    """
    trace_id = request.headers.get("X-Trace-ID") or generate_trace_id()
    token = set_trace_id(trace_id)

    try:
        response = await call_next(request)
    finally:
        reset_trace_id(token)

    response.headers["X-Trace-ID"] = trace_id
    return response


async def logging_middleware(request: Request, call_next: Callable) -> Response:
    """
    Middleware to log HTTP requests and responses.

    Adds the X-Process-Time header (milliseconds).
    """
    start_time = datetime.now(timezone.utc)
    trace_id = current_trace_id()

    logger.info(
        "HTTP request started",
        method=request.method,
        url=str(request.url),
        user_agent=request.headers.get("user-agent"),
        client_ip=request.client.host if request.client else None,
        trace_id=trace_id
    )

    response = await call_next(request)

    duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
    response.headers["X-Process-Time"] = str(round(duration_ms, 2))

    logger.info(
        "HTTP request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        duration_ms=round(duration_ms, 2),
        trace_id=trace_id
    )

    return response


# =============================================================================
# Exception Handlers
# =============================================================================


def _create_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """
    Create a standardized JSON error response.

    {
        "error": "query_timeout",
        "code": "QUERY_TIMEOUT",
        "message": "Human readable message",
        "details": {...},
        "trace_id": "uuid",
        "timestamp": "ISO8601"
    }
    """
    error_response = ErrorResponse(
        error=error_code.lower(),
        code=error_code,
        message=message,
        details=details,
        trace_id=current_trace_id(),
        timestamp=datetime.now(timezone.utc)
    )

    # mode="json" serializes the datetime to an ISO string
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True)
    )


async def artevida_exception_handler(request: Request, exc: ArteVidaException) -> JSONResponse:
    """
    Handler for all ArteVidaException subclasses.

    Maps exc.http_status, exc.error_code, exc.message and exc.details
    onto the error response. 4xx are logged as warnings, 5xx as errors.
    """
    log_level = "warning" if exc.http_status < 500 else "error"
    getattr(logger, log_level)(
        f"{exc.__class__.__name__}: {exc.message}",
        error_code=exc.error_code,
        http_status=exc.http_status,
        details=exc.details,
        url=str(request.url),
        method=request.method,
        trace_id=current_trace_id()
    )

    return _create_error_response(
        status_code=exc.http_status,
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details or None
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handler for FastAPI/Pydantic request validation errors.

    Answered with 400 VALIDATION_ERROR and field-level details.
    """
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        }
        for error in exc.errors()
    ]

    logger.warning(
        "Request validation failed",
        error_count=len(errors),
        errors=errors,
        url=str(request.url),
        method=request.method,
        trace_id=current_trace_id()
    )

    return _create_error_response(
        status_code=400,
        error_code="VALIDATION_ERROR",
        message="La petición no es válida",
        details={"errors": errors}
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handler for Starlette/FastAPI HTTP exceptions (404, 405...)."""
    error_code_map = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        408: "QUERY_TIMEOUT",
        500: "INTERNAL_ERROR",
        503: "SERVICE_UNAVAILABLE",
    }
    error_code = error_code_map.get(exc.status_code, "HTTP_ERROR")

    log_level = "warning" if exc.status_code < 500 else "error"
    getattr(logger, log_level)(
        f"HTTP {exc.status_code}: {exc.detail}",
        error_code=error_code,
        http_status=exc.status_code,
        url=str(request.url),
        method=request.method,
        trace_id=current_trace_id()
    )

    return _create_error_response(
        status_code=exc.status_code,
        error_code=error_code,
        message=str(exc.detail) if exc.detail else f"HTTP {exc.status_code} error"
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global fallback handler for unhandled exceptions.

    Logs the full stack trace; the client only gets a generic message
    and the trace_id.
    """
    logger.error(
        "Unhandled exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        url=str(request.url),
        method=request.method,
        trace_id=current_trace_id(),
        exc_info=True
    )

    return _create_error_response(
        status_code=500,
        error_code="INTERNAL_ERROR",
        message=INTERNAL_ERROR_MESSAGE
    )


# =============================================================================
# Exception Handler Registration
# =============================================================================


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Priority (most specific first):
    1. ArteVidaException subclasses
    2. RequestValidationError (Pydantic)
    3. StarletteHTTPException
    4. Exception (fallback)
    """
    # FastAPI's add_exception_handler typing does not accept subclass-specific handlers
    app.add_exception_handler(ArteVidaException, artevida_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)  # type: ignore[arg-type]

    logger.info(
        "Exception handlers registered",
        handlers=[
            "ArteVidaException",
            "RequestValidationError",
            "StarletteHTTPException",
            "Exception (fallback)"
        ]
    )


# =============================================================================
# OpenAPI Error Response Models (for documentation)
# =============================================================================

def _example(status_description: str, code: str, message: str) -> Dict[str, Any]:
    return {
        "description": status_description,
        "content": {
            "application/json": {
                "example": {
                    "error": code.lower(),
                    "code": code,
                    "message": message,
                    "trace_id": "550e8400-e29b-41d4-a716-446655440000",
                    "timestamp": "2024-01-15T10:30:00Z"
                }
            }
        }
    }


ERROR_RESPONSES = {
    400: _example("Bad Request - invalid question or SQL error", "VALIDATION_ERROR", "La petición no es válida"),
    408: _example("Request Timeout - the query exceeded its time budget", "QUERY_TIMEOUT", "Query exceeded 15s"),
    500: _example("Internal Server Error - unexpected failure", "INTERNAL_ERROR", INTERNAL_ERROR_MESSAGE),
    503: _example("Service Unavailable - database unreachable", "DATABASE_UNAVAILABLE", "Database is unavailable"),
}
