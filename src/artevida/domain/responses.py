"""
API response models for the ArteVida SQL agent.

These models define the structure for all outgoing API responses,
ensuring consistent response formats and type safety.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from .base_enums import Intent, ValidationErrorKind


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Health status", examples=["healthy", "degraded"])
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")
    database_status: str = Field(..., description="Database connection status")
    llm_service_status: str = Field(
        ...,
        description="LLM service status ('offline' when no API key is configured)"
    )
    catalog_objects: int = Field(..., description="Number of allowed tables and views")


class ErrorResponse(BaseModel):
    """Response model for error responses."""

    error: str = Field(..., description="Lower-case error identifier", examples=["query_timeout"])
    code: str = Field(..., description="Machine-readable error code", examples=["QUERY_TIMEOUT"])
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details"
    )
    trace_id: Optional[str] = Field(
        default=None,
        description="Trace ID for debugging"
    )
    timestamp: datetime = Field(..., description="Error timestamp")


class AskResponse(BaseModel):
    """Answer to a question: the SQL that ran, its rows and a readable summary."""

    trace_id: str = Field(..., description="Trace ID for debugging")
    sql: str = Field(..., description="Executed SQL, or the last draft when nothing ran")
    rows: List[Dict[str, Any]] = Field(default_factory=list, description="Result rows")
    explanation: str = Field(default="", description="How the SQL was obtained")
    natural_response: str = Field(..., description="Natural-language answer")
    execution_time_ms: float = Field(..., description="Total processing time in milliseconds")
    attempts: int = Field(default=0, description="Repair rounds used")
    intent: Intent = Field(..., description="Detected intent")
    degraded: bool = Field(
        default=False,
        description="True when no query could be run and the answer explains why"
    )


class ValidateSqlResponse(BaseModel):
    """Verdict of the SQL safety validator."""

    valid: bool = Field(..., description="Whether the statement may run")
    sanitized_sql: Optional[str] = Field(
        default=None,
        description="Statement that would run, with comments removed and LIMIT enforced"
    )
    error_kind: Optional[ValidationErrorKind] = Field(default=None, description="Rejection reason")
    message: Optional[str] = Field(default=None, description="Rejection details")
