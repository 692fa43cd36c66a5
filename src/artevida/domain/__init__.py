"""
Domain package for the ArteVida SQL agent.

This package contains the request/response models, pipeline state,
enums and the exception hierarchy shared across the application.
"""

from .base_enums import (
    Intent,
    ValidationErrorKind,
    ExecutorErrorKind,
    PipelineStage,
    SqlOrigin,
    DegradeReason,
)
from .requests import AskRequest, ConversationTurn, ValidateSqlRequest
from .responses import AskResponse, ErrorResponse, HealthResponse, ValidateSqlResponse
from .pipeline import (
    CatalogListing,
    ConversationResult,
    EntityMatch,
    GenerationResult,
    HeuristicResult,
    PipelineState,
    TableReference,
    ValidationResult,
)

__all__ = [
    # Enums
    "Intent",
    "ValidationErrorKind",
    "ExecutorErrorKind",
    "PipelineStage",
    "SqlOrigin",
    "DegradeReason",

    # Requests
    "AskRequest",
    "ConversationTurn",
    "ValidateSqlRequest",

    # Responses
    "AskResponse",
    "ErrorResponse",
    "HealthResponse",
    "ValidateSqlResponse",

    # Pipeline
    "CatalogListing",
    "ConversationResult",
    "EntityMatch",
    "GenerationResult",
    "HeuristicResult",
    "PipelineState",
    "TableReference",
    "ValidationResult",
]
