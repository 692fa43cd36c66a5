"""
FastAPI dependencies for dependency injection.

This module provides reusable dependencies that can be injected into
API route handlers following proper layered architecture:
- ConversationService for question answering
- SQLValidationRepository for the direct validator endpoint
- Settings for configuration
- Optional client dependencies for health checks only

Everything is built once in the application lifespan and read from
app.state here; routes should depend on services, not infrastructure
clients directly.
"""

from typing import Annotated, Optional

from fastapi import Depends, Request

from ..config import Settings
from ..infrastructure.database_client import DatabaseClient
from ..infrastructure.llm_client import LLMClient
from ..repositories.catalog import AllowedObjectCatalog
from ..repositories.sql_validation import SQLValidationRepository
from ..services.conversation_service import ConversationService


def _require_state(request: Request, name: str):
    if not hasattr(request.app.state, name):
        raise RuntimeError(f"{name} not initialized")
    return getattr(request.app.state, name)


def get_settings(request: Request) -> Settings:
    """
    Dependency to get the settings from app state.

    Usage in routes:
        @app.get("/")
        async def root(settings: SettingsDep):
            return {"log_level": settings.app.log_level}

    Raises:
        RuntimeError: If settings are not initialized
    """
    return _require_state(request, "settings")


def get_catalog(request: Request) -> AllowedObjectCatalog:
    """Dependency to get the Allowed Object Catalog loaded at startup."""
    return _require_state(request, "catalog")


def get_sql_validator(request: Request) -> SQLValidationRepository:
    """Dependency to get the shared SQL validator."""
    return _require_state(request, "sql_validator")


def get_conversation_service(request: Request) -> ConversationService:
    """
    Dependency to get the ConversationService.

    The service tree is built once in the lifespan:
    ConversationService (orchestrator)
      └── PipelineRunner
            └── PipelineSteps
                  ├── HeuristicResolver → EntityLookupRepository
                  ├── SQLGenerationRepository → LLMClient, KeywordSQLFallback, SchemaCache
                  ├── SQLValidationRepository → AllowedObjectCatalog
                  ├── SQLExecutionRepository → DatabaseClient
                  └── ResponseSummaryRepository → LLMClient

    Raises:
        RuntimeError: If the service is not initialized
    """
    return _require_state(request, "conversation_service")


# Optional dependency getters for health checks
def get_db_client_optional(request: Request) -> Optional[DatabaseClient]:
    """Get database client if available, None otherwise."""
    return getattr(request.app.state, "db_client", None)


def get_llm_client_optional(request: Request) -> Optional[LLMClient]:
    """Get LLM client if available, None otherwise."""
    return getattr(request.app.state, "llm_client", None)


# Type aliases for cleaner route signatures
SettingsDep = Annotated[Settings, Depends(get_settings)]
CatalogDep = Annotated[AllowedObjectCatalog, Depends(get_catalog)]
SQLValidatorDep = Annotated[SQLValidationRepository, Depends(get_sql_validator)]
ConversationServiceDep = Annotated[ConversationService, Depends(get_conversation_service)]
OptionalDatabaseClientDep = Annotated[Optional[DatabaseClient], Depends(get_db_client_optional)]
OptionalLLMClientDep = Annotated[Optional[LLMClient], Depends(get_llm_client_optional)]
