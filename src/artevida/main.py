"""
Main FastAPI application for the ArteVida SQL agent.

This module sets up the FastAPI application with logging, tracing and
error handling middleware, builds the question pipeline once at startup
and exposes the question and validation endpoints.
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Union

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .utils.logging import configure_logging, get_module_logger
from .utils.tracing import get_trace_id
from .domain.requests import AskRequest, ValidateSqlRequest
from .domain.responses import AskResponse, HealthResponse, ValidateSqlResponse
from .api.middleware import (
    trace_id_middleware,
    logging_middleware,
    register_exception_handlers,
    ERROR_RESPONSES,
)
from .api.dependencies import (
    SettingsDep,
    CatalogDep,
    SQLValidatorDep,
    ConversationServiceDep,
    OptionalDatabaseClientDep,
    OptionalLLMClientDep,
)
from .config import Settings, get_settings
from .infrastructure.database_client import DatabaseClient
from .infrastructure.llm_client import LLMClient
from .repositories.catalog import AllowedObjectCatalog
from .repositories.entity_lookup import EntityLookupRepository
from .repositories.heuristics import HeuristicResolver
from .repositories.response_summary import ResponseSummaryRepository
from .repositories.schema_cache import SchemaCache
from .repositories.sql_execution import SQLExecutionRepository
from .repositories.sql_fallback import KeywordSQLFallback
from .repositories.sql_generation import SQLGenerationRepository
from .repositories.sql_validation import SQLValidationRepository, error_for
from .services.conversation_service import ConversationService
from .services.pipeline_runner import create_pipeline_runner
from .services.pipeline_steps import PipelineSteps


APP_VERSION = "0.1.0"

# Configure logging on module import
configure_logging()
logger = get_module_logger()


def build_sql_validator(settings: Settings, catalog: AllowedObjectCatalog) -> SQLValidationRepository:
    pipeline = settings.pipeline
    return SQLValidationRepository(
        catalog=catalog,
        default_limit=pipeline.default_limit,
        allowed_schema=pipeline.allowed_schema,
        dialect=pipeline.dialect.value,
    )


def build_conversation_service(
    settings: Settings,
    catalog: AllowedObjectCatalog,
    validator: SQLValidationRepository,
    db_client: DatabaseClient,
    llm_client: LLMClient,
) -> ConversationService:
    """
    Wire the repositories behind one ConversationService.

    All collaborators share the same database client, LLM client and catalog.
    """
    pipeline = settings.pipeline

    lookup = EntityLookupRepository(db_client, timeout_seconds=pipeline.lookup_timeout_seconds)
    heuristics = HeuristicResolver(
        lookup,
        min_event_token_length=pipeline.min_event_token_length,
        min_artist_token_length=pipeline.min_artist_token_length,
        min_filter_token_length=pipeline.min_filter_token_length,
    )

    schema_cache = None
    if settings.schema_cache.enabled:
        schema_cache = SchemaCache(
            db_client,
            catalog,
            schema=settings.database.default_schema,
            ttl_seconds=settings.schema_cache.ttl_seconds,
        )

    generator = SQLGenerationRepository(
        llm_client=llm_client,
        catalog=catalog,
        fallback=KeywordSQLFallback(),
        config=settings.llm,
        schema_cache=schema_cache,
        default_limit=pipeline.default_limit,
    )
    executor = SQLExecutionRepository(db_client, timeout_seconds=pipeline.execution_timeout_seconds)
    summarizer = ResponseSummaryRepository(
        llm_client,
        settings.llm,
        sample_size=pipeline.summary_sample_rows,
        timeout_seconds=pipeline.summary_timeout_seconds,
    )

    steps = PipelineSteps(
        heuristics=heuristics,
        generator=generator,
        validator=validator,
        executor=executor,
        summarizer=summarizer,
        config=pipeline,
    )
    runner = create_pipeline_runner(pipeline.runner, steps)
    return ConversationService(runner, pipeline)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting ArteVida SQL agent", version=APP_VERSION)

    # Load settings once at startup
    settings = get_settings()
    app.state.settings = settings
    logger.info("Settings loaded successfully")

    # Invalid catalog aborts startup
    catalog = AllowedObjectCatalog.from_yaml(settings.catalog.catalog_path)
    listing = catalog.list()
    logger.info("Catalog loaded", tables=len(listing.tables), views=len(listing.views))

    # Initialize database client
    db_client = DatabaseClient(settings.database)
    try:
        await db_client.connect()
        logger.info("Database client connected successfully")
    except Exception as e:
        logger.error(f"Failed to connect database client: {e}")
        # Continue without database - health check will report status

    # Initialize LLM client (stays offline without an API key)
    llm_client = LLMClient(settings.llm)
    try:
        await llm_client.connect()
    except Exception as e:
        logger.error(f"Failed to connect LLM client: {e}")
        # Continue with the keyword fallback

    validator = build_sql_validator(settings, catalog)

    # Store shared objects in app state for dependency injection
    app.state.catalog = catalog
    app.state.db_client = db_client
    app.state.llm_client = llm_client
    app.state.sql_validator = validator
    app.state.conversation_service = build_conversation_service(
        settings, catalog, validator, db_client, llm_client
    )

    yield

    # Shutdown
    logger.info("Shutting down ArteVida SQL agent")

    if hasattr(app.state, "db_client"):
        await app.state.db_client.close()
        logger.info("Database client closed")

    if hasattr(app.state, "llm_client"):
        await app.state.llm_client.close()


# Create FastAPI application
app = FastAPI(
    title="ArteVida SQL Agent",
    description="Natural-language questions about ArteVida cultural events, answered with safe read-only SQL",
    version=APP_VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().server.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register middleware in correct order (last registered = first executed)
app.middleware("http")(logging_middleware)
app.middleware("http")(trace_id_middleware)

# Register all exception handlers (ArteVidaException, ValidationError, HTTPException, etc.)
register_exception_handlers(app)


# API Routes
@app.get("/", tags=["Root"])
async def root(settings: SettingsDep) -> Dict[str, Union[str, None]]:
    """
    Root endpoint returning basic API information.

    **Response**: Dict with message, version, trace_id, log_level
    """

    trace_id = get_trace_id()
    logger.info("Root endpoint accessed", trace_id=trace_id)

    return {
        "message": "ArteVida SQL Agent",
        "version": APP_VERSION,
        "trace_id": trace_id,
        "log_level": settings.app.log_level
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(
    db_client: OptionalDatabaseClientDep,
    llm_client: OptionalLLMClientDep,
    catalog: CatalogDep,
) -> HealthResponse:
    """
    Health check endpoint.

    **Response Model**: `HealthResponse`
    - status: healthy when the database is reachable and the LLM is either
      connected or deliberately not configured; degraded otherwise
    - database_status, llm_service_status ("offline" without an API key)
    """

    trace_id = get_trace_id()
    logger.info("Health check endpoint accessed", trace_id=trace_id)

    database_status = "not_configured"
    if db_client:
        db_health = await db_client.health_check()
        database_status = db_health.get("status", "unknown")

    llm_status = "not_configured"
    if llm_client:
        if not llm_client.is_configured():
            llm_status = "offline"
        else:
            llm_status = "healthy" if llm_client.is_connected() else "unhealthy"

    overall_status = "healthy" if (
        database_status == "healthy" and llm_status in ("healthy", "offline")
    ) else "degraded"

    listing = catalog.list()
    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc),
        version=APP_VERSION,
        database_status=database_status,
        llm_service_status=llm_status,
        catalog_objects=len(listing.tables) + len(listing.views),
    )


@app.post(
    "/api/ask",
    response_model=AskResponse,
    tags=["Agent"],
    responses={k: v for k, v in ERROR_RESPONSES.items() if k in [400, 408, 500, 503]},
)
async def ask(
    request: AskRequest,
    conversation_service: ConversationServiceDep,
) -> AskResponse:
    """
    Answer a question about the ArteVida events database.

    1. **Intent**: greetings get a fixed reply, no SQL
    2. **Heuristics**: follow-ups, named events/artists and simple filters
    3. **Generation**: LLM (or keyword fallback) for everything else
    4. **Validation**: single read-only SELECT over allowed tables/views, LIMIT enforced
    5. **Repair**: up to 2 regenerations with the validator's feedback
    6. **Execution**: read-only transaction with statement timeout
    7. **Summary**: short natural-language answer in Spanish

    **Possible Errors**:
    - 400: Invalid question or context
    - 408: Query exceeded its time budget
    - 503: Database unavailable
    """
    trace_id = get_trace_id()
    start = time.perf_counter()

    logger.info(
        "Question received",
        question_length=len(request.question),
        context_turns=len(request.conversation_context),
        trace_id=trace_id,
    )

    result = await conversation_service.run(request.question, request.conversation_context)
    execution_time_ms = round((time.perf_counter() - start) * 1000, 2)

    logger.info(
        "Question answered",
        intent=result.intent.value,
        row_count=len(result.rows),
        attempts=result.attempts,
        degraded=result.degraded,
        execution_time_ms=execution_time_ms,
        trace_id=trace_id,
    )

    return AskResponse(
        trace_id=trace_id,
        sql=result.sql,
        rows=result.rows,
        explanation=result.explanation,
        natural_response=result.natural_response,
        execution_time_ms=execution_time_ms,
        attempts=result.attempts,
        intent=result.intent,
        degraded=result.degraded,
    )


@app.post(
    "/api/validate",
    response_model=ValidateSqlResponse,
    tags=["Agent"],
    responses={k: v for k, v in ERROR_RESPONSES.items() if k in [400, 500]},
)
async def validate_sql(
    request: ValidateSqlRequest,
    validator: SQLValidatorDep,
) -> ValidateSqlResponse:
    """
    Check a statement against the safety rules without executing it.

    With `raise_on_invalid`, a rejection is answered with a 400
    SQL_VALIDATION_ERROR instead of `valid=false`.
    """
    result = validator.validate(request.sql)

    logger.info(
        "SQL validated",
        valid=result.valid,
        error_kind=result.error_kind.value if result.error_kind else None,
        trace_id=get_trace_id(),
    )

    if request.raise_on_invalid:
        error = error_for(result)
        if error is not None:
            raise error

    return ValidateSqlResponse(
        valid=result.valid,
        sanitized_sql=result.sanitized_sql,
        error_kind=result.error_kind,
        message=result.message,
    )


# FastAPI app is now ready to be imported and run by uvicorn or other ASGI servers
# Use scripts/run_dev.py for development or scripts/run_prod.py in production
