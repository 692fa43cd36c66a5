import structlog
import logging
import inspect
import json
from typing import Any, Optional
from artevida.config import get_settings
from artevida.utils.tracing import current_trace_id

# Module-level flag to prevent multiple configuration
_logging_configured = False


def _add_module_info(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """
    Custom processor to add a short module name to log records.

    "artevida.repositories.sql_validation" is logged as "repositories.sql_validation".
    """
    logger_name = event_dict.get('logger', 'unknown')

    if logger_name.startswith('artevida.'):
        module_parts = logger_name.split('.')
        event_dict['module'] = '.'.join(module_parts[-2:])
    else:
        event_dict['module'] = logger_name

    return event_dict


def _add_trace_id(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """Attach the request trace ID when the caller did not pass one explicitly."""
    if event_dict.get('trace_id') is None:
        trace_id = current_trace_id()
        if trace_id is not None:
            event_dict['trace_id'] = trace_id
        else:
            event_dict.pop('trace_id', None)
    return event_dict


def _pretty_json_renderer(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> str:
    """
    Pretty JSON renderer with proper indentation and formatting.

    Non-ASCII text (Spanish questions, artist names) is kept readable.
    """
    return json.dumps(event_dict, indent=2, ensure_ascii=False, default=str)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Optional level override; defaults to APP__LOG_LEVEL
    """

    global _logging_configured

    # ---- guard: run only once ----
    if _logging_configured:
        return
    _logging_configured = True

    if level is None:
        level = get_settings().app.log_level.value

    # Configure stdlib logging
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level),
        handlers=[logging.StreamHandler()]
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,  # Adds 'logger' field with module name
            structlog.stdlib.add_log_level,    # Adds 'level' field
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),  # Adds 'timestamp' field (ISO8601)
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _add_trace_id,
            _add_module_info,
            _pretty_json_renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name, typically __name__ to get the module name

    Returns:
        Configured structlog logger with pretty JSON output

    Usage:
        logger = get_logger(__name__)
        logger.info("SQL validated", attempts=1)

        # Output (pretty formatted JSON):
        # {
        #   "event": "SQL validated",
        #   "attempts": 1,
        #   "logger": "artevida.services.pipeline_steps",
        #   "level": "info",
        #   "timestamp": "2026-01-22T10:30:00Z",
        #   "trace_id": "abc-123",
        #   "module": "services.pipeline_steps"
        # }
    """
    return structlog.get_logger(name)


def get_module_logger() -> structlog.stdlib.BoundLogger:
    """
    Get a logger for the calling module automatically.

    Returns:
        Configured structlog logger for the calling module

    Note:
        Falls back to 'unknown' module name if frame inspection fails.
    """
    module_name = 'unknown'
    frame = None

    try:
        frame = inspect.currentframe()
        if frame is not None and frame.f_back is not None:
            module_name = frame.f_back.f_globals.get('__name__', 'unknown')
    except (AttributeError, RuntimeError):
        # Frame inspection can fail in some environments (e.g., some REPL implementations)
        pass
    finally:
        # Clean up frame references to avoid potential memory leaks
        if frame is not None:
            del frame

    return get_logger(module_name)
