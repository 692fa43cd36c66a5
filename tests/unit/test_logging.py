import pytest
from artevida.utils.logging import _add_module_info, _add_trace_id, configure_logging, get_logger
from artevida.utils.tracing import current_trace_id, generate_trace_id, get_trace_id, trace_id_var, trace_scope


def test_logger_configuration():
    configure_logging()
    logger = get_logger("test")
    assert logger is not None


def test_trace_id_generation():
    trace_id = generate_trace_id()
    assert len(trace_id) == 36  # UUID format
    assert '-' in trace_id


def test_trace_scope_restores_previous_id():
    before = current_trace_id()
    with trace_scope("outer"):
        with trace_scope("inner") as inner:
            assert inner == "inner"
            assert current_trace_id() == "inner"
        assert current_trace_id() == "outer"
    assert current_trace_id() == before


def test_trace_scope_generates_id():
    with trace_scope() as trace_id:
        assert len(trace_id) == 36
        assert get_trace_id() == trace_id


def test_trace_id_added_to_log_records():
    with trace_scope("abc-123"):
        event = _add_trace_id(None, "info", {"event": "x"})
    assert event["trace_id"] == "abc-123"


def test_explicit_none_trace_id_dropped_outside_requests():
    token = trace_id_var.set(None)
    try:
        event = _add_trace_id(None, "info", {"event": "x", "trace_id": None})
    finally:
        trace_id_var.reset(token)
    assert "trace_id" not in event


@pytest.mark.parametrize("logger_name,module", [
    ("artevida.repositories.sql_validation", "repositories.sql_validation"),
    ("uvicorn.error", "uvicorn.error"),
])
def test_module_info(logger_name, module):
    event = _add_module_info(None, "info", {"logger": logger_name})
    assert event["module"] == module
