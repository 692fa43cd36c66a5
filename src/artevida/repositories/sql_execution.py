"""
SQL Execution Repository.

Executes validator-approved SQL against the ArteVida database.

Safety Features:
- Read-only enforcement: every statement runs in a read-only transaction
- Timeout protection: statement_timeout inside PostgreSQL plus an
  asyncio.wait_for bound around the whole call
- Errors mapped to ExecutionError subclasses (timeout, unavailable, SQL error)

Usage:
    repo = SQLExecutionRepository(db_client, timeout_seconds=15)
    rows = await repo.execute("SELECT * FROM vw_eventos_proximos LIMIT 200")
"""

import asyncio
import time
from typing import Any, Dict, List

from artevida.domain.errors import QueryTimeoutError
from artevida.infrastructure.database_client import DatabaseClient
from artevida.utils.logging import get_module_logger
from artevida.utils.tracing import current_trace_id

logger = get_module_logger()


class SQLExecutionRepository:
    """
    Repository for SQL execution.

    Executes validated SQL with read-only enforcement.
    """

    def __init__(self, db_client: DatabaseClient, timeout_seconds: float = 15.0):
        self.db_client = db_client
        self.timeout_seconds = timeout_seconds

    async def execute(self, sanitized_sql: str) -> List[Dict[str, Any]]:
        """
        Execute validated SQL query.

        Raises:
            QueryTimeoutError: Statement or call exceeded the timeout
            DatabaseUnavailableError: Database unreachable
            SqlExecutionError: PostgreSQL rejected the statement
        """
        trace_id = current_trace_id()

        logger.info(
            "Executing SQL query",
            sql_length=len(sanitized_sql),
            timeout=self.timeout_seconds,
            trace_id=trace_id,
        )

        start = time.perf_counter()
        try:
            rows = await asyncio.wait_for(
                self.db_client.execute_query(
                    query=sanitized_sql,
                    timeout=self.timeout_seconds,
                    read_only=True,
                ),
                timeout=self.timeout_seconds + 1,
            )
        except asyncio.TimeoutError as e:
            raise QueryTimeoutError(
                f"Query exceeded {self.timeout_seconds}s",
                details={"timeout_seconds": self.timeout_seconds},
            ) from e

        execution_time_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "SQL execution successful",
            row_count=len(rows),
            execution_time_ms=round(execution_time_ms, 2),
            trace_id=trace_id,
        )
        return rows
