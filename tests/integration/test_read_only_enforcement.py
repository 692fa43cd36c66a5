"""
Integration tests for read-only enforcement and statement timeouts.

User queries run inside a READ ONLY transaction with a local
statement_timeout; writes must fail inside PostgreSQL even if the
validator were bypassed.

Usage:
    pytest tests/integration/test_read_only_enforcement.py -v --run-integration

Requirements:
    - DATABASE__DATABASE_URL must be set in .env
"""

import pytest

from artevida.config import get_settings
from artevida.domain.errors import QueryTimeoutError, SqlExecutionError
from artevida.infrastructure.database_client import DatabaseClient
from artevida.repositories.sql_execution import SQLExecutionRepository


@pytest.fixture
def database_config():
    """Get database configuration from settings."""
    settings = get_settings()
    return settings.database


@pytest.fixture
async def db_client(database_config):
    """Create and connect database client."""
    client = DatabaseClient(database_config)
    await client.connect()
    yield client
    if client.is_connected():
        await client.close()


@pytest.mark.integration
class TestReadOnlyEnforcement:
    """Test read-only enforcement at transaction level."""

    @pytest.mark.asyncio
    async def test_read_operations_work_in_read_only_mode(self, db_client):
        rows = await db_client.execute_query(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'public'
            LIMIT 1
            """,
            read_only=True,
        )
        assert isinstance(rows, list)

    @pytest.mark.asyncio
    async def test_write_operations_blocked_in_read_only_mode(self, db_client):
        """Writes fail with a SQL error when read_only=True."""
        with pytest.raises(SqlExecutionError):
            await db_client.execute_query("CREATE TEMP TABLE test_read_only (id INT)", read_only=True)

    @pytest.mark.asyncio
    async def test_write_operations_work_with_read_only_false(self, db_client):
        """The same statement succeeds outside a read-only transaction."""
        await db_client.execute_query(
            "CREATE TEMP TABLE IF NOT EXISTS test_read_write (id INT)", read_only=False
        )

    @pytest.mark.asyncio
    async def test_statement_timeout(self, db_client):
        with pytest.raises(QueryTimeoutError):
            await db_client.execute_query("SELECT pg_sleep(2)", timeout=0.2, read_only=True)


@pytest.mark.integration
class TestExecutionRepository:

    @pytest.mark.asyncio
    async def test_events_view(self, db_client):
        repo = SQLExecutionRepository(db_client, timeout_seconds=5)

        rows = await repo.execute("SELECT * FROM vw_eventos_proximos LIMIT 5")

        assert len(rows) <= 5

    @pytest.mark.asyncio
    async def test_unknown_column_is_sql_error(self, db_client):
        repo = SQLExecutionRepository(db_client, timeout_seconds=5)

        with pytest.raises(SqlExecutionError):
            await repo.execute("SELECT columna_inexistente FROM Evento LIMIT 1")
