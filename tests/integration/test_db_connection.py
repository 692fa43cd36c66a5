"""
Integration tests for DatabaseClient connection.

This module verifies basic connectivity to the ArteVida PostgreSQL database.

Usage:
    # Run all database connection tests
    pytest tests/integration/test_db_connection.py -v --run-integration

    # Run specific test
    pytest tests/integration/test_db_connection.py::TestDatabaseConnection::test_basic_connection -v --run-integration
"""

import pytest

from artevida.config import get_settings
from artevida.domain.errors import DatabaseUnavailableError
from artevida.infrastructure.database_client import DatabaseClient


@pytest.fixture
def db_config():
    """Get database configuration from settings."""
    settings = get_settings()
    return settings.database


@pytest.fixture
async def db_client(db_config):
    """Create and connect database client."""
    client = DatabaseClient(db_config)
    await client.connect()
    yield client
    if client.is_connected():
        await client.close()


@pytest.mark.integration
class TestDatabaseConnection:
    """Integration tests for database connectivity."""

    @pytest.mark.asyncio
    async def test_basic_connection(self, db_config):
        """Test basic database connection and disconnection."""
        client = DatabaseClient(db_config)

        # Test connection
        await client.connect()
        assert client.is_connected()

        # Test disconnection
        await client.close()
        assert not client.is_connected()

    @pytest.mark.asyncio
    async def test_simple_query(self, db_client):
        """Test simple query execution."""
        rows = await db_client.execute_query("SELECT 1 AS uno")
        assert rows == [{"uno": 1}]

    @pytest.mark.asyncio
    async def test_parameters(self, db_client):
        rows = await db_client.execute_query("SELECT $1::text AS ciudad", params=["Madrid"])
        assert rows == [{"ciudad": "Madrid"}]

    @pytest.mark.asyncio
    async def test_health_check(self, db_client):
        health = await db_client.health_check()
        assert health["status"] == "healthy"
        assert health["connected"] is True

    @pytest.mark.asyncio
    async def test_query_after_close(self, db_config):
        client = DatabaseClient(db_config)
        await client.connect()
        await client.close()

        with pytest.raises(DatabaseUnavailableError):
            await client.execute_query("SELECT 1")

    @pytest.mark.asyncio
    async def test_config_applied(self, db_config, db_client):
        """Test that configuration is properly applied."""
        assert db_client.config == db_config
        assert db_client.config.default_schema == db_config.default_schema
        assert db_client.config.connection_pool_max_size == db_config.connection_pool_max_size
