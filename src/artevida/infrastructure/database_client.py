"""
Database client for the ArteVida PostgreSQL database using asyncpg.

This module provides an async database client with connection pooling,
read-only transactions for user queries, and error mapping into the
executor error categories (timeout, unavailable, SQL error).
"""

from typing import Any, Dict, List, Optional
from contextlib import asynccontextmanager
import asyncpg

from ..config import DatabaseConfig
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from ..domain.errors import (
    DatabaseConnectionError,
    DatabaseUnavailableError,
    QueryTimeoutError,
    SqlExecutionError,
)


logger = get_module_logger()

# asyncpg exceptions raised when the server or the network goes away
CONNECTION_ERRORS = (
    OSError,
    asyncpg.PostgresConnectionError,
    asyncpg.CannotConnectNowError,
    asyncpg.InterfaceError,
)


class DatabaseClient:
    """
    Low-level async PostgreSQL client using asyncpg.

    Higher-level operations (entity lookups, schema summaries, user query
    execution) live in the repository layer.

    Usage:
        client = DatabaseClient(config)
        await client.connect()

        rows = await client.execute_query(
            "SELECT id, nombre FROM Artista WHERE LOWER(nombre) LIKE $1",
            params=["%rosal%"]
        )

        # User queries run in a read-only transaction
        rows = await client.execute_query(sql, read_only=True, timeout=15)

        await client.close()
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._is_connected = False

        logger.info(
            "DatabaseClient initialized",
            default_schema=config.default_schema,
            connection_pool_size=config.connection_pool_max_size,
            query_timeout_seconds=config.query_timeout_seconds,
            application_name=config.application_name
        )

    async def connect(self) -> None:
        """
        Establish connection pool to the database.

        Raises:
            DatabaseConnectionError: If connection fails
        """
        if self._is_connected:
            logger.warning("Database client already connected")
            return

        logger.info("Establishing database connection", trace_id=current_trace_id())

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.config.database_url,
                min_size=self.config.connection_pool_min_size,
                max_size=self.config.connection_pool_max_size,
                command_timeout=self.config.query_timeout_seconds,
                timeout=self.config.connection_timeout_seconds,
                max_queries=self.config.connection_pool_max_queries,
                server_settings={
                    'application_name': self.config.application_name,
                    'search_path': self.config.default_schema,
                }
            )

            async with self._pool.acquire() as conn:
                if await conn.fetchval("SELECT 1") != 1:
                    raise DatabaseConnectionError("Connection test query failed")

            self._is_connected = True
            logger.info(
                "Database connection established successfully",
                pool_size=self.config.connection_pool_max_size,
                default_schema=self.config.default_schema
            )

        except DatabaseConnectionError:
            raise

        except asyncpg.InvalidCatalogNameError as e:
            error_msg = f"Database does not exist: {e}"
            logger.error(error_msg)
            raise DatabaseConnectionError(error_msg) from e

        except asyncpg.InvalidPasswordError as e:
            error_msg = f"Authentication failed: {e}"
            logger.error(error_msg)
            raise DatabaseConnectionError(error_msg) from e

        except Exception as e:
            error_msg = f"Failed to connect to database: {e}"
            logger.error(error_msg, error_type=type(e).__name__)
            raise DatabaseConnectionError(error_msg) from e

    async def close(self) -> None:
        """Close database connection pool."""
        logger.info("Closing database connection")

        if self._pool:
            await self._pool.close()

        self._is_connected = False
        self._pool = None

        logger.info("Database connection closed")

    def is_connected(self) -> bool:
        """Check if database client is connected."""
        return self._is_connected and self._pool is not None

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on database connection.

        Example:
            {"status": "healthy", "connected": True, "pool_size": 5}
        """
        if not self.is_connected():
            return {
                "status": "unhealthy",
                "connected": False,
                "error": "Database client not connected"
            }

        try:
            async with self.acquire_connection() as conn:
                result = await conn.fetchval("SELECT 1")

            if result != 1:
                return {
                    "status": "unhealthy",
                    "connected": True,
                    "error": "Connection test query failed"
                }

            return {
                "status": "healthy",
                "connected": True,
                "pool_size": self.config.connection_pool_max_size
            }

        except Exception as e:
            logger.error(
                "Database health check failed",
                error=str(e),
                error_type=type(e).__name__
            )
            return {
                "status": "unhealthy",
                "connected": True,
                "error": str(e)
            }

    @asynccontextmanager
    async def acquire_connection(self):
        """
        Context manager to acquire a database connection from the pool.

        Raises:
            DatabaseConnectionError: If the client is not connected
        """
        if not self.is_connected() or self._pool is None:
            raise DatabaseConnectionError("Database client is not connected")

        async with self._pool.acquire() as connection:
            yield connection

    async def execute_query(
        self,
        query: str,
        params: Optional[List[Any]] = None,
        timeout: Optional[float] = None,
        read_only: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Execute a SQL query and return results as list of dictionaries.

        Args:
            query: SQL query string
            params: Optional positional parameters ($1, $2, ...)
            timeout: Optional statement timeout in seconds
            read_only: Run inside a READ ONLY transaction

        Returns:
            List of dictionaries containing query results

        Raises:
            QueryTimeoutError: Statement cancelled by the server timeout
            DatabaseUnavailableError: Pool not connected or connection lost
            SqlExecutionError: PostgreSQL rejected the statement
        """
        logger.info(
            "Executing database query",
            query=query[:200],
            read_only=read_only,
            has_params=params is not None
        )

        try:
            async with self.acquire_connection() as conn:
                async with conn.transaction(readonly=read_only):
                    if timeout:
                        await conn.execute(f"SET LOCAL statement_timeout = {int(timeout * 1000)}")

                    rows = await conn.fetch(query, *(params or []))

            results = [dict(row) for row in rows]
            logger.info("Query executed successfully", row_count=len(results))
            return results

        except DatabaseConnectionError:
            raise

        except asyncpg.QueryCanceledError as e:
            error_msg = f"Query timeout exceeded: {e}"
            logger.error(error_msg, query=query[:200])
            raise QueryTimeoutError(error_msg) from e

        except CONNECTION_ERRORS as e:
            error_msg = f"Database unavailable: {e}"
            logger.error(error_msg, error_type=type(e).__name__)
            raise DatabaseUnavailableError(error_msg) from e

        except asyncpg.PostgresSyntaxError as e:
            error_msg = f"SQL syntax error: {e}"
            logger.error(error_msg, query=query[:200])
            raise SqlExecutionError(error_msg) from e

        except asyncpg.UndefinedTableError as e:
            error_msg = f"Table does not exist: {e}"
            logger.error(error_msg, query=query[:200])
            raise SqlExecutionError(error_msg) from e

        except asyncpg.UndefinedColumnError as e:
            error_msg = f"Column does not exist: {e}"
            logger.error(error_msg, query=query[:200])
            raise SqlExecutionError(error_msg) from e

        except asyncpg.PostgresError as e:
            error_msg = f"Query execution failed: {e}"
            logger.error(error_msg, error_type=type(e).__name__, query=query[:200])
            raise SqlExecutionError(error_msg) from e
