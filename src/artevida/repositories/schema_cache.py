"""
Live schema summary for generation prompts.

Reads the actual columns of the catalog objects from
information_schema and keeps the rendered text for a fixed TTL.
The summary is advisory: the validator only trusts the catalog.
"""

import time
from typing import Callable, Dict, List, Optional, Tuple

from artevida.infrastructure.database_client import DatabaseClient
from artevida.utils.logging import get_module_logger
from artevida.repositories.catalog import AllowedObjectCatalog


logger = get_module_logger()

SCHEMA_COLUMNS_QUERY = """
SELECT table_name, column_name
FROM information_schema.columns
WHERE table_schema = $1
  AND LOWER(table_name) = ANY($2::text[])
ORDER BY table_name, ordinal_position
"""


class SchemaCache:
    """
    TTL cache around one rendered schema summary.

    The cached value is a single (text, fetched_at) tuple replaced as a
    whole, so readers never see a half-built entry. Two requests that
    refresh at the same time both fetch and the last write wins.
    """

    def __init__(
        self,
        db_client: DatabaseClient,
        catalog: AllowedObjectCatalog,
        schema: str = "public",
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.db_client = db_client
        self.catalog = catalog
        self.schema = schema
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[Tuple[str, float]] = None

    async def get(self) -> str:
        """Return the cached summary, refreshing it when stale. Empty string on failure."""
        entry = self._entry
        now = self._clock()
        if entry is not None and now - entry[1] < self.ttl_seconds:
            return entry[0]

        try:
            text = await self._build_summary()
        except Exception as e:
            logger.warning(
                "Schema summary refresh failed",
                error=str(e),
                error_type=type(e).__name__
            )
            return ""

        self._entry = (text, self._clock())
        return text

    def invalidate(self) -> None:
        self._entry = None

    async def _build_summary(self) -> str:
        names = [name.lower() for name in self.catalog.names()]
        rows = await self.db_client.execute_query(
            SCHEMA_COLUMNS_QUERY,
            params=[self.schema, names]
        )

        columns: Dict[str, List[str]] = {}
        for row in rows:
            columns.setdefault(str(row["table_name"]).lower(), []).append(str(row["column_name"]))

        listing = self.catalog.list()
        lines: List[str] = ["Tablas:"]
        lines.extend(self._render(name, columns) for name in listing.tables if name.lower() in columns)
        lines.append("Vistas:")
        lines.extend(self._render(name, columns) for name in listing.views if name.lower() in columns)

        logger.info("Schema summary refreshed", objects=len(columns))
        return "\n".join(lines)

    @staticmethod
    def _render(name: str, columns: Dict[str, List[str]]) -> str:
        return f"- {name}({', '.join(columns[name.lower()])})"
