"""
Entity Lookup Repository.

Fuzzy name resolution for events and artists, used by the heuristics
to turn "el concierto de Rosalía" into a concrete row. Lookups are
parameterized, time-bounded and never cached; any failure is reported
as "no match" so the heuristics fall through.
"""

import asyncio
from typing import List, Optional, Sequence

from artevida.domain.pipeline import EntityMatch
from artevida.infrastructure.database_client import DatabaseClient
from artevida.utils.logging import get_module_logger

logger = get_module_logger()


def _like_conditions(column: str, count: int) -> str:
    return " AND ".join(f"LOWER({column}) LIKE ${index}" for index in range(1, count + 1))


def _like_params(tokens: Sequence[str]) -> List[str]:
    return [f"%{token.lower()}%" for token in tokens]


class EntityLookupRepository:
    """
    Resolves event and artist names against the live database.

    Every token must appear in the name; the newest event (by date) or
    the most recently added artist wins.
    """

    def __init__(self, db_client: DatabaseClient, timeout_seconds: float = 3.0):
        self.db_client = db_client
        self.timeout_seconds = timeout_seconds

    async def find_event(self, tokens: Sequence[str]) -> Optional[EntityMatch]:
        """Most recent event whose name contains every token."""
        if not tokens:
            return None
        query = (
            "SELECT e.id AS evento_id, e.nombre AS evento_nombre "
            "FROM Evento e "
            f"WHERE {_like_conditions('e.nombre', len(tokens))} "
            "ORDER BY e.fecha_hora DESC LIMIT 1"
        )
        return await self._lookup("event", query, tokens, "evento_id", "evento_nombre")

    async def find_artist(self, tokens: Sequence[str]) -> Optional[EntityMatch]:
        """Most recently added artist whose name contains every token."""
        if not tokens:
            return None
        query = (
            "SELECT id AS artista_id, nombre AS artista_nombre "
            "FROM Artista "
            f"WHERE {_like_conditions('nombre', len(tokens))} "
            "ORDER BY id DESC LIMIT 1"
        )
        return await self._lookup("artist", query, tokens, "artista_id", "artista_nombre")

    async def _lookup(
        self,
        entity: str,
        query: str,
        tokens: Sequence[str],
        id_column: str,
        name_column: str,
    ) -> Optional[EntityMatch]:
        try:
            rows = await asyncio.wait_for(
                self.db_client.execute_query(query, params=_like_params(tokens), read_only=True),
                timeout=self.timeout_seconds
            )
        except Exception as e:
            logger.warning(
                "Entity lookup failed",
                entity=entity,
                tokens=list(tokens),
                error=str(e),
                error_type=type(e).__name__
            )
            return None

        if not rows:
            logger.info("Entity lookup found no match", entity=entity, tokens=list(tokens))
            return None

        match = EntityMatch(id=int(rows[0][id_column]), canonical_name=str(rows[0][name_column]))
        logger.info("Entity resolved", entity=entity, entity_id=match.id, name=match.canonical_name)
        return match
