import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from artevida.domain.errors import DatabaseUnavailableError
from artevida.domain.pipeline import EntityMatch
from artevida.repositories.entity_lookup import EntityLookupRepository


@pytest.fixture
def db_client():
    client = MagicMock()
    client.execute_query = AsyncMock(return_value=[])
    return client


@pytest.fixture
def lookup(db_client):
    return EntityLookupRepository(db_client, timeout_seconds=0.5)


class TestEntityLookup:

    @pytest.mark.asyncio
    async def test_event_found(self, lookup, db_client):
        db_client.execute_query.return_value = [{"evento_id": 7, "evento_nombre": "Festival de Jazz"}]

        match = await lookup.find_event(["festival", "jazz"])

        assert match == EntityMatch(id=7, canonical_name="Festival de Jazz")
        args, kwargs = db_client.execute_query.call_args
        assert "LOWER(e.nombre) LIKE $1 AND LOWER(e.nombre) LIKE $2" in args[0]
        assert kwargs["params"] == ["%festival%", "%jazz%"]
        assert kwargs["read_only"] is True

    @pytest.mark.asyncio
    async def test_artist_found(self, lookup, db_client):
        db_client.execute_query.return_value = [{"artista_id": 3, "artista_nombre": "Rosalía"}]

        match = await lookup.find_artist(["Rosalía"])

        assert match == EntityMatch(id=3, canonical_name="Rosalía")
        assert db_client.execute_query.call_args.kwargs["params"] == ["%rosalía%"]

    @pytest.mark.asyncio
    async def test_no_rows(self, lookup):
        assert await lookup.find_event(["nada"]) is None

    @pytest.mark.asyncio
    async def test_no_tokens_skips_query(self, lookup, db_client):
        assert await lookup.find_artist([]) is None
        db_client.execute_query.assert_not_called()

    @pytest.mark.asyncio
    async def test_database_error_is_no_match(self, lookup, db_client):
        db_client.execute_query.side_effect = DatabaseUnavailableError("down")

        assert await lookup.find_event(["jazz"]) is None

    @pytest.mark.asyncio
    async def test_timeout_is_no_match(self, lookup, db_client):
        async def slow(*args, **kwargs):
            await asyncio.sleep(5)

        db_client.execute_query.side_effect = slow

        assert await lookup.find_artist(["rosalía"]) is None
