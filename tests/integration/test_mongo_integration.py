"""Integration tests for DocumentClient over a real MongoDB replica set."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from docstore.backends.memory import InMemoryBackend
from docstore.client import DocumentClient, open_client
from docstore.exceptions import (CollectionUnavailableError,
                                 DocumentAlreadyExistsError,
                                 DocumentNotFoundError, QueryError)
from docstore.observability.health import HealthStatus, check_backend_health


@asynccontextmanager
async def scratch_client(config):
    """Open a client and drop its database afterwards."""
    async with open_client(config) as client:
        try:
            yield client
        finally:
            await client.backend.connection.mongo_client.drop_database(config.db_name)


@pytest.mark.integration
@pytest.mark.asyncio
class TestMongoIntegration:
    """Integration tests against MongoDB."""

    async def test_insert_with_id_then_read(self, integration_config):
        async with scratch_client(integration_config) as client:
            data = {"name": "Alice", "tags": ["a", "b"], "address": {"city": "Oslo"}}

            await client.insert_with_id("users", "alice", data)

            assert await client.read("users", "alice") == data

    async def test_duplicate_insert_with_id(self, integration_config):
        async with scratch_client(integration_config) as client:
            await client.insert_with_id("users", "alice", {"n": 1})

            with pytest.raises(DocumentAlreadyExistsError):
                await client.insert_with_id("users", "alice", {"n": 2})

            assert await client.read("users", "alice") == {"n": 1}

    async def test_concurrent_insert_with_id(self, integration_config):
        async with scratch_client(integration_config) as client:
            # Create the collection up front; collection creation inside
            # concurrent transactions conflicts on older servers
            await client.insert("users", {"seed": True})

            results = await asyncio.gather(
                *(client.insert_with_id("users", "shared", {"n": i}) for i in range(5)),
                return_exceptions=True,
            )

            assert results.count(None) == 1
            assert sum(isinstance(r, DocumentAlreadyExistsError) for r in results) == 4

    async def test_insert_and_exists(self, integration_config):
        async with scratch_client(integration_config) as client:
            document_id = await client.insert("users", {"name": "Bob"})

            assert await client.exists("users", document_id) is True
            assert await client.exists("users", "missing") is False
            assert await client.exists("nope", "missing") is False
            assert await client.read("users", document_id) == {"name": "Bob"}

    async def test_read_errors(self, integration_config):
        async with scratch_client(integration_config) as client:
            await client.insert("users", {})

            with pytest.raises(DocumentNotFoundError):
                await client.read("users", "nobody")
            with pytest.raises(CollectionUnavailableError):
                await client.read("orders", "o1")

    async def test_where(self, integration_config):
        async with scratch_client(integration_config) as client:
            await client.insert_with_id("people", "a", {"status": "active", "age": 30})
            await client.insert_with_id("people", "b", {"status": "inactive", "age": 40})
            await client.insert_with_id("people", "c", {"age": 50})

            assert await client.where("people", "status", "==", "active") == {
                "a": {"status": "active", "age": 30}
            }
            assert set(await client.where("people", "status", "!=", "active")) == {"b"}
            assert set(await client.where("people", "age", ">=", 40)) == {"b", "c"}
            assert await client.exists("people", "d") is False

            with pytest.raises(QueryError):
                await client.where("people", "age", "between", [1, 2])

    async def test_health(self, integration_config):
        async with scratch_client(integration_config) as client:
            result = await check_backend_health(client)
            assert result.status in (HealthStatus.HEALTHY, HealthStatus.DEGRADED)


ARRAY_DOCS = {
    "a": {"tags": ["x", "y"], "scores": [1, 10]},
    "b": {"tags": "z", "scores": 3},
    "c": {"tags": None, "scores": []},
}


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field, op, value",
    [
        ("tags", "==", "x"),
        ("tags", "!=", "x"),
        ("tags", "in", ["x", "z"]),
        ("tags", "not-in", ["x"]),
        ("tags", "==", ["x", "y"]),
        ("tags", "==", None),
        ("tags", "array-contains", "x"),
        ("scores", ">", 5),
        ("scores", "<=", 3),
        ("scores", "array-contains-any", [10, 99]),
    ],
)
async def test_where_matches_memory_backend(integration_config, field, op, value):
    """MongoDB and the in-memory backend select the same documents."""
    async with scratch_client(integration_config) as mongo, DocumentClient(
        InMemoryBackend()
    ) as memory:
        for document_id, data in ARRAY_DOCS.items():
            await mongo.insert_with_id("docs", document_id, data)
            await memory.insert_with_id("docs", document_id, data)

        expected = set(await memory.where("docs", field, op, value))

        assert set(await mongo.where("docs", field, op, value)) == expected


@pytest.mark.integration
@pytest.mark.asyncio
async def test_typed_values_round_trip(integration_config):
    async with scratch_client(integration_config) as client:
        oslo = timezone(timedelta(hours=1))
        data = {
            "joined": datetime(2024, 1, 1, 13, 0, 0, 123000, tzinfo=oslo),
            "balance": Decimal("1024.50"),
            "visits": 2**63 - 1,
        }

        await client.insert_with_id("users", "alice", data)
        stored = await client.read("users", "alice")

        assert stored == data
        assert stored["joined"].tzinfo is not None
        assert await client.where("users", "balance", "==", Decimal("1024.5")) == {
            "alice": stored
        }
