"""
Fixtures for integration tests against a real MongoDB replica set.

Set DOCSTORE_TEST_MONGO_URI to use an existing replica set. Otherwise a
MongoDB Atlas Local container (a single-node replica set) is started with
testcontainers; without either, the tests are skipped.
"""

import os
import uuid

import pytest

from docstore.config import ClientConfig


@pytest.fixture(scope="session")
def mongo_uri():
    """Connection string of a replica set usable for transactions."""
    uri = os.getenv("DOCSTORE_TEST_MONGO_URI")
    if uri:
        yield uri
        return

    try:
        from testcontainers.mongodb import MongoDbContainer
    except ImportError:
        pytest.skip(
            "Set DOCSTORE_TEST_MONGO_URI or install testcontainers: pip install -e '.[test]'"
        )

    with MongoDbContainer(image="mongodb/mongodb-atlas-local:latest") as container:
        exposed_port = container.get_exposed_port(27017)
        yield f"mongodb://localhost:{exposed_port}/?directConnection=true"


@pytest.fixture
def integration_config(mongo_uri) -> ClientConfig:
    """Config pointing at a database unique to the test."""
    return ClientConfig(
        mongo_uri=mongo_uri,
        db_name=f"docstore_test_{uuid.uuid4().hex[:12]}",
        max_pool_size=10,
        min_pool_size=1,
        default_timeout=30,
    )
