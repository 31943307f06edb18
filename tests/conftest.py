import asyncio

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from database import get_store
from main import app


@pytest.fixture
def store():
    return AsyncMongoMockClient()["blog_demo"]["posts"]


@pytest.fixture
def client(store):
    # no lifespan: the mock collection replaces the real connection
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def seed(store):
    """Insert raw documents straight into the collection, return their ids as strings"""
    def _seed(*docs):
        result = asyncio.run(store.insert_many([dict(d) for d in docs]))
        return [str(i) for i in result.inserted_ids]
    return _seed


@pytest.fixture
def fetch(store):
    def _fetch(query=None):
        return asyncio.run(store.find(query or {}).to_list(length=None))
    return _fetch
