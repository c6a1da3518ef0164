import mongomock
import pytest

import movies
from movies_db import MongoConnection


class RecordingFactory:
    """Client factory that hands out one client and counts the calls."""

    def __init__(self, client=None, error: Exception | None = None):
        self.client = client
        self.error = error
        self.calls: list[tuple[str, dict]] = []

    def __call__(self, uri, **options):
        self.calls.append((uri, options))
        if self.error is not None:
            raise self.error
        return self.client


@pytest.fixture
def mongo_client():
    return mongomock.MongoClient()


@pytest.fixture
def database(mongo_client):
    return mongo_client["moviesDB"]


@pytest.fixture
def factory(mongo_client):
    return RecordingFactory(client=mongo_client)


@pytest.fixture
def connection(factory, monkeypatch):
    conn = MongoConnection("mongodb://test", "moviesDB", client_factory=factory)
    monkeypatch.setattr(movies, "connection", conn)
    return conn


@pytest.fixture
def client(connection):
    return movies.app.test_client()
