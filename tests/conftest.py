import pytest
import requests
from fastapi.testclient import TestClient

import main
from database import LocalDataSource, DataSource, DataSourceError
from state import build_state


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else str(payload))

    def json(self):
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; answers from a (method, path) table."""

    def __init__(self, routes=None, error=None):
        self.routes = routes or {}
        self.error = error
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        path = url.rsplit("/", 1)[-1]
        return self.routes.get((method, path), FakeResponse(404, {"error": "Not Found"}))


class FailingSource(DataSource):
    """A remote store that loads fine but rejects every write."""

    name = "failing"

    def __init__(self, snapshot):
        self.snapshot = snapshot

    def load(self):
        return self.snapshot

    def save(self, entity):
        raise DataSourceError("database is read-only", status_code=500)

    def remove(self, kind, entity_id):
        raise DataSourceError("database is read-only", status_code=500)

    def patch(self, kind, entity_id, fields):
        raise DataSourceError("database is read-only", status_code=500)


@pytest.fixture
def store_path(tmp_path):
    return str(tmp_path / "store.json")


@pytest.fixture
def local(store_path):
    return LocalDataSource(store_path)


@pytest.fixture
def state(local):
    return build_state(None, local)


@pytest.fixture
def client(state, monkeypatch):
    monkeypatch.setattr(main, "_state", state)
    monkeypatch.setattr(main, "_startup_error", None)
    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection refused")
