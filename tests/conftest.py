import importlib

import pytest

import tfl_client
import tube_proxy
import tube_settings


_ENV_KEYS = [
    "LOG_LEVEL",
    "TFL_BASE_URL",
    "TFL_APP_ID",
    "TFL_APP_KEY",
    "TFL_CONNECT_TIMEOUT_SEC",
    "TFL_READ_TIMEOUT_SEC",
    "STATIONS_MODE",
    "STATIONS_STOP_TYPE",
    "METADATA_CACHE_SEC",
    "DIRECTIONS_CACHE_SEC",
    "CACHE_STALE_SEC",
    "DIRECTIONS_TRAIN_LIMIT",
    "TRAINS_LIMIT",
    "CORS_ALLOWED_ORIGINS",
    "CORS_ALLOW_NULL_ORIGIN",
]


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Stands in for requests.Session; routes are keyed on the TfL path."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def get(self, url, params=None, timeout=None, headers=None):
        path = url[len(tube_settings.TFL_BASE):]
        self.calls.append({"path": path, "params": params, "timeout": timeout})
        route = self.routes.get(path)
        if route is None:
            return FakeResponse({"message": "not found"}, 404)
        if isinstance(route, Exception):
            raise route
        status, payload = route
        return FakeResponse(payload, status)

    @property
    def paths(self):
        return [call["path"] for call in self.calls]


@pytest.fixture(autouse=True)
def load_settings(monkeypatch):
    def _load(**env):
        for key in _ENV_KEYS:
            monkeypatch.delenv(key, raising=False)
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        return importlib.reload(tube_settings)

    _load()
    yield _load
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    importlib.reload(tube_settings)


@pytest.fixture
def fake_tfl(monkeypatch):
    def _install(routes):
        session = FakeSession(routes)
        monkeypatch.setattr(tfl_client, "session", session)
        return session

    return _install


@pytest.fixture
def client():
    return tube_proxy.app.test_client()
