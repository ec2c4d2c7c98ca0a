import pytest

from fastpress.config import RequestSettings, get_settings
from fastpress.request import Request


class OneShotStream:
    """Body stream that can only be read once, like a real request input."""

    def __init__(self, data: bytes):
        self._data = data
        self.reads = 0

    def read(self, size: int = -1) -> bytes:
        self.reads += 1
        if self.reads > 1:
            raise AssertionError("request body stream read twice")
        return self._data if size < 0 else self._data[:size]


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    return RequestSettings(_env_file=None)


@pytest.fixture
def make_request(settings):
    def _make(**kwargs):
        kwargs.setdefault("settings", settings)
        return Request(**kwargs)

    return _make


@pytest.fixture
def json_request(make_request):
    def _make(body, method="POST", **kwargs):
        server = {"REQUEST_METHOD": method, "CONTENT_TYPE": "application/json; charset=utf-8"}
        server.update(kwargs.pop("server", {}))
        return make_request(server=server, body=body, **kwargs)

    return _make
