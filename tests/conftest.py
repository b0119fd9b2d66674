from __future__ import annotations

import httpx
import pytest

from couchdb_http.client import CouchDBClient
from couchdb_http.config import get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class RecordingHandler:
    """``httpx.MockTransport`` handler replaying canned responses in order.

    A queued callable is invoked with the request instead, which lets a test
    raise transport errors.
    """

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if callable(response):
            return response(request)
        return response

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def recording_handler() -> type[RecordingHandler]:
    """Expose the handler class to tests that build clients themselves."""

    return RecordingHandler


@pytest.fixture
def make_client():
    """Build a basic-auth client whose transport replays the given responses."""

    def _make(*responses, **config) -> tuple[CouchDBClient, RecordingHandler]:
        handler = RecordingHandler(*responses)
        client = CouchDBClient(
            "host",
            5984,
            "user",
            "pass",
            config={"transport": httpx.MockTransport(handler), **config},
        )
        return client, handler

    return _make
