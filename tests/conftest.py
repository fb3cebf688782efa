import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

T0 = datetime(2026, 10, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class Router:
    """httpx.MockTransport handler: maps request paths to canned responses and counts calls."""

    def __init__(self):
        self.routes: dict[str, object] = {}
        self.calls: dict[str, int] = {}
        self.requests: list[httpx.Request] = []

    def add(self, path: str, response) -> None:
        """response: JSON-able body, an httpx.Response, or a callable(request) -> either."""
        self.routes[path] = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls[path] = self.calls.get(path, 0) + 1
        self.requests.append(request)
        if path not in self.routes:
            return httpx.Response(404, json={"error": "not found"})
        response = self.routes[path]
        if callable(response):
            response = response(request)
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, content=json.dumps(response), headers={"content-type": "application/json"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def router():
    return Router()
