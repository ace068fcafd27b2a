"""Shared fixtures: an in-memory HTTP session and small engine configs."""

from __future__ import annotations

import threading
from typing import Any, Callable

import pytest
from requests.structures import CaseInsensitiveDict

from cache_validator.config import ValidatorConfig
from cache_validator.fetcher import Fetcher
from cache_validator.providers import ProviderRegistry


class FakeResponse:
    """The subset of `requests.Response` the fetcher reads."""

    def __init__(
        self,
        status_code: int = 200,
        *,
        headers: dict[str, str] | None = None,
        body: bytes | str = b"",
        reason: str | None = None,
        url: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers or {})
        self.content = body.encode("utf-8") if isinstance(body, str) else body
        self.reason = reason if reason is not None else ("OK" if status_code < 400 else "Error")
        self.url = url

    def close(self) -> None:
        pass


def html_page(body: str, **headers: str) -> FakeResponse:
    merged = {"content-type": "text/html; charset=utf-8"}
    merged.update({key.replace("_", "-"): value for key, value in headers.items()})
    return FakeResponse(200, headers=merged, body=f"<html><body>{body}</body></html>")


Route = Any


class FakeSession:
    """Thread-safe stand-in for `requests.Session`.

    Routes are keyed by (METHOD, url). A route is a response, an exception to
    raise, or a list consumed one entry per request (the last entry repeats).
    `default` handles every unrouted request.
    """

    def __init__(
        self,
        routes: dict[tuple[str, str], Route] | None = None,
        *,
        default: Callable[[str, str, dict[str, str]], FakeResponse] | None = None,
    ) -> None:
        self.routes: dict[tuple[str, str], Route] = dict(routes or {})
        self.default = default
        self.calls: list[tuple[str, str, dict[str, str]]] = []
        self._lock = threading.Lock()
        self.closed = False

    def request(self, method: str, url: str, headers=None, timeout=None, allow_redirects=True):
        method = method.upper()
        with self._lock:
            self.calls.append((method, url, dict(headers or {})))
            route = self.routes.get((method, url))
            if isinstance(route, list):
                route = route.pop(0) if len(route) > 1 else route[0]

        if route is None:
            if self.default is not None:
                return self.default(method, url, dict(headers or {}))
            return FakeResponse(404, reason="Not Found", url=url)
        if isinstance(route, BaseException):
            raise route
        if route.url is None:
            route.url = url
        return route

    def count(self, method: str, url: str) -> int:
        with self._lock:
            return sum(1 for call in self.calls if call[0] == method and call[1] == url)

    def urls(self, method: str) -> list[str]:
        with self._lock:
            return [call[1] for call in self.calls if call[0] == method]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def config() -> ValidatorConfig:
    return ValidatorConfig(
        crawl_concurrency=4,
        image_concurrency=8,
        backoff_initial_seconds=0.0,
        timeout_seconds=1.0,
    )


@pytest.fixture
def registry(config: ValidatorConfig) -> ProviderRegistry:
    return ProviderRegistry.from_config(config)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_fetcher(config: ValidatorConfig, sleeps: list[float]):
    def factory(session: FakeSession, *, cfg: ValidatorConfig | None = None) -> Fetcher:
        return Fetcher(cfg or config, session_factory=lambda: session, sleep=sleeps.append)

    return factory
