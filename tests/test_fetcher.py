"""Tests for the retrying fetcher."""

from __future__ import annotations

import pytest
import requests

from cache_validator.config import ValidatorConfig
from cache_validator.errors import FetchCancelledError, TerminalFetchError, TransientFetchError
from cache_validator.fetcher import Fetcher

from conftest import FakeResponse, FakeSession


URL = "https://example.com/image.png"


class TestFetcher:
    def test_success_on_first_attempt(self, make_fetcher):
        session = FakeSession({("GET", URL): FakeResponse(200, body=b"ok")})
        retries: list[tuple[int, int, str]] = []

        result = make_fetcher(session).fetch(URL, on_retry=lambda *args: retries.append(args))

        assert result.ok
        assert result.attempts == 1
        assert result.retries == 0
        assert result.body == b"ok"
        assert retries == []

    def test_network_failures_exhaust_three_attempts(self, make_fetcher):
        session = FakeSession({("HEAD", URL): requests.Timeout("timed out")})
        retries: list[tuple[int, int, str]] = []

        with pytest.raises(TerminalFetchError) as excinfo:
            make_fetcher(session).fetch(URL, method="HEAD", on_retry=lambda *args: retries.append(args))

        assert session.count("HEAD", URL) == 3
        assert [(attempt, total) for attempt, total, _ in retries] == [(2, 3), (3, 3)]
        assert excinfo.value.attempts == 3
        assert isinstance(excinfo.value.last_error, TransientFetchError)
        assert "Timeout" in str(excinfo.value)

    def test_backoff_doubles_from_initial_delay(self, sleeps):
        config = ValidatorConfig(backoff_initial_seconds=1.0, backoff_multiplier=2.0)
        session = FakeSession({("GET", URL): requests.ConnectionError("reset")})
        fetcher = Fetcher(config, session_factory=lambda: session, sleep=sleeps.append)

        with pytest.raises(TerminalFetchError):
            fetcher.fetch(URL)

        assert sleeps == [1.0, 2.0]

    def test_error_status_is_retried_then_returned(self, make_fetcher):
        session = FakeSession({("GET", URL): FakeResponse(503, reason="Service Unavailable")})
        retries: list[str] = []

        result = make_fetcher(session).fetch(URL, on_retry=lambda _a, _t, reason: retries.append(reason))

        assert session.count("GET", URL) == 3
        assert result.status_code == 503
        assert result.attempts == 3
        assert result.retries == 2
        assert retries == ["HTTP 503 Service Unavailable"] * 2

    def test_recovers_after_transient_failure(self, make_fetcher):
        session = FakeSession(
            {("GET", URL): [requests.ConnectionError("reset"), FakeResponse(200, body=b"ok")]}
        )

        result = make_fetcher(session).fetch(URL)

        assert result.ok
        assert result.attempts == 2
        assert result.retries == 1

    def test_attempts_override(self, make_fetcher):
        session = FakeSession({("GET", URL): requests.ConnectionError("reset")})

        with pytest.raises(TerminalFetchError):
            make_fetcher(session).fetch(URL, attempts=1)

        assert session.count("GET", URL) == 1

    def test_cancelled_before_first_attempt(self, make_fetcher):
        session = FakeSession({("GET", URL): FakeResponse(200)})

        with pytest.raises(FetchCancelledError):
            make_fetcher(session).fetch(URL, cancelled=lambda: True)

        assert session.calls == []

    def test_cancellation_stops_retries(self, make_fetcher):
        session = FakeSession({("GET", URL): requests.ConnectionError("reset")})
        state = {"cancel": False}

        def cancel_after_first(*_args) -> None:
            state["cancel"] = True

        fetcher = make_fetcher(session)
        with pytest.raises(FetchCancelledError):
            # Attempt 2 is already under way when the flag flips; attempt 3 never starts.
            fetcher.fetch(URL, on_retry=cancel_after_first, cancelled=lambda: state["cancel"])

        assert session.count("GET", URL) == 2

    def test_head_requests_have_no_body_and_carry_headers(self, make_fetcher):
        session = FakeSession(
            {("HEAD", URL): FakeResponse(200, headers={"Content-Type": "image/avif"}, body=b"x")}
        )

        result = make_fetcher(session).fetch(URL, method="head", headers={"Accept": "image/avif"})

        assert result.body == b""
        assert result.content_type == "image/avif"
        method, _, sent_headers = session.calls[0]
        assert method == "HEAD"
        assert sent_headers["Accept"] == "image/avif"
        assert sent_headers["User-Agent"] == "cache-validator/1.0"

    def test_closed_fetcher_refuses_work(self, make_fetcher):
        session = FakeSession({("GET", URL): FakeResponse(200)})
        fetcher = make_fetcher(session)
        fetcher.close()

        with pytest.raises(FetchCancelledError):
            fetcher.fetch(URL)
