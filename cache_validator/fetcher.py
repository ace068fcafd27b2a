"""HTTP fetching with bounded retries and exponential backoff."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping

import requests
from requests.structures import CaseInsensitiveDict

from .config import ValidatorConfig
from .errors import FetchCancelledError, TerminalFetchError, TransientFetchError
from .types import FetchResult


LOGGER = logging.getLogger(__name__)

RetryCallback = Callable[[int, int, str], None]
CancelCheck = Callable[[], bool]


@dataclass(frozen=True, slots=True)
class _AttemptConfig:
    attempts: int
    backoff_seconds: float
    multiplier: float

    def delay_after(self, attempt: int) -> float:
        return self.backoff_seconds * (self.multiplier ** (attempt - 1))


class Fetcher:
    """Perform one logical HTTP request with retries.

    Concurrency model:
    - Each worker thread gets its own `requests.Session`; sessions are not
      shared across threads.
    - Network failures and non-2xx responses are retried identically. After
      the last attempt a non-2xx response is returned for the caller to
      inspect, while a network failure raises `TerminalFetchError`.
    """

    def __init__(
        self,
        config: ValidatorConfig | None = None,
        *,
        session_factory: Callable[[], requests.Session] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or ValidatorConfig()

        self._session_factory = session_factory or requests.Session
        self._sleep = sleep
        self._thread_local = threading.local()

        self._closed = False
        self._closed_lock = threading.Lock()

    def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        on_retry: RetryCallback | None = None,
        cancelled: CancelCheck | None = None,
        attempts: int | None = None,
    ) -> FetchResult:
        """Fetch one URL, retrying failed attempts with exponential backoff."""

        attempt_cfg = _AttemptConfig(
            attempts=max(1, attempts if attempts is not None else self.config.fetch_attempts),
            backoff_seconds=max(0.0, self.config.backoff_initial_seconds),
            multiplier=self.config.backoff_multiplier,
        )
        request_headers = self.config.headers_for(headers)

        last_error: TransientFetchError | None = None
        for attempt in range(1, attempt_cfg.attempts + 1):
            if self._is_closed() or (cancelled is not None and cancelled()):
                raise FetchCancelledError(url)

            if last_error is not None:
                if on_retry is not None:
                    on_retry(attempt, attempt_cfg.attempts, str(last_error))
                delay = attempt_cfg.delay_after(attempt - 1)
                LOGGER.warning(
                    "Retrying %s %s in %.1fs (attempt %d of %d): %s",
                    method,
                    url,
                    delay,
                    attempt,
                    attempt_cfg.attempts,
                    last_error,
                )
                if delay > 0:
                    self._sleep(delay)

            try:
                result = self._fetch_once(url, method=method, headers=request_headers, attempt=attempt)
            except TransientFetchError as exc:
                last_error = exc
                continue

            if result.ok or attempt == attempt_cfg.attempts:
                return result

            last_error = TransientFetchError(
                url,
                f"HTTP {result.status_code} {result.reason or ''}".strip(),
                attempt=attempt,
                status_code=result.status_code,
            )

        if last_error is None:
            last_error = TransientFetchError(url, "Unknown fetch failure", attempt=attempt_cfg.attempts)
        raise TerminalFetchError(url, attempts=attempt_cfg.attempts, last_error=last_error)

    def close(self) -> None:
        """Close the fetcher and the calling thread's session."""

        with self._closed_lock:
            self._closed = True

        session = getattr(self._thread_local, "session", None)
        if session is not None:
            session.close()
            self._thread_local.session = None

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _is_closed(self) -> bool:
        with self._closed_lock:
            return self._closed

    def _fetch_once(
        self,
        url: str,
        *,
        method: str,
        headers: Mapping[str, str],
        attempt: int,
    ) -> FetchResult:
        session = self._thread_local_session()

        try:
            response = session.request(
                method,
                url,
                headers=dict(headers),
                timeout=self.config.timeout_seconds,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            raise TransientFetchError(
                url,
                f"{exc.__class__.__name__}: {exc}",
                attempt=attempt,
            ) from exc

        body = b"" if method.upper() == "HEAD" else response.content
        return FetchResult(
            requested_url=url,
            final_url=response.url or url,
            status_code=response.status_code,
            reason=response.reason,
            headers=CaseInsensitiveDict(response.headers),
            body=body,
            method=method.upper(),
            attempts=attempt,
        )

    def _thread_local_session(self) -> requests.Session:
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = self._session_factory()
            self._thread_local.session = session
        return session


__all__ = ["Fetcher"]
