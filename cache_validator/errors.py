"""Error taxonomy for fetch, parse, protocol and stream failures."""

from __future__ import annotations


class CacheValidatorError(Exception):
    """Base class for all errors raised by this package."""


class FetchError(CacheValidatorError):
    """A request for `url` could not be completed."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


class TransientFetchError(FetchError):
    """One attempt failed; the fetcher may retry it."""

    def __init__(
        self,
        url: str,
        message: str,
        *,
        attempt: int,
        status_code: int | None = None,
    ) -> None:
        super().__init__(url, message)
        self.attempt = attempt
        self.status_code = status_code


class TerminalFetchError(FetchError):
    """Every attempt failed. Carries the last underlying error."""

    def __init__(self, url: str, *, attempts: int, last_error: BaseException) -> None:
        super().__init__(url, f"Failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class FetchCancelledError(FetchError):
    """The stream was closed before the next attempt could start."""

    def __init__(self, url: str) -> None:
        super().__init__(url, "Cancelled")


class ParseError(CacheValidatorError):
    """A fetched body could not be parsed at all."""


class ProtocolError(CacheValidatorError):
    """The inbound request is malformed; rejected before any work starts."""


class SinkClosedError(CacheValidatorError):
    """The consumer has gone away. Not a failure: stop emitting."""


__all__ = [
    "CacheValidatorError",
    "FetchCancelledError",
    "FetchError",
    "ParseError",
    "ProtocolError",
    "SinkClosedError",
    "TerminalFetchError",
    "TransientFetchError",
]
