"""One resource's lifecycle: PENDING, retries, classification, terminal event."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .constants import NO_CACHE_HEADER_MESSAGE
from .errors import FetchCancelledError, TerminalFetchError
from .fetcher import Fetcher
from .headers import HeaderClassification, classify
from .providers import ProviderRegistry
from .sink import EventSink
from .types import (
    CacheClassification,
    FetchResult,
    LifecycleStatus,
    ProviderProfile,
    ResourceHead,
    ResourceType,
    Severity,
    ValidationEvent,
)


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProbeOutcome:
    result: FetchResult
    classification: HeaderClassification


def terminal_messages(result: FetchResult, classification: HeaderClassification) -> list[str]:
    """Human-readable notes carried by a DONE event."""

    messages: list[str] = []
    if result.status_code >= 400:
        messages.append(f"HTTP {result.status_code} {result.reason or ''}".strip())
    if classification.provider is None:
        messages.append(NO_CACHE_HEADER_MESSAGE)
    if result.retries:
        messages.append(f"Retried {result.retries} times")
    return messages


class ResourceProbe:
    """Fetch one resource and narrate its lifecycle into a sink.

    Emits exactly one PENDING event, zero or more retry narrations, then one
    terminal event: DONE on a response, or an ERROR-level message event when
    every attempt failed. Nothing is emitted once the sink is closed.
    """

    def __init__(self, fetcher: Fetcher, registry: ProviderRegistry, sink: EventSink) -> None:
        self.fetcher = fetcher
        self.registry = registry
        self.sink = sink

    def run(
        self,
        url: str,
        resource_type: ResourceType,
        *,
        method: str = "GET",
        preferred: ProviderProfile | None = None,
        accept: str | None = None,
    ) -> ProbeOutcome | None:
        if self.sink.closed:
            return None

        self.sink.emit(
            ValidationEvent.resource(
                ResourceHead(url, resource_type, LifecycleStatus.PENDING, accept=accept),
                level=Severity.INFO,
            )
        )

        def narrate_retry(attempt: int, max_attempts: int, reason: str) -> None:
            self.sink.emit(
                ValidationEvent.resource(
                    ResourceHead(url, resource_type, LifecycleStatus.PENDING, accept=accept),
                    level=Severity.VERBOSE,
                    message=f"Attempt {attempt - 1} of {max_attempts} failed ({reason}); retrying",
                )
            )

        headers = {"Accept": accept} if accept else None
        try:
            result = self.fetcher.fetch(
                url,
                method=method,
                headers=headers,
                on_retry=narrate_retry,
                cancelled=lambda: self.sink.closed,
            )
        except FetchCancelledError:
            LOGGER.debug("Cancelled before fetching %s", url)
            return None
        except TerminalFetchError as exc:
            LOGGER.info("Giving up on %s: %s", url, exc)
            self.sink.emit(
                ValidationEvent.text(
                    f"{url}: {exc}",
                    level=Severity.ERROR,
                    head=ResourceHead(
                        url,
                        resource_type,
                        LifecycleStatus.ERROR,
                        accept=accept,
                        cache=CacheClassification.ERROR,
                    ),
                )
            )
            return None

        classification = classify(result.headers, preferred, self.registry)
        level = Severity.ERROR if result.status_code >= 400 else classification.severity
        messages = terminal_messages(result, classification)

        self.sink.emit(
            ValidationEvent.resource(
                ResourceHead(
                    url,
                    resource_type,
                    LifecycleStatus.DONE,
                    response_status=result.status_code,
                    content_type=classification.content_type,
                    accept=accept,
                    provider=classification.provider_name,
                    cache=classification.classification,
                ),
                level=level,
                message="; ".join(messages) or None,
            )
        )
        return ProbeOutcome(result=result, classification=classification)


__all__ = [
    "ProbeOutcome",
    "ResourceProbe",
    "terminal_messages",
]
