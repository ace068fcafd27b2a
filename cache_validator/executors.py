"""Where an image batch runs: in-process, or split across workers.

Every executor takes the same `ImageBatchRequest` and writes the same events
into the caller's sink. Workers talk to the coordinator only through encoded
event records, whether they run in this process or behind an HTTP endpoint.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Mapping, Protocol

import requests

from .config import ValidatorConfig
from .constants import DEFAULT_FANOUT_CHUNK_SIZE, WORKER_COMPLETE_MESSAGE
from .errors import ProtocolError
from .fetcher import Fetcher
from .providers import ProviderRegistry
from .sink import ChannelSink, EventSink, decode_event, iter_records
from .types import EventKind, ImageBatchRequest, ProviderProfile, Severity, ValidationEvent
from .validator import ImageValidator


LOGGER = logging.getLogger(__name__)


class ValidationExecutor(Protocol):
    """Validate one image batch and stream its events into `sink`."""

    def run(self, batch: ImageBatchRequest, sink: EventSink) -> None: ...


def _resolve_preferred(registry: ProviderRegistry, name: str | None) -> ProviderProfile | None:
    preferred = registry.lookup(name)
    if name and preferred is None:
        raise ProtocolError(f"Unknown provider: {name}")
    return preferred


def is_worker_complete(event: ValidationEvent) -> bool:
    return (
        event.kind == EventKind.MESSAGE
        and event.head is None
        and event.message == WORKER_COMPLETE_MESSAGE
    )


def _relay(event: ValidationEvent, sink: EventSink, worker_name: str) -> None:
    if is_worker_complete(event):
        LOGGER.info("%s: %s", worker_name, event.message)
        return
    sink.emit(event)


def run_image_batch(
    payload: ImageBatchRequest | Mapping[str, Any],
    sink: EventSink,
    *,
    config: ValidatorConfig,
    fetcher: Fetcher,
    registry: ProviderRegistry,
) -> None:
    """Worker entry point: validate a batch, then announce completion."""

    batch = payload if isinstance(payload, ImageBatchRequest) else ImageBatchRequest.from_json(payload)
    preferred = _resolve_preferred(registry, batch.preferred_provider_name)

    ImageValidator(config, fetcher, registry).validate(
        batch.image_urls,
        batch.accept_header,
        preferred,
        sink,
    )
    sink.emit(ValidationEvent.text(WORKER_COMPLETE_MESSAGE, level=Severity.INFO))


class InProcessExecutor:
    """Runs the batch on this process's thread pool, writing straight to the sink."""

    def __init__(self, validator: ImageValidator, registry: ProviderRegistry) -> None:
        self.validator = validator
        self.registry = registry

    def run(self, batch: ImageBatchRequest, sink: EventSink) -> None:
        preferred = _resolve_preferred(self.registry, batch.preferred_provider_name)
        self.validator.validate(batch.image_urls, batch.accept_header, preferred, sink)


class LocalWorker:
    """A worker in this process that only exchanges encoded records.

    The request is serialized to JSON and parsed back, and every event is
    encoded by the worker and decoded by the coordinator, so the boundary is
    the same one an `HttpWorker` crosses.
    """

    name = "local-worker"

    def __init__(
        self,
        config: ValidatorConfig,
        fetcher: Fetcher,
        registry: ProviderRegistry,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.registry = registry

    def run(self, batch: ImageBatchRequest, sink: EventSink) -> None:
        request_body = json.dumps(batch.to_json())

        def receive(record: str) -> None:
            _relay(decode_event(record), sink, self.name)

        channel = ChannelSink(receive, cancelled=lambda: sink.closed)
        run_image_batch(
            json.loads(request_body),
            channel,
            config=self.config,
            fetcher=self.fetcher,
            registry=self.registry,
        )


class HttpWorker:
    """Delegates a batch to a remote worker endpoint.

    The endpoint receives the batch as a JSON body and answers with a
    streamed body of newline-delimited event records.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        self.session = session
        self.name = f"http-worker {endpoint}"

    def run(self, batch: ImageBatchRequest, sink: EventSink) -> None:
        poster = self.session or requests
        response = poster.post(
            self.endpoint,
            json=batch.to_json(),
            stream=True,
            timeout=self.timeout_seconds,
        )
        try:
            response.raise_for_status()
            for event in iter_records(response.iter_content(chunk_size=None)):
                if sink.closed:
                    LOGGER.info("Stream closed; dropping %s response", self.name)
                    return
                _relay(event, sink, self.name)
        finally:
            response.close()


class PartitionedExecutor:
    """Splits a batch into chunks and runs each chunk on a worker in parallel.

    Events from all chunks are merged into one sink in arrival order. A chunk
    that fails outright is reported as an ERROR message; the others go on.
    """

    def __init__(
        self,
        worker: ValidationExecutor,
        chunk_size: int = DEFAULT_FANOUT_CHUNK_SIZE,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        self.worker = worker
        self.chunk_size = chunk_size

    def partition(self, batch: ImageBatchRequest) -> list[ImageBatchRequest]:
        urls = batch.image_urls
        return [
            ImageBatchRequest(
                image_urls=tuple(urls[start : start + self.chunk_size]),
                accept_header=batch.accept_header,
                preferred_provider_name=batch.preferred_provider_name,
            )
            for start in range(0, len(urls), self.chunk_size)
        ]

    def run(self, batch: ImageBatchRequest, sink: EventSink) -> None:
        chunks = self.partition(batch)
        if not chunks:
            return

        LOGGER.info(
            "Fanning out %d images for %s into %d chunks",
            len(batch.image_urls),
            batch.accept_header,
            len(chunks),
        )
        with ThreadPoolExecutor(max_workers=len(chunks), thread_name_prefix="fanout") as pool:
            futures = [pool.submit(self.worker.run, chunk, sink) for chunk in chunks]
            for chunk, future in zip(chunks, futures):
                try:
                    future.result()
                except (requests.RequestException, ValueError, ProtocolError) as exc:
                    LOGGER.exception(
                        "Worker failed for %d images (%s)",
                        len(chunk.image_urls),
                        chunk.accept_header,
                    )
                    sink.emit(
                        ValidationEvent.text(
                            f"Worker failed for {len(chunk.image_urls)} images "
                            f"({chunk.accept_header}): {exc}",
                            level=Severity.ERROR,
                        )
                    )


__all__ = [
    "HttpWorker",
    "InProcessExecutor",
    "LocalWorker",
    "PartitionedExecutor",
    "ValidationExecutor",
    "is_worker_complete",
    "run_image_batch",
]
