"""End-to-end validation run: crawl, validate images, summarize."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterator, Mapping

from .config import ValidatorConfig
from .constants import DEFAULT_IMAGE_FORMATS, SUMMARY_TEMPLATE
from .crawler import Crawler
from .errors import ProtocolError
from .executors import (
    HttpWorker,
    InProcessExecutor,
    LocalWorker,
    PartitionedExecutor,
    ValidationExecutor,
)
from .fetcher import Fetcher
from .headers import detect_provider
from .providers import ProviderRegistry
from .sink import EventSink, ObservedSink, QueueSink
from .stats import StatsCollector
from .types import (
    ImageBatchRequest,
    ProviderProfile,
    Severity,
    ValidationEvent,
    ValidationRequest,
)
from .url import is_http_url
from .validator import ImageValidator


LOGGER = logging.getLogger(__name__)


def parse_request(
    payload: ValidationRequest | Mapping[str, Any],
    registry: ProviderRegistry,
) -> ValidationRequest:
    """Validate an inbound request before any work starts.

    Accepts either a `ValidationRequest` or a mapping with the keys `url`,
    `formats` and `preferred_provider`. Raises `ProtocolError` on any
    violation.
    """

    if isinstance(payload, ValidationRequest):
        seed_url: Any = payload.seed_url
        formats: Any = list(payload.image_formats)
        provider_name: Any = payload.preferred_provider_name
    elif isinstance(payload, Mapping):
        seed_url = payload.get("url")
        formats = payload.get("formats", list(DEFAULT_IMAGE_FORMATS))
        provider_name = payload.get("preferred_provider")
    else:
        raise ProtocolError(f"Request must be a mapping, got {type(payload).__name__}")

    if not isinstance(seed_url, str) or not is_http_url(seed_url.strip()):
        raise ProtocolError(f"Invalid seed URL: {seed_url!r}")

    if isinstance(formats, (str, bytes)) or not isinstance(formats, (list, tuple)):
        raise ProtocolError(f"'formats' must be a list of strings, got {formats!r}")
    cleaned_formats: list[str] = []
    for image_format in formats:
        if not isinstance(image_format, str) or not image_format.strip():
            raise ProtocolError(f"Invalid image format: {image_format!r}")
        cleaned_formats.append(image_format.strip())

    preferred_name: str | None = None
    if provider_name is not None:
        if not isinstance(provider_name, str):
            raise ProtocolError(f"'preferred_provider' must be a string, got {provider_name!r}")
        if provider_name.strip():
            profile = registry.lookup(provider_name)
            if profile is None:
                raise ProtocolError(
                    f"Unknown provider {provider_name!r}; expected one of {registry.names()}"
                )
            preferred_name = profile.name

    return ValidationRequest(
        seed_url=seed_url.strip(),
        image_formats=tuple(cleaned_formats),
        preferred_provider_name=preferred_name,
    )


def summary_message(pages: int, images: int, formats: int) -> str:
    return SUMMARY_TEMPLATE.format(
        pages=pages,
        checks=images * formats,
        images=images,
        formats=formats,
    )


class Pipeline:
    """Orchestrates crawler, image validation, executors and stats."""

    def __init__(
        self,
        config: ValidatorConfig | None = None,
        *,
        registry: ProviderRegistry | None = None,
        fetcher: Fetcher | None = None,
        stats_factory: Callable[[], StatsCollector] = StatsCollector,
    ) -> None:
        self.config = config or ValidatorConfig()
        self.registry = registry or ProviderRegistry.from_config(self.config)
        self.stats_factory = stats_factory

        self._fetcher = fetcher

    def parse(self, payload: ValidationRequest | Mapping[str, Any]) -> ValidationRequest:
        return parse_request(payload, self.registry)

    def run(
        self,
        request: ValidationRequest | Mapping[str, Any],
        sink: EventSink,
    ) -> dict[str, Any]:
        """Run one validation, writing every event to `sink`.

        The request is validated first; a `ProtocolError` leaves the sink
        untouched. Otherwise the summary message is the last event emitted,
        unless the sink was closed before the run finished.
        """

        parsed = self.parse(request)
        preferred = self.registry.lookup(parsed.preferred_provider_name)
        stats = self.stats_factory()
        observed = ObservedSink(sink, stats.record_event)

        fetcher = self._fetcher or Fetcher(self.config)
        owns_fetcher = self._fetcher is None

        LOGGER.info(
            "Validating %s (formats=%s, preferred provider=%s)",
            parsed.seed_url,
            ",".join(parsed.image_formats) or "-",
            parsed.preferred_provider_name or "-",
        )
        try:
            crawl = Crawler(self.config, fetcher, self.registry).crawl(
                parsed.seed_url,
                observed,
                preferred=preferred,
            )
            images = sorted(crawl.discovered_images)
            accept_headers = parsed.accept_headers

            executor = self.select_executor(
                image_count=len(images),
                format_count=len(accept_headers),
                page_count=len(crawl.visited_pages),
                fetcher=fetcher,
            )
            self._validate_all(executor, images, accept_headers, parsed, observed)

            observed.emit(
                ValidationEvent.text(
                    summary_message(len(crawl.visited_pages), len(images), len(accept_headers)),
                    level=Severity.INFO,
                )
            )
        finally:
            if owns_fetcher:
                fetcher.close()

        stats.finish()
        cancelled = observed.closed
        if cancelled:
            LOGGER.info("Validation of %s cancelled by the consumer", parsed.seed_url)

        return {
            "url": parsed.seed_url,
            "visited_pages": len(crawl.visited_pages),
            "images": len(images),
            "formats": list(parsed.image_formats),
            "checks": len(images) * len(accept_headers),
            "cancelled": cancelled,
            "stats": stats.to_json(),
        }

    def stream(
        self,
        request: ValidationRequest | Mapping[str, Any],
        *,
        maxsize: int = 256,
    ) -> Iterator[ValidationEvent]:
        """Run in a background thread and yield events as they are produced.

        Raises `ProtocolError` immediately for an invalid request. Closing the
        returned iterator cancels the run.
        """

        parsed = self.parse(request)
        sink = QueueSink(maxsize)

        def produce() -> None:
            try:
                self.run(parsed, sink)
            except Exception as exc:
                LOGGER.exception("Validation of %s failed", parsed.seed_url)
                sink.emit(
                    ValidationEvent.text(
                        f"Validation failed: {exc.__class__.__name__}: {exc}",
                        level=Severity.ERROR,
                    )
                )
            finally:
                sink.finish()

        producer = threading.Thread(target=produce, name="validation-run", daemon=True)
        producer.start()

        def events() -> Iterator[ValidationEvent]:
            try:
                yield from sink
            finally:
                sink.close()

        return events()

    def detect_provider(self, url: str) -> ProviderProfile | None:
        """Name the provider serving `url`, from one HEAD probe."""

        if not is_http_url(url):
            raise ProtocolError(f"Invalid URL: {url!r}")
        fetcher = self._fetcher or Fetcher(self.config)
        try:
            return detect_provider(fetcher, url, self.registry)
        finally:
            if self._fetcher is None:
                fetcher.close()

    def select_executor(
        self,
        *,
        image_count: int,
        format_count: int,
        page_count: int,
        fetcher: Fetcher,
    ) -> ValidationExecutor:
        """Pick in-process validation or chunked fan-out by total request count."""

        total = image_count * format_count + page_count
        if self.config.fanout_enabled and total > self.config.fanout_threshold:
            worker: ValidationExecutor
            if self.config.worker_endpoint:
                worker = HttpWorker(
                    self.config.worker_endpoint,
                    timeout_seconds=self.config.timeout_seconds,
                )
            else:
                worker = LocalWorker(self.config, fetcher, self.registry)
            LOGGER.info(
                "%d checks exceed the fan-out threshold of %d; using %s",
                total,
                self.config.fanout_threshold,
                type(worker).__name__,
            )
            return PartitionedExecutor(worker, self.config.fanout_chunk_size)

        return InProcessExecutor(ImageValidator(self.config, fetcher, self.registry), self.registry)

    def _validate_all(
        self,
        executor: ValidationExecutor,
        images: list[str],
        accept_headers: list[str],
        request: ValidationRequest,
        sink: EventSink,
    ) -> None:
        if not images or not accept_headers:
            return

        threads = [
            threading.Thread(
                target=self._run_batch,
                args=(
                    executor,
                    ImageBatchRequest(
                        image_urls=tuple(images),
                        accept_header=accept_header,
                        preferred_provider_name=request.preferred_provider_name,
                    ),
                    sink,
                ),
                name=f"accept-batch-{idx}",
                daemon=True,
            )
            for idx, accept_header in enumerate(accept_headers)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    @staticmethod
    def _run_batch(executor: ValidationExecutor, batch: ImageBatchRequest, sink: EventSink) -> None:
        try:
            executor.run(batch, sink)
        except Exception as exc:
            LOGGER.exception("Image batch for %s failed", batch.accept_header)
            sink.emit(
                ValidationEvent.text(
                    f"Image validation for {batch.accept_header} failed: {exc}",
                    level=Severity.ERROR,
                )
            )


__all__ = [
    "Pipeline",
    "parse_request",
    "summary_message",
]
