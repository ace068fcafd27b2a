"""Same-origin page crawl with a worker pool over a shared frontier."""

from __future__ import annotations

import logging
import threading

from .config import ValidatorConfig
from .extractor import extract
from .fetcher import Fetcher
from .frontier import Frontier
from .probe import ResourceProbe
from .providers import ProviderRegistry
from .sink import EventSink
from .types import (
    CrawlResult,
    ProviderProfile,
    ResourceType,
    Severity,
    ValidationEvent,
)
from .url import canonicalize


LOGGER = logging.getLogger(__name__)


class Crawler:
    """Traverses every page reachable from a seed without leaving its origin.

    One `Frontier` per `crawl` call holds the visited pages and discovered
    images; nothing is shared between calls. Pages are fetched by a fixed
    pool of `crawl_concurrency` threads, so at most that many page fetches
    are in flight at once, however many links a single page yields.
    """

    def __init__(
        self,
        config: ValidatorConfig,
        fetcher: Fetcher,
        registry: ProviderRegistry,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.registry = registry

    def crawl(
        self,
        seed_url: str,
        sink: EventSink,
        *,
        preferred: ProviderProfile | None = None,
    ) -> CrawlResult:
        """Visit the seed and every same-origin page linked from it."""

        seed = canonicalize(seed_url)
        frontier = Frontier(seed)
        frontier.push(seed)

        probe = ResourceProbe(self.fetcher, self.registry, sink)

        workers = [
            threading.Thread(
                target=self._worker,
                args=(frontier, probe, sink, preferred),
                name=f"crawl-worker-{idx}",
                daemon=True,
            )
            for idx in range(self.config.crawl_concurrency)
        ]
        for worker in workers:
            worker.start()

        frontier.join()
        frontier.close()

        for worker in workers:
            worker.join(timeout=5.0)

        LOGGER.info("Crawl of %s finished: %s", seed, frontier.snapshot())
        return frontier.result()

    def _worker(
        self,
        frontier: Frontier,
        probe: ResourceProbe,
        sink: EventSink,
        preferred: ProviderProfile | None,
    ) -> None:
        while True:
            url = frontier.pop(timeout=0.5)
            if url is None:
                if frontier.closed:
                    return
                continue

            try:
                if sink.closed:
                    LOGGER.debug("Stream closed; draining %s without fetching", url)
                    continue
                self._visit(url, frontier, probe, preferred)
            except Exception as exc:
                LOGGER.exception("Failed to process page %s", url)
                sink.emit(
                    ValidationEvent.text(
                        f"{url}: {exc.__class__.__name__}: {exc}",
                        level=Severity.ERROR,
                    )
                )
            finally:
                frontier.task_done()

    def _visit(
        self,
        url: str,
        frontier: Frontier,
        probe: ResourceProbe,
        preferred: ProviderProfile | None,
    ) -> None:
        outcome = probe.run(url, ResourceType.PAGE, preferred=preferred)
        if outcome is None or not outcome.result.is_html:
            return

        found = extract(outcome.result.body or b"", url)
        new_images = frontier.add_images(found.images)
        accepted = sum(1 for result in frontier.push_many(found.links) if result.accepted)
        LOGGER.debug(
            "%s: %d links (%d new pages), %d images (%d new)",
            url,
            len(found.links),
            accepted,
            len(found.images),
            new_images,
        )


__all__ = ["Crawler"]
