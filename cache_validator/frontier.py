"""Thread-safe crawl state: visited pages, discovered images, work queue."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .types import CrawlResult
from .url import same_origin


class EnqueueStatus(str, Enum):
    """Result status for frontier enqueue attempts."""

    ENQUEUED = "enqueued"
    SKIPPED_OTHER_ORIGIN = "skipped_other_origin"
    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_CLOSED = "skipped_closed"


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of one enqueue attempt."""

    status: EnqueueStatus
    url: str

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED


class Frontier:
    """Work queue shared by the crawl workers of one invocation.

    - URLs are marked visited at enqueue time; check-and-insert happens under
      one lock, so a page reachable from several pages is queued once.
    - Only URLs with the seed's origin are accepted.
    - The discovered-images set lives under the same lock.
    """

    def __init__(self, seed_url: str) -> None:
        self.seed_url = seed_url

        self._queue: queue.Queue[str] = queue.Queue()
        self._lock = threading.Lock()

        self._visited: set[str] = set()
        self._images: set[str] = set()

        self._enqueued_count = 0
        self._dequeued_count = 0
        self._skipped_seen_count = 0
        self._skipped_origin_count = 0

        self._closed = False

    def push(self, url: str) -> EnqueueResult:
        """Enqueue `url` unless it is off-origin or already visited."""

        if not same_origin(url, self.seed_url):
            with self._lock:
                self._skipped_origin_count += 1
            return EnqueueResult(EnqueueStatus.SKIPPED_OTHER_ORIGIN, url)

        with self._lock:
            if self._closed:
                return EnqueueResult(EnqueueStatus.SKIPPED_CLOSED, url)

            if url in self._visited:
                self._skipped_seen_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_SEEN, url)

            self._visited.add(url)
            self._queue.put(url)
            self._enqueued_count += 1

        return EnqueueResult(EnqueueStatus.ENQUEUED, url)

    def push_many(self, urls: Iterable[str]) -> list[EnqueueResult]:
        return [self.push(url) for url in sorted(urls)]

    def add_images(self, urls: Iterable[str]) -> int:
        """Add image URLs to the shared set; return how many were new."""

        with self._lock:
            before = len(self._images)
            self._images.update(urls)
            return len(self._images) - before

    def pop(self, *, timeout: float | None = None) -> str | None:
        """Pop one page URL for a worker thread, or None on timeout."""

        try:
            url = self._queue.get(block=True, timeout=timeout)
        except queue.Empty:
            return None

        with self._lock:
            self._dequeued_count += 1
        return url

    def task_done(self) -> None:
        self._queue.task_done()

    def join(self) -> None:
        """Block until every queued page has been processed."""

        self._queue.join()

    def close(self) -> None:
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def result(self) -> CrawlResult:
        with self._lock:
            return CrawlResult(
                visited_pages=frozenset(self._visited),
                discovered_images=frozenset(self._images),
            )

    def snapshot(self) -> dict[str, int | bool]:
        """Return frontier counters for logs."""

        with self._lock:
            return {
                "closed": self._closed,
                "queue_size": self._queue.qsize(),
                "visited": len(self._visited),
                "images": len(self._images),
                "enqueued": self._enqueued_count,
                "dequeued": self._dequeued_count,
                "skipped_seen": self._skipped_seen_count,
                "skipped_other_origin": self._skipped_origin_count,
            }


__all__ = [
    "EnqueueResult",
    "EnqueueStatus",
    "Frontier",
]
