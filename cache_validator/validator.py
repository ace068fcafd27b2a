"""Cache validation of discovered images under one accept header."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable

from .config import ValidatorConfig
from .fetcher import Fetcher
from .probe import ResourceProbe
from .providers import ProviderRegistry
from .sink import EventSink
from .types import ProviderProfile, ResourceType, Severity, ValidationEvent


LOGGER = logging.getLogger(__name__)


class ImageValidator:
    """HEAD-probes image URLs with a bounded pool of threads.

    The pool is created per batch, so the concurrency cap applies to one
    accept header at a time.
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

    def validate(
        self,
        image_urls: Iterable[str],
        accept_header: str,
        preferred: ProviderProfile | None,
        sink: EventSink,
    ) -> int:
        """Validate every URL; return how many were started before cancellation."""

        urls = list(image_urls)
        if not urls:
            return 0

        probe = ResourceProbe(self.fetcher, self.registry, sink)
        started = 0

        def validate_one(url: str) -> bool:
            if sink.closed:
                return False
            try:
                probe.run(
                    url,
                    ResourceType.IMG,
                    method="HEAD",
                    preferred=preferred,
                    accept=accept_header,
                )
            except Exception as exc:
                LOGGER.exception("Failed to validate image %s", url)
                sink.emit(
                    ValidationEvent.text(
                        f"{url}: {exc.__class__.__name__}: {exc}",
                        level=Severity.ERROR,
                    )
                )
            return True

        workers = max(1, min(self.config.image_concurrency, len(urls)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="image-validator") as pool:
            for ran in pool.map(validate_one, urls):
                started += int(ran)

        if sink.closed:
            LOGGER.info(
                "Validation for %s cancelled after %d of %d images",
                accept_header,
                started,
                len(urls),
            )
        else:
            LOGGER.debug("Validated %d images for %s", started, accept_header)
        return started


__all__ = ["ImageValidator"]
