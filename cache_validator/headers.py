"""Cache-status header interpretation across registered providers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping

from requests.structures import CaseInsensitiveDict

from .providers import ProviderRegistry
from .types import CacheClassification, ProviderProfile, Severity

if TYPE_CHECKING:
    from .fetcher import Fetcher


LOGGER = logging.getLogger(__name__)

SEVERITY_BY_CLASSIFICATION: dict[CacheClassification, Severity] = {
    CacheClassification.CACHED: Severity.SUCCESS,
    CacheClassification.UNCACHED: Severity.WARNING,
    CacheClassification.OTHER: Severity.WARNING,
    CacheClassification.ERROR: Severity.WARNING,
    CacheClassification.NONE: Severity.WARNING,
}


@dataclass(frozen=True, slots=True)
class HeaderClassification:
    """Which provider answered, with what value, and what it means."""

    provider: ProviderProfile | None
    raw_status: str | None
    classification: CacheClassification
    content_type: str | None
    severity: Severity

    @property
    def provider_name(self) -> str | None:
        return None if self.provider is None else self.provider.name


def _classify_value(provider: ProviderProfile, value: str) -> CacheClassification:
    if value in provider.cached:
        return CacheClassification.CACHED
    if value in provider.uncached:
        return CacheClassification.UNCACHED
    # Present header with an unlisted value still belongs to this provider.
    return CacheClassification.OTHER


def classify(
    headers: Mapping[str, str],
    preferred: ProviderProfile | None,
    registry: ProviderRegistry,
) -> HeaderClassification:
    """Classify response headers against the preferred provider, then the rest.

    The first provider (preferred first, then registry order) whose cache
    header is present decides the result.
    """

    lookup = headers if isinstance(headers, CaseInsensitiveDict) else CaseInsensitiveDict(headers)
    content_type = lookup.get("content-type")

    candidates: list[ProviderProfile] = []
    if preferred is not None:
        candidates.append(preferred)
    candidates.extend(
        provider
        for provider in registry.all()
        if preferred is None or provider.name != preferred.name
    )

    for provider in candidates:
        if provider.cache_header not in lookup:
            continue
        raw_status = (lookup.get(provider.cache_header) or "").strip()
        classification = _classify_value(provider, raw_status)
        return HeaderClassification(
            provider=provider,
            raw_status=raw_status,
            classification=classification,
            content_type=content_type,
            severity=SEVERITY_BY_CLASSIFICATION[classification],
        )

    return HeaderClassification(
        provider=None,
        raw_status=None,
        classification=CacheClassification.NONE,
        content_type=content_type,
        severity=SEVERITY_BY_CLASSIFICATION[CacheClassification.NONE],
    )


def detect_provider(
    fetcher: "Fetcher",
    url: str,
    registry: ProviderRegistry,
) -> ProviderProfile | None:
    """Probe `url` once with HEAD and name the first provider whose header is present."""

    result = fetcher.fetch(url, method="HEAD", attempts=1)
    if not result.ok:
        LOGGER.info("Provider probe for %s returned HTTP %s", url, result.status_code)
        return None

    lookup = CaseInsensitiveDict(result.headers)
    for provider in registry.all():
        if provider.cache_header in lookup:
            return provider
    return None


__all__ = [
    "HeaderClassification",
    "SEVERITY_BY_CLASSIFICATION",
    "classify",
    "detect_provider",
]
