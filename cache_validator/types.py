"""Core type definitions shared by the crawl and validation components.

This module is intentionally dependency-light so other modules can import
shared records without introducing cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping
from uuid import uuid4


class Severity(str, Enum):
    """Severity level attached to every emitted event."""

    VERBOSE = "VERBOSE"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


class EventKind(str, Enum):
    """Whether an event describes a resource or carries free text."""

    HEAD = "head"
    MESSAGE = "message"


class ResourceType(str, Enum):
    PAGE = "PAGE"
    IMG = "IMG"
    OTHER = "OTHER"


class LifecycleStatus(str, Enum):
    PENDING = "PENDING"
    DONE = "DONE"
    ERROR = "ERROR"


class CacheClassification(str, Enum):
    """Outcome of matching a provider's cache header value."""

    CACHED = "CACHED"
    UNCACHED = "UNCACHED"
    OTHER = "OTHER"
    ERROR = "ERROR"
    NONE = ""


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


def utc_now_iso() -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision."""

    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def new_event_id() -> str:
    return uuid4().hex


def _as_value_set(values: Iterable[Any] | None, key: str) -> frozenset[str]:
    if values is None:
        return frozenset()
    if isinstance(values, (str, bytes)):
        raise ValueError(f"'{key}' must be a list of strings, got {values!r}")
    return frozenset(str(value) for value in values)


@dataclass(frozen=True, slots=True)
class ProviderProfile:
    """A CDN/edge platform and the literal values of its cache-status header."""

    name: str
    cache_header: str
    cached: frozenset[str] = field(default_factory=frozenset)
    uncached: frozenset[str] = field(default_factory=frozenset)
    other: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("ProviderProfile requires a name")
        if not self.cache_header or not self.cache_header.strip():
            raise ValueError(f"Provider {self.name!r} requires a cache_header")

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProviderProfile":
        return cls(
            name=str(payload.get("name", "")).strip(),
            cache_header=str(payload.get("cache_header", "")).strip().lower(),
            cached=_as_value_set(payload.get("cached"), "cached"),
            uncached=_as_value_set(payload.get("uncached"), "uncached"),
            other=_as_value_set(payload.get("other"), "other"),
        )

    def to_json(self) -> JSONDict:
        return {
            "name": self.name,
            "cache_header": self.cache_header,
            "cached": sorted(self.cached),
            "uncached": sorted(self.uncached),
            "other": sorted(self.other),
        }


@dataclass(frozen=True, slots=True)
class ResourceHead:
    """Resource-status payload of a `head` event."""

    url: str
    resource_type: ResourceType
    status: LifecycleStatus
    response_status: int | None = None
    content_type: str | None = None
    accept: str | None = None
    provider: str | None = None
    cache: CacheClassification = CacheClassification.NONE

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "type": self.resource_type.value,
            "status": self.status.value,
            "response_status": self.response_status,
            "content_type": self.content_type,
            "accept": self.accept,
            "provider": self.provider,
            "cache": self.cache.value,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "ResourceHead":
        response_status = payload.get("response_status")
        return cls(
            url=str(payload["url"]),
            resource_type=ResourceType(payload.get("type", ResourceType.OTHER.value)),
            status=LifecycleStatus(payload.get("status", LifecycleStatus.PENDING.value)),
            response_status=None if response_status is None else int(response_status),
            content_type=payload.get("content_type"),
            accept=payload.get("accept"),
            provider=payload.get("provider"),
            cache=CacheClassification(payload.get("cache") or ""),
        )


@dataclass(frozen=True, slots=True)
class ValidationEvent:
    """One immutable record of the event stream."""

    level: Severity
    kind: EventKind
    head: ResourceHead | None = None
    message: str | None = None
    time: str = field(default_factory=utc_now_iso)
    id: str = field(default_factory=new_event_id)

    @classmethod
    def resource(
        cls,
        head: ResourceHead,
        *,
        level: Severity = Severity.INFO,
        message: str | None = None,
    ) -> "ValidationEvent":
        return cls(level=level, kind=EventKind.HEAD, head=head, message=message)

    @classmethod
    def text(
        cls,
        message: str,
        *,
        level: Severity = Severity.INFO,
        head: ResourceHead | None = None,
    ) -> "ValidationEvent":
        return cls(level=level, kind=EventKind.MESSAGE, head=head, message=message)

    @property
    def url(self) -> str | None:
        return None if self.head is None else self.head.url

    @property
    def is_terminal(self) -> bool:
        """True for the event that closes a resource's lifecycle."""

        if self.head is None:
            return False
        return self.head.status in {LifecycleStatus.DONE, LifecycleStatus.ERROR}

    def to_json(self) -> JSONDict:
        return {
            "time": self.time,
            "id": self.id,
            "level": self.level.value,
            "type": self.kind.value,
            "head": None if self.head is None else self.head.to_json(),
            "message": self.message,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "ValidationEvent":
        head = payload.get("head")
        return cls(
            level=Severity(payload["level"]),
            kind=EventKind(payload["type"]),
            head=None if not head else ResourceHead.from_json(head),
            message=payload.get("message"),
            time=str(payload.get("time") or utc_now_iso()),
            id=str(payload.get("id") or new_event_id()),
        )


@dataclass(frozen=True, slots=True)
class ValidationRequest:
    """Validated inbound invocation of the engine."""

    seed_url: str
    image_formats: tuple[str, ...]
    preferred_provider_name: str | None = None

    @property
    def accept_headers(self) -> list[str]:
        return [f"image/{image_format}" for image_format in self.image_formats]


@dataclass(frozen=True, slots=True)
class ImageBatchRequest:
    """Parameters of the worker fan-out sub-protocol."""

    image_urls: tuple[str, ...]
    accept_header: str
    preferred_provider_name: str | None = None

    def to_json(self) -> JSONDict:
        return {
            "image_urls": list(self.image_urls),
            "accept_header": self.accept_header,
            "preferred_provider_name": self.preferred_provider_name,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "ImageBatchRequest":
        return cls(
            image_urls=tuple(str(url) for url in payload.get("image_urls", [])),
            accept_header=str(payload["accept_header"]),
            preferred_provider_name=payload.get("preferred_provider_name"),
        )


@dataclass(slots=True)
class FetchResult:
    """Final response of a (possibly retried) request."""

    requested_url: str
    final_url: str | None
    status_code: int
    reason: str | None
    headers: Mapping[str, str]
    body: bytes | None
    method: str = "GET"
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def retries(self) -> int:
        return max(0, self.attempts - 1)

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def is_html(self) -> bool:
        """True when the body should be parsed for links and images."""

        normalized = (self.content_type or "").split(";", maxsplit=1)[0].strip().lower()
        return not normalized or normalized in {"text/html", "application/xhtml+xml"}


@dataclass(frozen=True, slots=True)
class CrawlResult:
    """Pages visited and images discovered by one crawl invocation."""

    visited_pages: frozenset[str]
    discovered_images: frozenset[str]


__all__ = [
    "CacheClassification",
    "CrawlResult",
    "EventKind",
    "FetchResult",
    "ImageBatchRequest",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "LifecycleStatus",
    "ProviderProfile",
    "ResourceHead",
    "ResourceType",
    "Severity",
    "ValidationEvent",
    "ValidationRequest",
    "new_event_id",
    "utc_now_iso",
]
