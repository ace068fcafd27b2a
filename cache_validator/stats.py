"""Thread-safe run statistics built from the event stream."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
import threading
from typing import Any, Mapping

from .types import (
    EventKind,
    LifecycleStatus,
    Severity,
    ValidationEvent,
    utc_now_iso,
)


class StatsCollector:
    """Collect and summarize validation runtime statistics.

    The collector is thread-safe; the pipeline feeds it every delivered event
    through an `ObservedSink`.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

        self._started_at = utc_now_iso()
        self._finished_at: str | None = None

        self._events_total = 0
        self._level_counts: dict[str, int] = defaultdict(int)
        self._kind_counts: dict[str, int] = defaultdict(int)

        self._resource_status_counts: dict[str, dict[str, int]] = defaultdict(
            lambda: {status.value: 0 for status in LifecycleStatus}
        )
        self._cache_counts: dict[str, int] = defaultdict(int)
        self._provider_counts: dict[str, int] = defaultdict(int)
        self._status_code_counts: dict[str, int] = defaultdict(int)
        self._accept_counts: dict[str, int] = defaultdict(int)

        self._retry_narrations = 0
        self._error_messages = 0

    def record_event(self, event: ValidationEvent) -> None:
        """Record one delivered event."""

        with self._lock:
            self._events_total += 1
            self._level_counts[event.level.value] += 1
            self._kind_counts[event.kind.value] += 1

            head = event.head
            if head is None:
                if event.level == Severity.ERROR:
                    self._error_messages += 1
                return

            resource = head.resource_type.value
            self._resource_status_counts[resource][head.status.value] += 1

            if head.status == LifecycleStatus.PENDING:
                # Retry narrations are PENDING head events that carry a message.
                if event.kind == EventKind.HEAD and event.message:
                    self._retry_narrations += 1
                return

            if head.status == LifecycleStatus.ERROR:
                self._error_messages += 1

            self._cache_counts[head.cache.value or "none"] += 1
            if head.provider:
                self._provider_counts[head.provider] += 1
            if head.response_status is not None:
                self._status_code_counts[str(head.response_status)] += 1
            if head.accept:
                self._accept_counts[head.accept] += 1

    def finish(self) -> None:
        """Mark the run as finished."""

        with self._lock:
            self._finished_at = utc_now_iso()

    def terminal_count(self, resource_type: str) -> int:
        with self._lock:
            counts = self._resource_status_counts.get(resource_type, {})
            return int(counts.get(LifecycleStatus.DONE.value, 0)) + int(
                counts.get(LifecycleStatus.ERROR.value, 0)
            )

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serializable summary payload."""

        with self._lock:
            start = _parse_iso_utc(self._started_at)
            end = (
                _parse_iso_utc(self._finished_at)
                if self._finished_at
                else datetime.now(timezone.utc)
            )
            duration_seconds = max(0.0, (end - start).total_seconds())

            return {
                "started_at": self._started_at,
                "finished_at": self._finished_at,
                "duration_seconds": duration_seconds,
                "events_total": self._events_total,
                "events_per_second": (
                    self._events_total / duration_seconds if duration_seconds > 0 else 0.0
                ),
                "by_level": dict(self._level_counts),
                "by_kind": dict(self._kind_counts),
                "resources": _as_plain_nested_count_dict(self._resource_status_counts),
                "cache": dict(self._cache_counts),
                "providers": dict(self._provider_counts),
                "status_code_counts": dict(self._status_code_counts),
                "accept_counts": dict(self._accept_counts),
                "retry_narrations": self._retry_narrations,
                "error_messages": self._error_messages,
            }


def _as_plain_nested_count_dict(
    value: Mapping[str, Mapping[str, int]],
) -> dict[str, dict[str, int]]:
    return {
        str(key): {str(subkey): int(subvalue) for subkey, subvalue in bucket.items()}
        for key, bucket in value.items()
    }


def _parse_iso_utc(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = ["StatsCollector"]
