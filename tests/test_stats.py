"""Tests for run statistics collected from the event stream."""

from __future__ import annotations

from cache_validator.stats import StatsCollector
from cache_validator.types import (
    CacheClassification,
    LifecycleStatus,
    ResourceHead,
    ResourceType,
    Severity,
    ValidationEvent,
)


class TestStatsCollector:
    def test_counts_events(self):
        stats = StatsCollector()
        url = "https://site.test/a.png"
        stats.record_event(
            ValidationEvent.resource(ResourceHead(url, ResourceType.IMG, LifecycleStatus.PENDING))
        )
        stats.record_event(
            ValidationEvent.resource(
                ResourceHead(url, ResourceType.IMG, LifecycleStatus.PENDING),
                level=Severity.VERBOSE,
                message="Attempt 1 of 3 failed (timeout); retrying",
            )
        )
        stats.record_event(
            ValidationEvent.resource(
                ResourceHead(
                    url,
                    ResourceType.IMG,
                    LifecycleStatus.DONE,
                    response_status=200,
                    accept="image/webp",
                    provider="Vercel",
                    cache=CacheClassification.CACHED,
                ),
                level=Severity.SUCCESS,
            )
        )
        stats.record_event(ValidationEvent.text("oops", level=Severity.ERROR))
        stats.finish()

        payload = stats.to_json()
        assert set(payload) == {
            "started_at",
            "finished_at",
            "duration_seconds",
            "events_total",
            "events_per_second",
            "by_level",
            "by_kind",
            "resources",
            "cache",
            "providers",
            "status_code_counts",
            "accept_counts",
            "retry_narrations",
            "error_messages",
        }
        assert payload["events_total"] == 4
        assert payload["retry_narrations"] == 1
        assert payload["error_messages"] == 1
        assert payload["by_level"] == {"INFO": 1, "VERBOSE": 1, "SUCCESS": 1, "ERROR": 1}
        assert payload["resources"]["IMG"] == {"PENDING": 2, "DONE": 1, "ERROR": 0}
        assert payload["cache"] == {"CACHED": 1}
        assert payload["providers"] == {"Vercel": 1}
        assert payload["status_code_counts"] == {"200": 1}
        assert payload["accept_counts"] == {"image/webp": 1}
        assert payload["finished_at"] is not None
        assert payload["duration_seconds"] >= 0.0
        assert stats.terminal_count("IMG") == 1

    def test_no_header_counts_as_none(self):
        stats = StatsCollector()
        stats.record_event(
            ValidationEvent.resource(
                ResourceHead("https://site.test/", ResourceType.PAGE, LifecycleStatus.DONE)
            )
        )
        assert stats.to_json()["cache"] == {"none": 1}
