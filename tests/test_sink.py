"""Tests for event sinks and the JSON-lines record codec."""

from __future__ import annotations

import io
import json
import threading

from cache_validator.sink import (
    ChannelSink,
    CollectingSink,
    JSONLinesSink,
    ObservedSink,
    QueueSink,
    decode_event,
    encode_event,
    iter_records,
)
from cache_validator.types import (
    CacheClassification,
    LifecycleStatus,
    ResourceHead,
    ResourceType,
    Severity,
    ValidationEvent,
)


def sample_events() -> list[ValidationEvent]:
    return [
        ValidationEvent.resource(
            ResourceHead("https://site.test/a.png", ResourceType.IMG, LifecycleStatus.PENDING, accept="image/webp"),
        ),
        ValidationEvent.resource(
            ResourceHead(
                "https://site.test/a.png",
                ResourceType.IMG,
                LifecycleStatus.DONE,
                response_status=200,
                content_type="image/webp",
                accept="image/webp",
                provider="Vercel",
                cache=CacheClassification.CACHED,
            ),
            level=Severity.SUCCESS,
        ),
        ValidationEvent.text("Done. {braces} and é", level=Severity.INFO),
    ]


class TestCodec:
    def test_record_is_single_line_json(self):
        event = sample_events()[1]
        record = encode_event(event)

        assert "\n" not in record
        payload = json.loads(record)
        assert payload["type"] == "head"
        assert payload["level"] == "SUCCESS"
        assert payload["head"]["cache"] == "CACHED"
        assert payload["head"]["type"] == "IMG"
        assert decode_event(record) == event

    def test_empty_classification_serialises_as_empty_string(self):
        event = ValidationEvent.resource(
            ResourceHead("https://site.test/", ResourceType.PAGE, LifecycleStatus.DONE)
        )
        assert json.loads(encode_event(event))["head"]["cache"] == ""

    def test_event_ids_are_unique(self):
        ids = {ValidationEvent.text("x").id for _ in range(100)}
        assert len(ids) == 100

    def test_reassembles_records_split_across_chunks(self):
        events = sample_events()
        stream = "".join(encode_event(event) + "\n" for event in events).encode("utf-8")
        chunks = [stream[i : i + 7] for i in range(0, len(stream), 7)]

        assert list(iter_records(chunks)) == events

    def test_concatenated_records_in_one_chunk(self):
        events = sample_events()
        blob = "\n".join(encode_event(event) for event in events)

        # No trailing newline: the last record is flushed at end of stream.
        assert list(iter_records([blob, "", "\n\n"])) == events


class TestSinks:
    def test_closed_sink_drops_events(self):
        sink = CollectingSink()
        assert sink.emit(ValidationEvent.text("one"))
        sink.close()

        assert not sink.emit(ValidationEvent.text("two"))
        assert [e.message for e in sink.events] == ["one"]

    def test_json_lines_sink_writes_records(self):
        buffer = io.StringIO()
        sink = JSONLinesSink(buffer)
        events = sample_events()
        for event in events:
            sink.emit(event)

        lines = buffer.getvalue().splitlines()
        assert [decode_event(line) for line in lines] == events

    def test_json_lines_sink_closes_on_broken_stream(self):
        buffer = io.StringIO()
        sink = JSONLinesSink(buffer)
        buffer.close()

        assert not sink.emit(ValidationEvent.text("lost"))
        assert sink.closed

    def test_observed_sink_reports_delivered_events(self):
        inner = CollectingSink(close_after=2)
        seen: list[str] = []
        sink = ObservedSink(inner, lambda event: seen.append(event.message))

        for name in ["a", "b", "c"]:
            sink.emit(ValidationEvent.text(name))

        assert seen == ["a", "b"]
        assert sink.closed

    def test_channel_sink_sends_encoded_records(self):
        records: list[str] = []
        sink = ChannelSink(records.append)
        event = sample_events()[0]

        sink.emit(event)

        assert [decode_event(record) for record in records] == [event]

    def test_channel_sink_follows_cancel_callback(self):
        cancelled = {"value": False}
        sink = ChannelSink(lambda record: None, cancelled=lambda: cancelled["value"])

        assert not sink.closed
        cancelled["value"] = True
        assert sink.closed
        assert not sink.emit(ValidationEvent.text("x"))


class TestQueueSink:
    def test_iterates_until_finished(self):
        sink = QueueSink(maxsize=2)
        events = [ValidationEvent.text(str(i)) for i in range(10)]

        def produce() -> None:
            for event in events:
                sink.emit(event)
            sink.finish()

        producer = threading.Thread(target=produce)
        producer.start()
        received = list(sink)
        producer.join(timeout=5)

        assert received == events

    def test_consumer_close_unblocks_producer(self):
        sink = QueueSink(maxsize=1, poll_seconds=0.01)
        results: list[bool] = []

        def produce() -> None:
            for i in range(5):
                results.append(sink.emit(ValidationEvent.text(str(i))))
            sink.finish()

        producer = threading.Thread(target=produce)
        producer.start()
        iterator = iter(sink)
        first = next(iterator)
        sink.close()
        producer.join(timeout=5)

        assert first.message == "0"
        assert not producer.is_alive()
        assert results[0] is True
        assert results[-1] is False
