"""Event stream sinks and the JSON-lines record codec.

A sink is where coordinators write `ValidationEvent`s. Downstream owns the
transport; the only signal flowing back is `closed`, which coordinators
treat as cancellation.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
from typing import Callable, Iterable, Iterator, TextIO

from .errors import SinkClosedError
from .types import ValidationEvent


LOGGER = logging.getLogger(__name__)


def encode_event(event: ValidationEvent) -> str:
    """Encode one event as a single-line JSON record."""

    return json.dumps(event.to_json(), ensure_ascii=False, separators=(",", ":"))


def decode_event(record: str | bytes) -> ValidationEvent:
    return ValidationEvent.from_json(json.loads(record))


def iter_records(chunks: Iterable[str | bytes]) -> Iterator[ValidationEvent]:
    """Reassemble newline-delimited records from arbitrarily split chunks.

    A chunk may hold several records, or only part of one; the remainder is
    carried over until its newline arrives.
    """

    pending = b""
    for chunk in chunks:
        if not chunk:
            continue
        pending += chunk.encode("utf-8") if isinstance(chunk, str) else chunk
        *complete, pending = pending.split(b"\n")
        for line in complete:
            if line.strip():
                yield decode_event(line)

    if pending.strip():
        yield decode_event(pending)


class EventSink:
    """Base sink: serialized emission, closed-state tracking.

    Subclasses implement `_write`. `emit` never raises for a closed sink; it
    drops the event and returns False.
    """

    def __init__(self) -> None:
        self._emit_lock = threading.Lock()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        """Mark the stream closed; subsequent events are dropped."""

        self._closed.set()

    def emit(self, event: ValidationEvent) -> bool:
        if self.closed:
            return False
        with self._emit_lock:
            if self.closed:
                return False
            try:
                self._write(event)
            except SinkClosedError:
                LOGGER.debug("Sink closed while emitting event %s", event.id)
                self.close()
                return False
        return True

    def _write(self, event: ValidationEvent) -> None:
        raise NotImplementedError


class CollectingSink(EventSink):
    """Keeps every event in memory, in emission order."""

    def __init__(self, *, close_after: int | None = None) -> None:
        super().__init__()
        self.events: list[ValidationEvent] = []
        self._close_after = close_after

    def _write(self, event: ValidationEvent) -> None:
        self.events.append(event)
        if self._close_after is not None and len(self.events) >= self._close_after:
            self.close()

    def snapshot(self) -> list[ValidationEvent]:
        with self._emit_lock:
            return list(self.events)


class JSONLinesSink(EventSink):
    """Writes one JSON record per line to a text stream."""

    def __init__(self, stream: TextIO, *, flush: bool = True) -> None:
        super().__init__()
        self.stream = stream
        self.flush = flush

    def _write(self, event: ValidationEvent) -> None:
        try:
            self.stream.write(encode_event(event) + "\n")
            if self.flush:
                self.stream.flush()
        except (BrokenPipeError, ValueError) as exc:
            # ValueError: write to a closed file.
            raise SinkClosedError(str(exc)) from exc


_FINISHED = object()


class QueueSink(EventSink):
    """Bounded queue between a producer thread and a consuming transport.

    `emit` blocks while the queue is full (backpressure). The consumer
    iterates the sink; `close()` from the consumer side cancels the producer,
    `finish()` from the producer side ends iteration once drained.
    """

    def __init__(self, maxsize: int = 256, *, poll_seconds: float = 0.1) -> None:
        super().__init__()
        self._queue: queue.Queue[object] = queue.Queue(maxsize=maxsize)
        self._poll_seconds = poll_seconds
        self._finished = threading.Event()

    def _write(self, event: ValidationEvent) -> None:
        self._put(event)

    def _put(self, item: object) -> None:
        while True:
            if self.closed:
                raise SinkClosedError("Consumer closed the stream")
            try:
                self._queue.put(item, timeout=self._poll_seconds)
                return
            except queue.Full:
                continue

    def finish(self) -> None:
        """Signal end of stream to the consumer."""

        if self._finished.is_set():
            return
        self._finished.set()
        try:
            self._put(_FINISHED)
        except SinkClosedError:
            LOGGER.debug("Stream closed before the end-of-stream marker was queued")

    def __iter__(self) -> Iterator[ValidationEvent]:
        while True:
            try:
                item = self._queue.get(timeout=self._poll_seconds)
            except queue.Empty:
                if self.closed:
                    return
                continue
            if item is _FINISHED:
                return
            yield item  # type: ignore[misc]


class ObservedSink(EventSink):
    """Forwards to `inner` and reports every delivered event to `observer`."""

    def __init__(self, inner: EventSink, observer: Callable[[ValidationEvent], None]) -> None:
        super().__init__()
        self.inner = inner
        self.observer = observer

    @property
    def closed(self) -> bool:
        return self._closed.is_set() or self.inner.closed

    def close(self) -> None:
        super().close()
        self.inner.close()

    def emit(self, event: ValidationEvent) -> bool:
        if self.closed:
            return False
        if not self.inner.emit(event):
            return False
        self.observer(event)
        return True


class ChannelSink(EventSink):
    """Worker-side sink: events leave only as encoded records.

    `cancelled` reports whether the receiving side has gone away.
    """

    def __init__(
        self,
        send: Callable[[str], None],
        *,
        cancelled: Callable[[], bool] | None = None,
    ) -> None:
        super().__init__()
        self._send = send
        self._cancelled = cancelled

    @property
    def closed(self) -> bool:
        if self._closed.is_set():
            return True
        return self._cancelled is not None and self._cancelled()

    def _write(self, event: ValidationEvent) -> None:
        self._send(encode_event(event))


__all__ = [
    "ChannelSink",
    "CollectingSink",
    "EventSink",
    "JSONLinesSink",
    "ObservedSink",
    "QueueSink",
    "decode_event",
    "encode_event",
    "iter_records",
]
