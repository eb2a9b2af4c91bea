from __future__ import annotations

import queue
import threading
from collections.abc import Iterator
from typing import Any

from channel_pulse.services.channel_errors import PipelineCancelledError, StreamClosedError

_SEND_POLL_SECONDS = 0.25
_END_OF_STREAM = object()


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelledError("Channel download was cancelled by the consumer.")


class ProgressChannel:
    """Ordered single-producer, single-consumer event channel.

    ``send`` blocks while the buffer is full, so a slow consumer throttles
    the producer. Once the channel is closed from either side every later
    ``send`` raises :class:`StreamClosedError` and nothing more is buffered.
    """

    def __init__(self, *, maxsize: int = 16, cancellation: CancellationToken | None = None) -> None:
        self._queue: queue.Queue[object] = queue.Queue(maxsize=max(1, maxsize))
        self._closed = threading.Event()
        self.cancellation = cancellation or CancellationToken()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, event: dict[str, Any]) -> None:
        while True:
            if self._closed.is_set():
                raise StreamClosedError("Progress channel is closed.")
            try:
                self._queue.put(event, timeout=_SEND_POLL_SECONDS)
                return
            except queue.Full:
                continue

    def finish(self) -> None:
        """Producer side: mark the end of the stream after the terminal event."""
        if self._closed.is_set():
            return
        while not self._closed.is_set():
            try:
                self._queue.put(_END_OF_STREAM, timeout=_SEND_POLL_SECONDS)
                return
            except queue.Full:
                continue

    def close(self) -> None:
        """Consumer side: stop the stream and cancel the producer."""
        self._closed.set()
        self.cancellation.cancel()

    def __iter__(self) -> Iterator[dict[str, Any]]:
        try:
            while True:
                item = self._queue.get()
                if item is _END_OF_STREAM:
                    return
                assert isinstance(item, dict)
                yield item
        finally:
            self.close()
