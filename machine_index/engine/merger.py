"""Fan-in of per-worker record streams."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Generic, Sequence, TypeVar

from .worker_pool import RecordStream

T = TypeVar("T")


class Countdown:
    """Latch reporting when the last of ``count`` parties has arrived."""

    def __init__(self, count: int) -> None:
        self._remaining = count
        self._lock = Lock()

    def arrive(self) -> bool:
        with self._lock:
            self._remaining -= 1
            return self._remaining == 0


class Merger(Generic[T]):
    """Join several streams into one that closes after the last input closes."""

    def __init__(self, streams: Sequence[RecordStream[T]], capacity: int = 64) -> None:
        self.streams = list(streams)
        self.capacity = capacity
        self._executor: ThreadPoolExecutor | None = None

    def merge(self) -> RecordStream[T]:
        if self._executor is not None:
            raise RuntimeError("Merger already started")
        output: RecordStream[T] = RecordStream(self.capacity)
        if not self.streams:
            output.close()
            return output
        latch = Countdown(len(self.streams))
        self._executor = ThreadPoolExecutor(
            max_workers=len(self.streams), thread_name_prefix="indexer-merge"
        )
        for stream in self.streams:
            self._executor.submit(self._forward, stream, output, latch)
        return output

    def join(self) -> None:
        """Wait for the forwarders; they exit once every input stream has closed."""

        if self._executor is None:
            return
        self._executor.shutdown(wait=True)
        self._executor = None

    @staticmethod
    def _forward(source: RecordStream[T], output: RecordStream[T], latch: Countdown) -> None:
        try:
            for item in source:
                output.put(item)
        finally:
            if latch.arrive():
                output.close()


__all__ = ["Countdown", "Merger"]
