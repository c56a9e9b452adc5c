"""Worker pool fanning prefixes out to parallel fetch/decode tasks."""

from __future__ import annotations

import queue
from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import Lock
from typing import Callable, Generic, Iterable, Iterator, TypeVar

import structlog

from .supervisor import Supervisor

T = TypeVar("T")

_CLOSED = object()


class RecordStream(Generic[T]):
    """Bounded single-consumer channel closed by an end-of-stream marker."""

    def __init__(self, capacity: int = 64) -> None:
        self._queue: queue.Queue[object] = queue.Queue(maxsize=capacity)
        self._closed = False
        self._exhausted = False

    def put(self, item: T) -> None:
        if self._closed:
            raise RuntimeError("put on a closed stream")
        self._queue.put(item)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[T]:
        while not self._exhausted:
            item = self._queue.get()
            if item is _CLOSED:
                self._exhausted = True
                return
            yield item  # type: ignore[misc]

    def drain(self) -> int:
        """Discard everything until the stream closes; return the number dropped."""

        return sum(1 for _ in self)


class SharedPrefixQueue:
    """Hand each prefix of a single-pass iterator to exactly one caller."""

    def __init__(self, prefixes: Iterable[str]) -> None:
        self._iterator = iter(prefixes)
        self._lock = Lock()

    def take(self) -> str | None:
        with self._lock:
            return next(self._iterator, None)


class WorkerPool(Generic[T]):
    """Run ``parallelism`` symmetric workers over a shared prefix queue.

    Each worker owns one output :class:`RecordStream`; the caller merges them.
    Failures are handed to the :class:`Supervisor`, which stops every worker.
    """

    def __init__(
        self,
        process_prefix: Callable[[str], Iterable[T]],
        parallelism: int,
        supervisor: Supervisor,
        on_prefix_complete: Callable[[str], None] | None = None,
        channel_capacity: int = 64,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if parallelism < 1:
            raise ValueError("parallelism must be >= 1")
        self.process_prefix = process_prefix
        self.parallelism = parallelism
        self.supervisor = supervisor
        self.on_prefix_complete = on_prefix_complete
        self.channel_capacity = channel_capacity
        self.logger = logger or structlog.get_logger("machine_index.worker_pool")
        self._executor: ThreadPoolExecutor | None = None
        self._futures: list[Future[None]] = []
        self._completed = 0
        self._completed_lock = Lock()

    @property
    def completed(self) -> int:
        with self._completed_lock:
            return self._completed

    def start(self, prefixes: Iterable[str]) -> list[RecordStream[T]]:
        if self._executor is not None:
            raise RuntimeError("WorkerPool already started")
        shared = SharedPrefixQueue(prefixes)
        self._executor = ThreadPoolExecutor(
            max_workers=self.parallelism, thread_name_prefix="indexer-worker"
        )
        streams: list[RecordStream[T]] = []
        for worker_id in range(self.parallelism):
            output: RecordStream[T] = RecordStream(self.channel_capacity)
            streams.append(output)
            self._futures.append(self._executor.submit(self._work, worker_id, shared, output))
        self.logger.info("workers_started", workers=self.parallelism)
        return streams

    def join(self) -> None:
        if self._executor is None:
            return
        wait(self._futures)
        self._executor.shutdown(wait=True)
        self._executor = None

    def _work(self, worker_id: int, shared: SharedPrefixQueue, output: RecordStream[T]) -> None:
        try:
            while not self.supervisor.aborted:
                prefix = shared.take()
                if prefix is None:
                    break
                self._run_prefix(prefix, output)
                self._prefix_finished(prefix)
        except Exception as exc:  # noqa: BLE001
            self.supervisor.fail(exc)
        finally:
            output.close()
            self.logger.debug("worker_finished", worker=worker_id)

    def _run_prefix(self, prefix: str, output: RecordStream[T]) -> None:
        records = iter(self.process_prefix(prefix))
        try:
            for record in records:
                self.supervisor.check()
                output.put(record)
        finally:
            close = getattr(records, "close", None)
            if close is not None:
                close()

    def _prefix_finished(self, prefix: str) -> None:
        with self._completed_lock:
            self._completed += 1
        if self.on_prefix_complete is not None:
            self.on_prefix_complete(prefix)


__all__ = ["RecordStream", "SharedPrefixQueue", "WorkerPool"]
