"""Single decision point for fatal pipeline failures."""

from __future__ import annotations

from threading import Event, Lock

import structlog

from ..errors import PipelineAborted


class Supervisor:
    """Record the first failure of a run and tell every stage to stop.

    The policy is abort-on-first-error: once :meth:`fail` has been called,
    workers stop taking prefixes, in-flight child processes are killed, and
    the batch indexer commits nothing further.
    """

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("machine_index.supervisor")
        self._abort = Event()
        self._lock = Lock()
        self._error: BaseException | None = None

    @property
    def aborted(self) -> bool:
        return self._abort.is_set()

    @property
    def error(self) -> BaseException | None:
        return self._error

    def fail(self, exc: BaseException) -> None:
        if isinstance(exc, PipelineAborted):
            return
        with self._lock:
            if self._error is None:
                self._error = exc
                self.logger.error("pipeline_failed", error=str(exc), kind=type(exc).__name__)
            else:
                self.logger.warning("pipeline_secondary_failure", error=str(exc), kind=type(exc).__name__)
            self._abort.set()

    def check(self) -> None:
        """Raise :class:`PipelineAborted` if another stage has failed."""

        if self._abort.is_set():
            raise PipelineAborted("run aborted after an earlier failure")

    def raise_for_failure(self) -> None:
        """Re-raise the first recorded failure, if any."""

        if self._error is not None:
            raise self._error


__all__ = ["Supervisor"]
