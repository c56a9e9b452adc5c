"""Bounded, batched commits of the merged record stream."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Iterator

import structlog

from .decoder import Record
from .supervisor import Supervisor

if TYPE_CHECKING:
    from ..infra.index_store import IndexBatch, IndexStore


class BatchIndexer:
    """Sole writer of the index store.

    A batch is committed as soon as it holds more than ``threshold``
    records, so each full batch carries ``threshold + 1`` records. Whatever
    remains when the input ends is committed as a final batch.
    """

    def __init__(
        self,
        store: "IndexStore",
        threshold: int = 500,
        supervisor: Supervisor | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if threshold < 0:
            raise ValueError("threshold must be >= 0")
        self.store = store
        self.threshold = threshold
        self.supervisor = supervisor or Supervisor()
        self.logger = logger or structlog.get_logger("machine_index.batch_indexer")
        self.records = 0
        self.commit_sizes: list[int] = []

    @property
    def commits(self) -> int:
        return len(self.commit_sizes)

    def consume(self, records: Iterable[Record]) -> Iterator[Record]:
        """Index every record and pass it through."""

        batch = self.store.new_batch()
        for record in records:
            self.supervisor.check()
            batch.index(record.name, record)
            self.records += 1
            yield record
            if len(batch) > self.threshold:
                self._commit(batch)
                batch = self.store.new_batch()
        self._commit(batch)
        self.logger.info("indexing_finished", records=self.records, commits=self.commits)

    def run(self, records: Iterable[Record]) -> int:
        for _ in self.consume(records):
            pass
        return self.records

    def _commit(self, batch: "IndexBatch") -> None:
        self.supervisor.check()
        size = len(batch)
        self.store.commit(batch)
        if size:
            self.commit_sizes.append(size)
            self.logger.debug("batch_committed", size=size, total=self.records)


__all__ = ["BatchIndexer"]
