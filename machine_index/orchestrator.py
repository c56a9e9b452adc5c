"""Run orchestrator wiring enumeration, workers, merge, batching and progress."""

from __future__ import annotations

import os
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Sequence

import structlog

from .config import IndexerConfig
from .engine import (
    BatchIndexer,
    ChunkFetcher,
    Merger,
    PrefixEnumerator,
    Record,
    RecordStream,
    Supervisor,
    WorkerPool,
)
from .infra import IndexStore, SearchResult, delete_index, open_index
from .logging_conf import time_track
from .ui import ProgressReporter


@dataclass(slots=True)
class IndexSummary:
    """Outcome of a successful indexing run."""

    prefixes: int
    records: int
    commits: int
    workers: int
    elapsed: float

    def as_dict(self) -> dict[str, float | int]:
        return asdict(self)


class Orchestrator:
    """Central coordinator for indexing, searching and index maintenance."""

    def __init__(
        self,
        config: IndexerConfig,
        store_factory: Callable[[Path], IndexStore] = open_index,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.store_factory = store_factory
        self.logger = logger or structlog.get_logger("machine_index").bind(component="orchestrator")

    def reindex(self, progress: ProgressReporter | None = None, rebuild: bool = False) -> IndexSummary:
        """Build the index from the catalog tool; any failure aborts the run."""

        started = time.perf_counter()
        with time_track(self.logger, "enumerate"):
            listing = PrefixEnumerator(self.config).enumerate()
        if rebuild:
            self.delete_index()
        store = self.store_factory(self.config.index_path)
        self.logger.info(
            "indexing_started",
            cpus=os.cpu_count(),
            workers=self.config.parallelism,
            prefixes=listing.count,
            index=str(self.config.index_path),
        )

        progress = progress or ProgressReporter(enabled=False)
        progress.start(listing.count)
        supervisor = Supervisor()
        fetcher = ChunkFetcher(self.config)
        pool: WorkerPool[Record] = WorkerPool(
            fetcher.stream,
            self.config.parallelism,
            supervisor,
            on_prefix_complete=progress.advance,
            channel_capacity=self.config.channel_capacity,
        )
        indexer = BatchIndexer(store, self.config.batch_threshold, supervisor)
        streams: list[RecordStream[Record]] = []
        merger: Merger[Record] | None = None
        merged: RecordStream[Record] | None = None
        try:
            streams = pool.start(listing.prefixes)
            merger = Merger(streams, self.config.channel_capacity)
            merged = merger.merge()
            with time_track(self.logger, "index"):
                indexer.run(merged)
        except BaseException as exc:
            supervisor.fail(exc)
            _drain(merged, streams)
        finally:
            pool.join()
            if merger is not None:
                merger.join()
            progress.close()
            store.close()
        supervisor.raise_for_failure()

        summary = IndexSummary(
            prefixes=pool.completed,
            records=indexer.records,
            commits=indexer.commits,
            workers=self.config.parallelism,
            elapsed=round(time.perf_counter() - started, 3),
        )
        self.logger.info("indexing_complete", **summary.as_dict())
        return summary

    def search(self, query: str, fields: Sequence[str] = (), size: int = 5) -> SearchResult:
        store = self.store_factory(self.config.index_path)
        try:
            return store.search(query, fields=fields, size=size)
        finally:
            store.close()

    def delete_index(self) -> bool:
        self.logger.info("removing_index", index=str(self.config.index_path))
        return delete_index(self.config.index_path)


def _drain(merged: RecordStream[Record] | None, streams: Sequence[RecordStream[Record]]) -> None:
    # Unblock workers still sending so they can observe the abort and exit.
    if merged is not None:
        merged.drain()
        return
    for stream in streams:
        stream.drain()


__all__ = ["IndexSummary", "Orchestrator"]
