"""Engine components orchestrating enumerate → fetch → decode → merge → index."""

from .batch_indexer import BatchIndexer
from .decoder import MachineElement, Record, StreamDecoder, normalize_year, year_timestamp
from .enumerator import PrefixEnumerator, PrefixListing, collect_prefixes
from .fetcher import CatalogCommand, ChunkFetcher, ToolProcess
from .merger import Merger
from .supervisor import Supervisor
from .worker_pool import RecordStream, SharedPrefixQueue, WorkerPool

__all__ = [
    "BatchIndexer",
    "CatalogCommand",
    "ChunkFetcher",
    "MachineElement",
    "Merger",
    "PrefixEnumerator",
    "PrefixListing",
    "Record",
    "RecordStream",
    "SharedPrefixQueue",
    "StreamDecoder",
    "Supervisor",
    "ToolProcess",
    "WorkerPool",
    "collect_prefixes",
    "normalize_year",
    "year_timestamp",
]
