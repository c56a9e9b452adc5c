"""Infra layer utilities (index storage)."""

from .index_store import (
    IndexBatch,
    IndexStore,
    SearchHit,
    SearchResult,
    SQLiteIndexStore,
    delete_index,
    open_index,
)

__all__ = [
    "IndexBatch",
    "IndexStore",
    "SQLiteIndexStore",
    "SearchHit",
    "SearchResult",
    "delete_index",
    "open_index",
]
