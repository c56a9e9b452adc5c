"""Fatal error taxonomy shared by every pipeline stage."""

from __future__ import annotations

from typing import Sequence


class IndexerError(Exception):
    """Base class for conditions that abort an indexing run."""


class ProcessSpawnError(IndexerError):
    """The catalog tool could not be started."""


class ProcessReadError(IndexerError):
    """The catalog tool's output could not be read."""


class ProcessExitError(IndexerError):
    """The catalog tool exited with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        message = f"{' '.join(self.command)} exited with status {returncode}"
        if stderr:
            message += f": {stderr}"
        super().__init__(message)


class DecodeError(IndexerError):
    """Malformed XML or an unusable machine element."""


class YearParseError(IndexerError):
    """A year that is not an integer after placeholder normalisation."""

    def __init__(self, raw: str, name: str | None = None) -> None:
        self.raw = raw
        self.name = name
        where = f" for machine {name!r}" if name else ""
        super().__init__(f"invalid year {raw!r}{where}")


class BatchCommitError(IndexerError):
    """A batch could not be written to the index store."""


class StoreOpenError(IndexerError):
    """The index store could not be opened or created."""


class QueryError(IndexerError):
    """A search query was rejected by the index store."""


class PipelineAborted(IndexerError):
    """Raised inside a stage when another stage has already failed."""


__all__ = [
    "BatchCommitError",
    "DecodeError",
    "IndexerError",
    "PipelineAborted",
    "ProcessExitError",
    "ProcessReadError",
    "ProcessSpawnError",
    "QueryError",
    "StoreOpenError",
    "YearParseError",
]
