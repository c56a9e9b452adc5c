"""Catalog tool invocation and child-process lifecycle."""

from __future__ import annotations

import subprocess
import tempfile
from typing import IO, Iterator, Sequence

import structlog

from ..config import IndexerConfig
from ..errors import ProcessExitError, ProcessSpawnError
from .decoder import Record, StreamDecoder

WILDCARD = "*"
LISTING_FLAG = "-ll"
DETAIL_FLAG = "-lx"
_STDERR_TAIL = 2000


class CatalogCommand:
    """Build argument vectors for the catalog tool."""

    def __init__(self, config: IndexerConfig) -> None:
        self.config = config

    def _base(self) -> list[str]:
        return [
            str(self.config.binary_path),
            self.config.root_path_flag,
            str(self.config.root_data_path),
        ]

    def listing(self) -> list[str]:
        return self._base() + [LISTING_FLAG]

    def detail(self, prefix: str) -> list[str]:
        return self._base() + [DETAIL_FLAG, prefix]


class ToolProcess:
    """Own one catalog tool child process for the duration of a ``with`` block.

    stdout is piped to the caller; stderr goes to a temporary file so the
    child can never stall on a full stderr pipe. Leaving the block always
    closes the pipe and reaps the child, killing it first when the block
    exits with an exception or before :meth:`wait` was called.
    """

    def __init__(self, args: Sequence[str], logger: structlog.BoundLogger | None = None) -> None:
        self.args = list(args)
        self.logger = logger or structlog.get_logger("machine_index.process")
        self._process: subprocess.Popen[bytes] | None = None
        self._stderr: IO[bytes] | None = None
        self._waited = False

    def __enter__(self) -> "ToolProcess":
        self._stderr = tempfile.TemporaryFile()
        try:
            self._process = subprocess.Popen(
                self.args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=self._stderr,
            )
        except OSError as exc:
            self._stderr.close()
            self._stderr = None
            raise ProcessSpawnError(f"cannot start {self.args[0]}: {exc}") from exc
        self.logger.debug("process_started", args=self.args, pid=self._process.pid)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        process = self._process
        if process is None:
            return
        try:
            if not self._waited and process.poll() is None:
                process.kill()
                self.logger.debug("process_killed", args=self.args, pid=process.pid)
            if process.stdout is not None:
                process.stdout.close()
            process.wait()
        finally:
            if self._stderr is not None:
                self._stderr.close()
                self._stderr = None

    @property
    def stdout(self) -> IO[bytes]:
        if self._process is None or self._process.stdout is None:
            raise RuntimeError("ToolProcess must be entered before reading stdout")
        return self._process.stdout

    def wait(self) -> None:
        """Wait for the child to exit; a non-zero status is fatal."""

        if self._process is None:
            raise RuntimeError("ToolProcess must be entered before wait")
        returncode = self._process.wait()
        self._waited = True
        if returncode != 0:
            raise ProcessExitError(self.args, returncode, self._stderr_tail())

    def _stderr_tail(self) -> str:
        if self._stderr is None:
            return ""
        self._stderr.seek(0)
        data = self._stderr.read()
        return data[-_STDERR_TAIL:].decode("utf-8", errors="replace").strip()


class ChunkFetcher:
    """Fetch and decode the detail XML for one prefix."""

    def __init__(
        self,
        config: IndexerConfig,
        decoder: StreamDecoder | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.command = CatalogCommand(config)
        self.decoder = decoder or StreamDecoder(chunk_size=config.read_chunk_size)
        self.logger = logger or structlog.get_logger("machine_index.fetcher")

    def open(self, prefix: str) -> ToolProcess:
        return ToolProcess(self.command.detail(prefix), logger=self.logger)

    def stream(self, prefix: str) -> Iterator[Record]:
        """Yield the qualifying records for ``prefix`` in document order."""

        with self.open(prefix) as process:
            count = 0
            for record in self.decoder.decode(process.stdout):
                count += 1
                yield record
            process.wait()
        self.logger.debug("prefix_fetched", prefix=prefix, records=count)


__all__ = ["CatalogCommand", "ChunkFetcher", "ToolProcess", "WILDCARD"]
