"""Prefix enumeration over the catalog tool's listing output."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Iterable, Iterator

import structlog

from ..config import IndexerConfig
from ..errors import ProcessReadError
from .fetcher import WILDCARD, CatalogCommand, ToolProcess


@dataclass(slots=True)
class PrefixListing:
    """Distinct prefix count plus a single-pass iterator of wildcard patterns."""

    count: int
    prefixes: Iterator[str]


def collect_prefixes(lines: Iterable[str], num_chars: int) -> set[str]:
    """Bucket the first ``num_chars`` of every listed name.

    The first line is a header. Names shorter than ``num_chars`` are used
    whole; blank lines are ignored.
    """

    used: set[str] = set()
    for line_number, line in enumerate(lines, start=1):
        if line_number == 1:
            continue
        tokens = line.split(None, 1)
        if not tokens:
            continue
        used.add(tokens[0][:num_chars])
    return used


class PrefixEnumerator:
    """Run the listing command once and derive the prefix work queue."""

    def __init__(self, config: IndexerConfig, logger: structlog.BoundLogger | None = None) -> None:
        self.config = config
        self.command = CatalogCommand(config)
        self.logger = logger or structlog.get_logger("machine_index.enumerator")

    def enumerate(self) -> PrefixListing:
        args = self.command.listing()
        with ToolProcess(args, logger=self.logger) as process:
            text = io.TextIOWrapper(process.stdout, encoding="utf-8", errors="replace", newline=None)
            try:
                used = collect_prefixes(text, self.config.prefix_length)
            except OSError as exc:
                raise ProcessReadError(f"failed reading listing output: {exc}") from exc
            finally:
                text.detach()
            process.wait()
        self.logger.info("prefixes_enumerated", count=len(used))
        return PrefixListing(count=len(used), prefixes=_wildcards(sorted(used)))


def _wildcards(prefixes: list[str]) -> Iterator[str]:
    for prefix in prefixes:
        yield prefix + WILDCARD


__all__ = ["PrefixEnumerator", "PrefixListing", "collect_prefixes"]
