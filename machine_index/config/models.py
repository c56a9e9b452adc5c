"""Pydantic models used across the machine-index configuration flow."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

SEARCHABLE_FIELDS = ("name", "description", "year", "timestamp", "manufacturer", "driver_status")


def _default_parallelism() -> int:
    return os.cpu_count() or 1


class IndexerConfig(BaseModel):
    """Everything the ingestion pipeline needs, built once per run."""

    binary_path: Path = Field(default=Path("mame/mame"))
    root_data_path: Path = Field(default=Path("mame/roms"))
    root_path_flag: str = "-rootpath"
    index_path: Path = Field(default=Path("index.db"))
    prefix_length: int = 2
    batch_threshold: int = 500
    parallelism: int = Field(default_factory=_default_parallelism)
    channel_capacity: int = 64
    read_chunk_size: int = 64 * 1024

    @field_validator("binary_path", "root_data_path", "index_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value).expanduser()

    @model_validator(mode="after")
    def _validate_bounds(self) -> "IndexerConfig":
        if self.prefix_length < 1:
            raise ValueError("prefix_length must be >= 1")
        if self.batch_threshold < 0:
            raise ValueError("batch_threshold must be >= 0")
        if self.parallelism < 1:
            raise ValueError("parallelism must be >= 1")
        if self.channel_capacity < 1:
            raise ValueError("channel_capacity must be >= 1")
        if self.read_chunk_size < 1:
            raise ValueError("read_chunk_size must be >= 1")
        if not self.root_path_flag.startswith("-"):
            raise ValueError("root_path_flag must look like a command-line flag")
        return self


class SearchConfig(BaseModel):
    """Defaults for the search command."""

    fields: list[str] = Field(
        default_factory=lambda: ["year", "manufacturer", "description", "driver_status"]
    )
    size: int = 5

    @field_validator("fields")
    @classmethod
    def _known_fields(cls, value: list[str]) -> list[str]:
        unknown = [field for field in value if field not in SEARCHABLE_FIELDS]
        if unknown:
            raise ValueError(f"Unknown search fields: {unknown}")
        return value

    @field_validator("size")
    @classmethod
    def _positive_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("size must be >= 1")
        return value


class GlobalConfig(BaseModel):
    """Top-level settings persisted in the project data directory."""

    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    enable_progress_bar: bool = True
    debug: bool = False


__all__ = ["GlobalConfig", "IndexerConfig", "SEARCHABLE_FIELDS", "SearchConfig"]
