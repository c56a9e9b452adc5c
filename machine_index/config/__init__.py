"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import SEARCHABLE_FIELDS, GlobalConfig, IndexerConfig, SearchConfig

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "GlobalConfig",
    "IndexerConfig",
    "SEARCHABLE_FIELDS",
    "SearchConfig",
]
