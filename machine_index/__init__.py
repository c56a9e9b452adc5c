"""Concurrent ingestion of an emulator's machine catalog into a full-text index."""

__version__ = "0.1.0"
