"""Cache store backends."""

from .file_store import AsyncFileStore, StoredEntry
from .memory_store import MemoryStore

__all__ = ["AsyncFileStore", "MemoryStore", "StoredEntry"]
