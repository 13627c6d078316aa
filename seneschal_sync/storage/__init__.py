"""
Key-value storage backends.
"""

from .base import KeyValueStore, MemoryStore
from .file import JsonFileStore, EncryptedFileStore

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "EncryptedFileStore",
]
