"""
Key-value storage interface.

Backs the token store, pending OAuth sessions, the saved sync folder and
the last-sync timestamp.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract base class for string key-value storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Retrieve a value.

        Args:
            key: Storage key

        Returns:
            Stored string or None if absent
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous one.

        Args:
            key: Storage key
            value: String value
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Remove a value. Missing keys are ignored.

        Args:
            key: Storage key
        """
        pass

    def get_json(self, key: str) -> Optional[Any]:
        """Read a JSON-encoded value, None if absent or unparseable."""
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Ignoring unparseable value for {key}")
            return None

    def set_json(self, key: str, value: Any) -> None:
        """Store a value JSON-encoded."""
        self.set(key, json.dumps(value))


class MemoryStore(KeyValueStore):
    """In-process store. Contents are lost on exit."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)
