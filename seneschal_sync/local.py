"""
Local data source backed by a single JSON file.

Implements the accessor contract the sync engine consumes:
export_all_data() returns the domain snapshot, merge_data() stores the
reconciled one.
"""

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class JsonFileDataSource:
    """Keeps a domain's snapshot in one JSON file."""

    def __init__(self, path: Path):
        """
        Initialize data source.

        Args:
            path: Path of the data file (created on first write)
        """
        self.path = Path(path)

    async def export_all_data(self) -> Any:
        """
        Read the whole local snapshot.

        Returns:
            The snapshot, or None when nothing has been stored yet
        """
        if not self.path.exists():
            return None

        with open(self.path, 'r') as f:
            return json.load(f)

    async def merge_data(self, data: Any) -> None:
        """
        Store a reconciled snapshot, replacing the file content.

        Args:
            data: Snapshot to store
        """
        self._atomic_write(data)
        logger.debug(f"Wrote local data to {self.path}")

    def _atomic_write(self, data: Any) -> None:
        """Write atomically using rename."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write to temp file in same directory
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, 'w') as f:
            json.dump(data, f, indent=2)

        # Atomic rename (POSIX)
        tmp_path.replace(self.path)
