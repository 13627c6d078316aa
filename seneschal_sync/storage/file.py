"""
File-backed key-value stores.

Both stores keep every key in one JSON document and rewrite it atomically
on each change. EncryptedFileStore encrypts the document at rest using
Fernet symmetric encryption.
"""

import base64
import hashlib
import json
import logging
from pathlib import Path
from typing import Dict, Optional

from cryptography.fernet import Fernet, InvalidToken

from .base import KeyValueStore

logger = logging.getLogger(__name__)


class JsonFileStore(KeyValueStore):
    """Plain JSON document store."""

    def __init__(self, path: Path):
        """
        Initialize file store.

        Args:
            path: Path of the JSON document (created on first write)
        """
        self.path = Path(path)
        self._data: Optional[Dict[str, str]] = None

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    def _load(self) -> Dict[str, str]:
        if self._data is None:
            self._data = self._read()
        return self._data

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self._decode(self.path.read_bytes()))
        except (ValueError, InvalidToken) as e:
            logger.error(f"Failed to read store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return data

    def _save(self, data: Dict[str, str]) -> None:
        self._atomic_write(self._encode(json.dumps(data, indent=2)))

    def _encode(self, text: str) -> bytes:
        return text.encode()

    def _decode(self, raw: bytes) -> str:
        return raw.decode()

    def _atomic_write(self, content: bytes) -> None:
        """Write atomically using rename."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_bytes(content)

        # Atomic rename (POSIX)
        tmp_path.replace(self.path)


class EncryptedFileStore(JsonFileStore):
    """
    Encrypted JSON document store.

    Suitable for OAuth tokens; the whole document is one Fernet token.
    """

    def __init__(self, path: Path, encryption_key: Optional[str] = None):
        """
        Initialize encrypted store.

        Args:
            path: Path of the encrypted document
            encryption_key: Fernet key, or any passphrase to derive one from
        """
        super().__init__(path)
        self._cipher = self._get_cipher(encryption_key)

    def _get_cipher(self, key: Optional[str]) -> Fernet:
        """Get or create encryption cipher."""
        if not key:
            # Generate a key if not provided (will be lost on restart)
            logger.warning(
                "No encryption key set. "
                "Using ephemeral key - stored tokens will be lost on restart."
            )
            return Fernet(Fernet.generate_key())

        # Fernet keys are 44 chars base64; derive one from anything else
        if len(key) != 44:
            key = base64.urlsafe_b64encode(hashlib.sha256(key.encode()).digest()).decode()

        return Fernet(key.encode())

    def _encode(self, text: str) -> bytes:
        return self._cipher.encrypt(text.encode())

    def _decode(self, raw: bytes) -> str:
        return self._cipher.decrypt(raw).decode()
