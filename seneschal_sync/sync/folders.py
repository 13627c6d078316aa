"""
Sync folder persistence and selection.
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..storage import KeyValueStore
from .base import Folder

if TYPE_CHECKING:
    from .google_drive import GoogleDriveProvider

logger = logging.getLogger(__name__)


class FolderStore:
    """Keeps the selected folder in the domain's settings document."""

    def __init__(self, store: KeyValueStore, domain: str):
        self.store = store
        self.domain = domain

    @property
    def settings_key(self) -> str:
        return f"{self.domain}-settings"

    def _load_settings(self) -> Dict[str, Any]:
        settings = self.store.get_json(self.settings_key)
        return settings if isinstance(settings, dict) else {}

    def get_saved_folder(self) -> Optional[Folder]:
        folder = self._load_settings().get("syncFolder")
        if isinstance(folder, dict) and folder.get("id"):
            return Folder.from_dict(folder)
        return None

    def save_folder(self, folder: Folder) -> None:
        settings = self._load_settings()
        settings["syncFolder"] = folder.to_dict()
        self.store.set_json(self.settings_key, settings)
        logger.info(f"Sync folder for {self.domain} set to {folder.name or folder.id}")

    def clear_folder(self) -> None:
        settings = self._load_settings()
        settings.pop("syncFolder", None)
        self.store.set_json(self.settings_key, settings)


class FolderPicker(ABC):
    """Asks the user which folder to sync into."""

    @abstractmethod
    async def pick_folder(
        self,
        provider: "GoogleDriveProvider",
        title: str,
    ) -> Optional[Folder]:
        """
        Pick a folder.

        Args:
            provider: Provider the folder lives in
            title: Prompt shown to the user

        Returns:
            The chosen folder, or None if cancelled
        """
        pass


class NamedFolderPicker(FolderPicker):
    """
    Headless picker: uses the top-level folder with a fixed name,
    creating it on first use.
    """

    def __init__(self, name: str):
        self.name = name

    async def pick_folder(
        self,
        provider: "GoogleDriveProvider",
        title: str,
    ) -> Optional[Folder]:
        existing = await provider.find_folder(self.name)
        if existing:
            return existing
        return await provider.create_folder(self.name)
