"""
Per-domain sync wiring.

Connects a local data source to Google Drive through the shared OAuth
identity and exposes what the host application needs.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

import httpx

from .config import SyncSettings
from .storage import KeyValueStore
from .sync import (
    FolderPicker,
    FolderStore,
    GoogleDriveConfig,
    GoogleDriveProvider,
    OAuthAuthenticator,
    RequestUserAgent,
    SyncEngine,
    SyncOutcome,
    SyncStatus,
    TokenStore,
    UserAgent,
)
from .sync.base import Folder

logger = logging.getLogger(__name__)


class LocalDataSource(Protocol):
    """What the host application's record store must expose."""

    async def export_all_data(self) -> Any: ...

    async def merge_data(self, data: Any) -> None: ...


class DomainSync:
    """
    Sync facade for one domain.

    Handles:
    - OAuth connect/callback/disconnect
    - Sync folder selection
    - Sync cycles and status
    - Read-only aggregation of other domains' data
    """

    def __init__(
        self,
        settings: SyncSettings,
        data_source: LocalDataSource,
        store: KeyValueStore,
        user_agent: Optional[UserAgent] = None,
        folder_picker: Optional[FolderPicker] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        is_online: Callable[[], bool] = lambda: True,
    ):
        """
        Initialize domain sync.

        Args:
            settings: Sync configuration
            data_source: Local record store
            store: Key-value store for tokens, folder and last sync
            user_agent: Location of the user agent (default: request bound)
            folder_picker: How select_folder() picks a folder
            http_client: Shared HTTP client
            is_online: Network connectivity check
        """
        self.settings = settings
        self.domain = settings.domain
        self.data_source = data_source
        self.user_agent = user_agent or RequestUserAgent()

        self.authenticator = OAuthAuthenticator(
            TokenStore(store), self.user_agent, http_client=http_client
        )
        self.provider = GoogleDriveProvider(
            GoogleDriveConfig(
                domain=settings.domain,
                client_id=settings.google.client_id,
                redirect_uri=settings.google.redirect_uri,
                client_secret=settings.google.client_secret,
                api_key=settings.google.api_key,
            ),
            self.authenticator,
            FolderStore(store, settings.domain),
            folder_picker=folder_picker,
            http_client=http_client,
        )
        self.engine = SyncEngine(
            provider=self.provider,
            domain=settings.domain,
            get_local_data=data_source.export_all_data,
            set_local_data=self._set_local_data,
            store=store,
            is_online=is_online,
        )

    async def _set_local_data(self, data: Any) -> None:
        if data is not None:
            await self.data_source.merge_data(data)

    async def close(self) -> None:
        await self.provider.close()
        await self.authenticator.close()

    # ==================== OAuth ====================

    def has_callback(self) -> bool:
        """Check if the current request is an OAuth callback."""
        return self.authenticator.has_callback()

    async def handle_oauth_callback(self) -> bool:
        return await self.provider.handle_auth_callback()

    async def connect(self) -> None:
        await self.provider.connect()

    def disconnect(self) -> None:
        self.provider.disconnect()

    def is_connected(self) -> bool:
        return self.provider.is_connected()

    # ==================== Folder ====================

    def is_folder_configured(self) -> bool:
        return self.provider.is_folder_configured()

    async def select_folder(self, picker: Optional[FolderPicker] = None) -> Optional[Folder]:
        return await self.provider.select_folder(picker)

    def get_folder(self) -> Optional[Folder]:
        return self.provider.get_folder()

    def remove_folder(self) -> None:
        self.provider.remove_folder()

    # ==================== Sync ====================

    async def sync(self) -> SyncOutcome:
        return await self.engine.sync()

    def can_sync(self) -> bool:
        return self.engine.can_sync()

    def get_status(self) -> SyncStatus:
        return self.engine.get_status()

    def get_error(self) -> Optional[str]:
        return self.engine.get_error()

    def on_status_change(self, listener) -> Callable[[], None]:
        return self.engine.on_status_change(listener)

    def get_last_sync(self) -> Optional[str]:
        return self.engine.get_last_sync()

    async def fetch_all_project_data(
        self,
        domains: Optional[List[str]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Fetch data from other domain projects (for dashboard aggregation).

        Args:
            domains: Domains to read (default: settings.project_domains)

        Returns:
            Documents by domain, None values for missing ones; None when
            not connected or no folder is configured
        """
        if not self.is_connected() or not self.is_folder_configured():
            return None

        project_data: Dict[str, Any] = {}
        for domain in domains or self.settings.project_domains:
            project_data[domain] = await self.provider.fetch_domain_data(domain)
            if project_data[domain] is None:
                logger.warning(f"No data available for {domain}")

        return project_data
