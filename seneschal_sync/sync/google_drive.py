"""
Google Drive sync provider.

Stores each domain's snapshot as ``{domain}-data.json`` inside the
user's sync folder and its attachments under ``attachments/{domain}``.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..exceptions import (
    NoFolderConfiguredError,
    NotAuthenticatedError,
    ProviderError,
    SyncError,
)
from .base import (
    DATA_FILE_SUFFIX,
    AttachmentInfo,
    DomainFile,
    FetchResult,
    Folder,
    SyncPayload,
    SyncProvider,
)
from .folders import FolderPicker, FolderStore
from .oauth import OAuthAuthenticator

logger = logging.getLogger(__name__)

PROVIDER = "google"
SCOPES = [
    "https://www.googleapis.com/auth/drive.file",  # Create/access app files
]

API_BASE = "https://www.googleapis.com"
FILES_PATH = "/drive/v3/files"
UPLOAD_PATH = "/upload/drive/v3/files"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
ATTACHMENTS_FOLDER = "attachments"


@dataclass
class GoogleDriveConfig:
    """Configuration for one domain's Google Drive sync."""
    domain: str
    client_id: str
    redirect_uri: str
    client_secret: Optional[str] = None
    api_key: Optional[str] = None


def _quote(value: str) -> str:
    """Escape a value for use inside a Drive query string literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class GoogleDriveProvider(SyncProvider):
    """
    Google Drive sync provider.

    Discovered file and folder IDs are memoized until the sync folder
    changes or the provider disconnects.
    """

    name = "google-drive"

    def __init__(
        self,
        config: GoogleDriveConfig,
        authenticator: OAuthAuthenticator,
        folder_store: FolderStore,
        folder_picker: Optional[FolderPicker] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Google Drive provider.

        Args:
            config: Domain and OAuth client configuration
            authenticator: Shared OAuth authenticator
            folder_store: Persistence for the selected sync folder
            folder_picker: How select_folder() asks for a folder
            http_client: HTTP client for Drive API calls
        """
        self.config = config
        self.domain = config.domain
        self.authenticator = authenticator
        self.folder_store = folder_store
        self.folder_picker = folder_picker
        self._http_client = http_client
        self._owns_client = http_client is None

        self._file_id: Optional[str] = None
        self._attachments_folder_id: Optional[str] = None

    @property
    def data_file_name(self) -> str:
        return f"{self.domain}{DATA_FILE_SUFFIX}"

    def _reset_cache(self) -> None:
        self._file_id = None
        self._attachments_folder_id = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client if this provider created it."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    # ==================== Connection ====================

    def is_connected(self) -> bool:
        return self.authenticator.is_authenticated(PROVIDER)

    async def connect(self) -> None:
        await self.authenticator.start_auth(
            PROVIDER, self.config.client_id, SCOPES, self.config.redirect_uri
        )

    async def handle_auth_callback(self) -> bool:
        return await self.authenticator.handle_callback(
            PROVIDER,
            self.config.client_id,
            self.config.redirect_uri,
            self.config.client_secret,
        )

    def disconnect(self) -> None:
        self.authenticator.logout(PROVIDER)
        self._reset_cache()

    # ==================== Folder selection ====================

    def is_folder_configured(self) -> bool:
        return self.folder_store.get_saved_folder() is not None

    async def select_folder(self, picker: Optional[FolderPicker] = None) -> Optional[Folder]:
        picker = picker or self.folder_picker
        if picker is None:
            raise ValueError("No folder picker configured")

        folder = await picker.pick_folder(self, f"Select folder for {self.domain} sync")
        if folder:
            self.folder_store.save_folder(folder)
            # Cached IDs belong to the previous folder
            self._reset_cache()
        return folder

    def get_folder(self) -> Optional[Folder]:
        return self.folder_store.get_saved_folder()

    def remove_folder(self) -> None:
        self.folder_store.clear_folder()
        self._reset_cache()

    def _require_folder(self) -> Folder:
        folder = self.folder_store.get_saved_folder()
        if not folder:
            raise NoFolderConfiguredError()
        return folder

    # ==================== HTTP ====================

    async def _api_request(
        self,
        method: str,
        path: str,
        failure_message: str = "API request failed",
        raw: bool = False,
        **kwargs: Any,
    ) -> Any:
        """
        Make an authenticated Drive API request.

        Args:
            method: HTTP method
            path: Path below the API base URL
            failure_message: Message used when the backend gives none
            raw: Return the body bytes instead of parsed JSON
            **kwargs: Passed through to httpx

        Returns:
            Parsed JSON body, None for an empty or non-JSON body, or bytes
            when raw is set

        Raises:
            NotAuthenticatedError: No usable access token
            ProviderError: Non-success response
        """
        token = self.authenticator.get_token(PROVIDER)
        if not token:
            raise NotAuthenticatedError()

        headers = {"Authorization": f"Bearer {token}"}
        headers.update(kwargs.pop("headers", {}) or {})

        client = await self._get_http_client()
        response = await client.request(method, f"{API_BASE}{path}", headers=headers, **kwargs)

        if not response.is_success:
            message = None
            try:
                error = response.json().get("error")
                if isinstance(error, dict):
                    message = error.get("message")
            except (ValueError, AttributeError):
                pass
            logger.error(f"Drive API {method} {path} failed: {response.status_code} {message or ''}")
            raise ProviderError(message or failure_message, status_code=response.status_code)

        if raw:
            return response.content

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    async def _find_child(
        self,
        name: str,
        parent_id: str,
        folders_only: bool = False,
    ) -> Optional[str]:
        """Find a non-trashed child by name, returning its ID."""
        query = f"name='{_quote(name)}' and '{parent_id}' in parents"
        if folders_only:
            query += f" and mimeType='{FOLDER_MIME_TYPE}'"
        query += " and trashed=false"

        result = await self._api_request("GET", FILES_PATH, params={"q": query})
        files = (result or {}).get("files") or []
        if files:
            return files[0]["id"]
        return None

    async def _create_metadata(
        self,
        name: str,
        parent_id: Optional[str],
        mime_type: str,
        failure_message: str = "API request failed",
    ) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"name": name, "mimeType": mime_type}
        if parent_id:
            metadata["parents"] = [parent_id]
        return await self._api_request(
            "POST", FILES_PATH, failure_message=failure_message, json=metadata
        )

    async def _get_or_create_folder(self, name: str, parent_id: str) -> str:
        folder_id = await self._find_child(name, parent_id, folders_only=True)
        if folder_id:
            return folder_id
        created = await self._create_metadata(name, parent_id, FOLDER_MIME_TYPE)
        logger.info(f"Created folder: {name}")
        return created["id"]

    async def _get_or_create_data_file(self) -> str:
        """Find or create the domain's data file."""
        if self._file_id:
            return self._file_id

        folder = self._require_folder()

        file_id = await self._find_child(self.data_file_name, folder.id)
        if not file_id:
            created = await self._create_metadata(
                self.data_file_name, folder.id, "application/json"
            )
            file_id = created["id"]
            logger.info(f"Created data file {self.data_file_name} in {folder.name or folder.id}")

        self._file_id = file_id
        return file_id

    async def _get_or_create_attachments_folder(self) -> str:
        """Find or create ``attachments/{domain}`` inside the sync folder."""
        if self._attachments_folder_id:
            return self._attachments_folder_id

        folder = self._require_folder()

        attachments_parent = await self._get_or_create_folder(ATTACHMENTS_FOLDER, folder.id)
        self._attachments_folder_id = await self._get_or_create_folder(
            self.domain, attachments_parent
        )
        return self._attachments_folder_id

    @staticmethod
    def _multipart(metadata: Dict[str, Any], content: bytes, mime_type: str) -> Dict[str, Any]:
        return {
            "metadata": (None, json.dumps(metadata).encode(), "application/json"),
            "file": ("blob", content, mime_type),
        }

    # ==================== Domain data ====================

    async def fetch(self) -> FetchResult:
        file_id = await self._get_or_create_data_file()

        try:
            document = await self._api_request(
                "GET", f"{FILES_PATH}/{file_id}", params={"alt": "media"}
            )
        except ProviderError as e:
            # Only a missing file means there is no remote data
            if e.status_code != 404:
                raise
            logger.warning(f"No remote data for {self.domain}: {e}")
            self._file_id = None
            return FetchResult()

        if not isinstance(document, dict):
            return FetchResult()

        return FetchResult(
            data=document.get("data"),
            last_modified=document.get("lastModified"),
        )

    async def push(self, payload: SyncPayload) -> bool:
        file_id = await self._get_or_create_data_file()

        document = payload.to_document(self.domain)
        content = json.dumps(document).encode()

        await self._api_request(
            "PATCH",
            f"{UPLOAD_PATH}/{file_id}",
            failure_message="Failed to upload data to Google Drive",
            params={"uploadType": "multipart"},
            files=self._multipart({"mimeType": "application/json"}, content, "application/json"),
        )

        logger.info(f"Pushed {self.domain} data ({len(content)} bytes)")
        return True

    # ==================== Attachments ====================

    async def upload_attachment(
        self,
        attachment_id: str,
        filename: str,
        content: bytes,
        mime_type: Optional[str] = None,
    ) -> str:
        folder_id = await self._get_or_create_attachments_folder()

        mime_type = mime_type or "application/octet-stream"
        metadata = {
            "name": AttachmentInfo.remote_name(attachment_id, filename),
            "parents": [folder_id],
            "mimeType": mime_type,
        }

        result = await self._api_request(
            "POST",
            UPLOAD_PATH,
            failure_message="Failed to upload attachment",
            params={"uploadType": "multipart"},
            files=self._multipart(metadata, content, mime_type),
        )
        return result["id"]

    async def download_attachment(self, remote_id: str) -> bytes:
        return await self._api_request(
            "GET",
            f"{FILES_PATH}/{remote_id}",
            failure_message="Failed to download attachment",
            raw=True,
            params={"alt": "media"},
        )

    async def delete_attachment(self, remote_id: str) -> None:
        await self._api_request(
            "DELETE",
            f"{FILES_PATH}/{remote_id}",
            failure_message="Failed to delete attachment",
        )

    async def list_attachments(self) -> List[AttachmentInfo]:
        folder_id = await self._get_or_create_attachments_folder()

        result = await self._api_request(
            "GET",
            FILES_PATH,
            params={
                "q": f"'{folder_id}' in parents and trashed=false",
                "fields": "files(id,name,mimeType,size)",
            },
        )

        return [
            AttachmentInfo.from_remote(
                name=file["name"],
                remote_id=file["id"],
                mime_type=file.get("mimeType"),
                size=file.get("size"),
            )
            for file in (result or {}).get("files") or []
        ]

    # ==================== Aggregation ====================

    async def list_all_domain_files(self) -> List[DomainFile]:
        folder = self.folder_store.get_saved_folder()
        if not folder:
            return []

        result = await self._api_request(
            "GET",
            FILES_PATH,
            params={
                "q": f"'{folder.id}' in parents and name contains '{DATA_FILE_SUFFIX}' and trashed=false",
                "fields": "files(id,name)",
            },
        )

        return [
            DomainFile.from_remote(file["name"], file["id"])
            for file in (result or {}).get("files") or []
        ]

    async def fetch_domain_data(self, domain_name: str) -> Optional[Dict[str, Any]]:
        try:
            folder = self._require_folder()
            file_id = await self._find_child(f"{domain_name}{DATA_FILE_SUFFIX}", folder.id)
            if not file_id:
                return None
            document = await self._api_request(
                "GET", f"{FILES_PATH}/{file_id}", params={"alt": "media"}
            )
        except (SyncError, httpx.HTTPError) as e:
            logger.warning(f"Failed to fetch {domain_name} data: {e}")
            return None

        return document if isinstance(document, dict) else None

    # ==================== Folders ====================

    async def find_folder(self, name: str, parent_id: Optional[str] = None) -> Optional[Folder]:
        """Find a folder by name under the parent (default: My Drive root)."""
        folder_id = await self._find_child(name, parent_id or "root", folders_only=True)
        return Folder(id=folder_id, name=name) if folder_id else None

    async def create_folder(self, name: str, parent_id: Optional[str] = None) -> Folder:
        """Create a new folder in Google Drive."""
        result = await self._create_metadata(
            name, parent_id, FOLDER_MIME_TYPE, failure_message="Failed to create folder"
        )
        logger.info(f"Created folder: {name}")
        return Folder(id=result["id"], name=result.get("name", name))

    def get_status(self) -> Dict[str, Any]:
        """Get provider connection status."""
        folder = self.get_folder()
        return {
            "provider": self.name,
            "domain": self.domain,
            "connected": self.is_connected(),
            "folder": folder.to_dict() if folder else None,
        }
