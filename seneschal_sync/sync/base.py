"""
Base sync provider interface.

A provider adapts one cloud backend to the operations the sync engine
and the host application need: connection, folder selection, the
domain's JSON document and binary attachments.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

DATA_FILE_SUFFIX = "-data.json"
DOCUMENT_VERSION = 1


def utc_now_iso() -> str:
    """Current time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Folder:
    """A remote container chosen by the user for sync."""
    id: str
    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Folder":
        return cls(id=data["id"], name=data.get("name", ""))


@dataclass
class FetchResult:
    """Remote snapshot of a domain. Both fields are None before first push."""
    data: Any = None
    last_modified: Optional[str] = None


@dataclass
class SyncPayload:
    """Data handed to push()."""
    data: Any
    last_modified: Optional[str] = None
    version: int = DOCUMENT_VERSION

    def to_document(self, domain: str) -> Dict[str, Any]:
        """Remote document format."""
        return {
            "domain": domain,
            "version": self.version or DOCUMENT_VERSION,
            "data": self.data,
            "lastModified": self.last_modified or utc_now_iso(),
        }


@dataclass
class AttachmentInfo:
    """Attachment stored remotely as ``{id}-{filename}``."""
    id: str
    remote_id: str
    filename: str
    mime_type: str = "application/octet-stream"
    size: int = 0

    @staticmethod
    def remote_name(attachment_id: str, filename: str) -> str:
        return f"{attachment_id}-{filename}"

    @classmethod
    def from_remote(
        cls,
        name: str,
        remote_id: str,
        mime_type: Optional[str] = None,
        size: Optional[Any] = None,
    ) -> "AttachmentInfo":
        """Recover id and filename by splitting on the first dash."""
        dash = name.find("-")
        if dash > 0:
            attachment_id, filename = name[:dash], name[dash + 1:]
        else:
            attachment_id = filename = name
        try:
            size_value = int(size) if size is not None else 0
        except (TypeError, ValueError):
            size_value = 0
        return cls(
            id=attachment_id,
            remote_id=remote_id,
            filename=filename,
            mime_type=mime_type or "application/octet-stream",
            size=size_value,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "remote_id": self.remote_id,
            "filename": self.filename,
            "mime_type": self.mime_type,
            "size": self.size,
        }


@dataclass
class DomainFile:
    """Another domain's data document in the shared folder."""
    domain: str
    file_id: str

    @classmethod
    def from_remote(cls, name: str, file_id: str) -> "DomainFile":
        return cls(domain=name.replace(DATA_FILE_SUFFIX, ""), file_id=file_id)


class SyncProvider(ABC):
    """Abstract base class for sync providers."""

    name: str = ""
    domain: str = ""

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if an access token is available."""
        pass

    @abstractmethod
    async def connect(self) -> None:
        """Start the OAuth flow."""
        pass

    @abstractmethod
    async def handle_auth_callback(self) -> bool:
        """Complete the OAuth flow from the callback request."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Log out and forget cached remote identifiers."""
        pass

    @abstractmethod
    def is_folder_configured(self) -> bool:
        """Check if a sync folder has been selected."""
        pass

    @abstractmethod
    async def select_folder(self) -> Optional[Folder]:
        """
        Let the user pick the sync folder.

        Returns:
            Selected folder, or None if the selection was cancelled
        """
        pass

    @abstractmethod
    def get_folder(self) -> Optional[Folder]:
        """Get the configured sync folder."""
        pass

    @abstractmethod
    def remove_folder(self) -> None:
        """Clear the configured sync folder."""
        pass

    @abstractmethod
    async def fetch(self) -> FetchResult:
        """
        Download the domain's document.

        Returns:
            Fetch result, empty when there is no remote data yet
        """
        pass

    @abstractmethod
    async def push(self, payload: SyncPayload) -> bool:
        """
        Overwrite the domain's document.

        Args:
            payload: Data and timestamp to store

        Returns:
            True if successful
        """
        pass

    @abstractmethod
    async def upload_attachment(
        self,
        attachment_id: str,
        filename: str,
        content: bytes,
        mime_type: Optional[str] = None,
    ) -> str:
        """
        Upload an attachment.

        Returns:
            Remote file ID
        """
        pass

    @abstractmethod
    async def download_attachment(self, remote_id: str) -> bytes:
        """Download attachment content."""
        pass

    @abstractmethod
    async def delete_attachment(self, remote_id: str) -> None:
        """Delete an attachment."""
        pass

    @abstractmethod
    async def list_attachments(self) -> List[AttachmentInfo]:
        """List the domain's attachments."""
        pass

    @abstractmethod
    async def list_all_domain_files(self) -> List[DomainFile]:
        """List every domain document in the shared folder."""
        pass

    @abstractmethod
    async def fetch_domain_data(self, domain_name: str) -> Optional[Dict[str, Any]]:
        """
        Read another domain's document.

        Returns:
            The document, or None on any failure
        """
        pass
