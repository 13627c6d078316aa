"""
Cloud sync for local-first applications.

One shared OAuth identity, one JSON document per domain, last-write-wins
reconciliation.
"""

from .base import (
    SyncProvider,
    Folder,
    FetchResult,
    SyncPayload,
    AttachmentInfo,
    DomainFile,
)
from .oauth import (
    OAuthAuthenticator,
    OAuthSession,
    TokenRecord,
    TokenStore,
    UserAgent,
    RequestUserAgent,
    OAUTH_PROVIDERS,
    generate_pkce,
)
from .folders import FolderStore, FolderPicker, NamedFolderPicker
from .google_drive import GoogleDriveProvider, GoogleDriveConfig
from .merge import MergeResult, reconcile, merge_records
from .engine import SyncEngine, SyncStatus, SyncOutcome, StatusListeners

__all__ = [
    # Base
    "SyncProvider",
    "Folder",
    "FetchResult",
    "SyncPayload",
    "AttachmentInfo",
    "DomainFile",
    # OAuth
    "OAuthAuthenticator",
    "OAuthSession",
    "TokenRecord",
    "TokenStore",
    "UserAgent",
    "RequestUserAgent",
    "OAUTH_PROVIDERS",
    "generate_pkce",
    # Folders
    "FolderStore",
    "FolderPicker",
    "NamedFolderPicker",
    # Google Drive
    "GoogleDriveProvider",
    "GoogleDriveConfig",
    # Merge
    "MergeResult",
    "reconcile",
    "merge_records",
    # Engine
    "SyncEngine",
    "SyncStatus",
    "SyncOutcome",
    "StatusListeners",
]
