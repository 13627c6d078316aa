"""
Seneschal Sync.

Keeps a per-application data file synchronized with a Google Drive
folder shared by several local-first applications.
"""

from .app import DomainSync
from .local import JsonFileDataSource
from .exceptions import (
    SyncError,
    AuthError,
    NotAuthenticatedError,
    NoFolderConfiguredError,
    ProviderError,
    MergeShapeError,
)
from .sync import (
    SyncEngine,
    SyncStatus,
    SyncOutcome,
    GoogleDriveProvider,
    GoogleDriveConfig,
    OAuthAuthenticator,
    TokenStore,
    reconcile,
)

__version__ = "0.1.0"

__all__ = [
    "DomainSync",
    "JsonFileDataSource",
    # Errors
    "SyncError",
    "AuthError",
    "NotAuthenticatedError",
    "NoFolderConfiguredError",
    "ProviderError",
    "MergeShapeError",
    # Sync
    "SyncEngine",
    "SyncStatus",
    "SyncOutcome",
    "GoogleDriveProvider",
    "GoogleDriveConfig",
    "OAuthAuthenticator",
    "TokenStore",
    "reconcile",
]
