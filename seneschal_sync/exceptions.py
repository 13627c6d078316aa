"""
Error taxonomy for the synchronization subsystem.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for all sync subsystem errors."""


class AuthError(SyncError):
    """OAuth callback or token exchange failed."""


class NotAuthenticatedError(SyncError):
    """A remote call was attempted without a usable access token."""

    def __init__(self, message: str = "Not authenticated with Google"):
        super().__init__(message)


class NoFolderConfiguredError(SyncError):
    """A remote call needs a sync folder but none has been selected."""

    def __init__(
        self,
        message: str = "No folder selected. Please select a folder in Settings.",
    ):
        super().__init__(message)


class ProviderError(SyncError):
    """Non-success response from the remote storage backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MergeShapeError(SyncError):
    """Local and remote snapshots have shapes that cannot be reconciled."""
