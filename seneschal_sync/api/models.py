"""
Sync API request/response models.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class FolderResponse(BaseModel):
    """Selected sync folder."""
    id: str
    name: str = ""


class SyncStatusResponse(BaseModel):
    """Sync status for the domain."""
    domain: str
    status: str
    error: Optional[str] = None
    last_sync: Optional[str] = None
    connected: bool
    folder_configured: bool
    can_sync: bool
    folder: Optional[FolderResponse] = None


class SyncRunResponse(BaseModel):
    """Outcome of a sync cycle."""
    success: bool
    error: Optional[str] = None


class SelectFolderRequest(BaseModel):
    """Request to select (or create) a top-level sync folder by name."""
    name: str = Field(..., min_length=1)


class OAuthCallbackResponse(BaseModel):
    """OAuth callback result."""
    success: bool
    message: str


class ProjectDataResponse(BaseModel):
    """Other domains' documents, keyed by domain."""
    available: bool
    projects: Dict[str, Optional[Dict[str, Any]]] = Field(default_factory=dict)
