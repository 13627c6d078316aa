"""
Sync API routes.

Hosts the OAuth redirect target and the sync control endpoints for one
domain.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import RedirectResponse

from ..app import DomainSync
from ..exceptions import AuthError, SyncError
from ..sync import NamedFolderPicker
from ..sync.oauth import RequestUserAgent
from .models import (
    FolderResponse,
    OAuthCallbackResponse,
    ProjectDataResponse,
    SelectFolderRequest,
    SyncRunResponse,
    SyncStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])

# Service reference (set by create_app)
_domain_sync: Optional[DomainSync] = None


def set_domain_sync(domain_sync: Optional[DomainSync]) -> None:
    """Set the domain sync used by route handlers."""
    global _domain_sync
    _domain_sync = domain_sync


def get_domain_sync() -> DomainSync:
    """Get domain sync instance."""
    if _domain_sync is None:
        raise HTTPException(503, "Sync not initialized")
    return _domain_sync


def _bind_request(domain_sync: DomainSync, request: Request) -> None:
    """Point the request-bound user agent at the current request."""
    if isinstance(domain_sync.user_agent, RequestUserAgent):
        domain_sync.user_agent.bind(str(request.url))


# ==================== OAuth ====================


@router.get("/oauth/google")
async def start_oauth_flow(request: Request):
    """Start the Google OAuth flow by redirecting to the consent page."""
    domain_sync = get_domain_sync()

    if not domain_sync.settings.google.is_configured():
        raise HTTPException(
            503,
            "Google OAuth not configured. Set GOOGLE_OAUTH_CLIENT_ID."
        )

    _bind_request(domain_sync, request)
    await domain_sync.connect()

    return RedirectResponse(domain_sync.user_agent.redirect_url, status_code=307)


@router.get("/oauth/google/callback", response_model=OAuthCallbackResponse)
async def oauth_callback(request: Request):
    """Handle the Google OAuth callback."""
    domain_sync = get_domain_sync()
    _bind_request(domain_sync, request)

    if not domain_sync.has_callback() and "error" not in request.query_params:
        raise HTTPException(400, "Missing code or state parameter")

    try:
        await domain_sync.handle_oauth_callback()
    except AuthError as e:
        logger.error(f"OAuth callback failed: {e}")
        raise HTTPException(400, str(e))

    return OAuthCallbackResponse(
        success=True,
        message="Google Drive connected successfully. Now select a folder.",
    )


@router.post("/disconnect")
async def disconnect():
    """Disconnect Google Drive."""
    get_domain_sync().disconnect()
    return {"success": True, "message": "Google Drive disconnected"}


# ==================== Status & sync ====================


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status():
    """Get sync status."""
    domain_sync = get_domain_sync()
    folder = domain_sync.get_folder()

    return SyncStatusResponse(
        domain=domain_sync.domain,
        status=domain_sync.get_status().value,
        error=domain_sync.get_error(),
        last_sync=domain_sync.get_last_sync(),
        connected=domain_sync.is_connected(),
        folder_configured=folder is not None,
        can_sync=domain_sync.can_sync(),
        folder=FolderResponse(**folder.to_dict()) if folder else None,
    )


@router.post("/run", response_model=SyncRunResponse)
async def run_sync():
    """Run one sync cycle. Failures are reported in the body."""
    outcome = await get_domain_sync().sync()
    return SyncRunResponse(success=outcome.success, error=outcome.error)


# ==================== Folder ====================


@router.post("/folder", response_model=FolderResponse)
async def select_folder(body: SelectFolderRequest):
    """Use (or create) a top-level folder with the given name."""
    domain_sync = get_domain_sync()

    try:
        folder = await domain_sync.select_folder(NamedFolderPicker(body.name))
    except SyncError as e:
        logger.error(f"Folder selection failed: {e}")
        raise HTTPException(502, str(e))

    if folder is None:
        raise HTTPException(400, "No folder selected")

    return FolderResponse(**folder.to_dict())


@router.delete("/folder")
async def remove_folder():
    """Clear the sync folder."""
    get_domain_sync().remove_folder()
    return {"success": True}


# ==================== Aggregation ====================


@router.get("/projects", response_model=ProjectDataResponse)
async def get_project_data():
    """Read other domains' data from the shared folder."""
    projects = await get_domain_sync().fetch_all_project_data()
    if projects is None:
        return ProjectDataResponse(available=False)
    return ProjectDataResponse(available=True, projects=projects)
