"""
Sync HTTP API.
"""

from .routes import router, set_domain_sync, get_domain_sync

__all__ = [
    "router",
    "set_domain_sync",
    "get_domain_sync",
]
