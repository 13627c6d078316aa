"""
Sync engine.

Runs one synchronization cycle for a domain: read local data, fetch the
remote document, reconcile, write the result back locally and push it
when the remote is behind.
"""

import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..storage import KeyValueStore, MemoryStore
from .base import SyncPayload, SyncProvider
from .merge import reconcile

logger = logging.getLogger(__name__)

StatusListener = Callable[["SyncStatus", Optional[str]], None]


class SyncStatus(str, Enum):
    """Status of a sync engine."""
    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


@dataclass
class SyncOutcome:
    """Result of a sync() call."""
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.error is not None:
            result["error"] = self.error
        return result


class StatusListeners:
    """Ordered registry of status change callbacks."""

    def __init__(self):
        self._listeners: List[StatusListener] = []

    def add(self, listener: StatusListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            Function that unregisters it
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, status: SyncStatus, error: Optional[str]) -> None:
        for listener in list(self._listeners):
            try:
                listener(status, error)
            except Exception as e:
                logger.error(f"Sync status listener failed: {e}")

    def __len__(self) -> int:
        return len(self._listeners)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SyncEngine:
    """
    Domain-agnostic sync engine.

    Overlapping sync() calls are rejected, not queued.
    """

    def __init__(
        self,
        provider: SyncProvider,
        domain: str,
        get_local_data: Callable[[], Any],
        set_local_data: Callable[[Any], Any],
        get_last_sync: Optional[Callable[[], Any]] = None,
        set_last_sync: Optional[Callable[[str], Any]] = None,
        store: Optional[KeyValueStore] = None,
        is_online: Callable[[], bool] = lambda: True,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """
        Initialize sync engine.

        Args:
            provider: Remote storage provider
            domain: Domain name
            get_local_data: Returns the local snapshot (may be async)
            set_local_data: Receives the merged snapshot (may be async)
            get_last_sync: Returns the last sync timestamp; defaults to
                ``{domain}-lastSync`` in the store
            set_last_sync: Stores the last sync timestamp
            store: Key-value store for the default last sync accessors
            is_online: Network connectivity check
            clock: Returns the current UTC time
        """
        self.provider = provider
        self.domain = domain
        self._get_local_data = get_local_data
        self._set_local_data = set_local_data
        self._store = store or MemoryStore()
        self._get_last_sync = get_last_sync or self._stored_last_sync
        self._set_last_sync = set_last_sync or self._store_last_sync
        self._is_online = is_online
        self._clock = clock

        self._status = SyncStatus.IDLE
        self._last_error: Optional[str] = None
        self._listeners = StatusListeners()

    @property
    def last_sync_key(self) -> str:
        return f"{self.domain}-lastSync"

    def _stored_last_sync(self) -> Optional[str]:
        return self._store.get(self.last_sync_key) or None

    def _store_last_sync(self, timestamp: str) -> None:
        self._store.set(self.last_sync_key, timestamp)

    def on_status_change(self, listener: StatusListener) -> Callable[[], None]:
        """
        Subscribe to status changes.

        Args:
            listener: Called with (status, last_error)

        Returns:
            Unsubscribe function
        """
        return self._listeners.add(listener)

    def _set_status(self, status: SyncStatus, error: Optional[str] = None) -> None:
        self._status = status
        self._last_error = error
        self._listeners.notify(status, error)

    def get_status(self) -> SyncStatus:
        return self._status

    def get_error(self) -> Optional[str]:
        return self._last_error

    def get_last_sync(self) -> Any:
        return self._get_last_sync()

    def set_last_sync(self, timestamp: str) -> Any:
        return self._set_last_sync(timestamp)

    def can_sync(self) -> bool:
        """Check if sync is possible right now."""
        return (
            self._is_online()
            and self.provider.is_connected()
            and self.provider.is_folder_configured()
        )

    async def sync(self) -> SyncOutcome:
        """
        Perform one sync cycle.

        Never raises; failures are reported in the outcome and through
        the ERROR status.
        """
        if self._status == SyncStatus.SYNCING:
            return SyncOutcome(success=False, error="Sync already in progress")

        if not self.provider.is_connected():
            return SyncOutcome(success=False, error="Not connected to sync provider")

        if not self.provider.is_folder_configured():
            return SyncOutcome(success=False, error="No sync folder configured")

        self._set_status(SyncStatus.SYNCING)
        logger.info(f"Sync started for {self.domain}")

        try:
            local_data = await _maybe_await(self._get_local_data())
            last_sync = await _maybe_await(self._get_last_sync())
            logger.debug(f"Last sync for {self.domain}: {last_sync}")

            remote = await self.provider.fetch()

            result = reconcile(local_data, remote.data)

            await _maybe_await(self._set_local_data(result.merged))

            if result.has_local_changes:
                await self.provider.push(
                    SyncPayload(data=result.merged, last_modified=_iso(self._clock()))
                )

            await _maybe_await(self._set_last_sync(_iso(self._clock())))

        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Sync failed for {self.domain}: {message}")
            self._set_status(SyncStatus.ERROR, message)
            return SyncOutcome(success=False, error=message)
        except BaseException as e:
            # Cancellation: leave SYNCING, then let it propagate
            message = str(e) or type(e).__name__
            logger.warning(f"Sync interrupted for {self.domain}: {message}")
            self._set_status(SyncStatus.ERROR, message)
            raise

        logger.info(
            f"Sync completed for {self.domain}: pushed={result.has_local_changes}"
        )
        self._set_status(SyncStatus.IDLE)
        return SyncOutcome(success=True)
