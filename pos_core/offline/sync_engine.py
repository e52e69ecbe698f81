# =============================================================================
# pos_core/offline/sync_engine.py
# Automatic Synchronization Engine
# =============================================================================
"""
SyncEngine - Drains the pending-mutation queue into the POS backend.

Features:
- Background sync thread (periodic, woken early on request)
- Sync on offline -> online transitions
- Bounded retries with dead-lettering of poison items
- At most one pass in flight
- Event callbacks after every pass
"""

from __future__ import annotations
import atexit
import threading
from typing import Any, Callable, Dict, List, Optional
import logging

from pos_core.config import SyncConfig
from pos_core.errors import GatewayError, UnsupportedActionError
from pos_core.logging import LogContext
from pos_core.offline.connection_manager import ConnectionManager, ConnectionState
from pos_core.offline.gateway import RemoteGateway
from pos_core.offline.local_store import LocalRecordStore
from pos_core.offline.models import QueueItem, RecordType, SyncAction, SyncResult
from pos_core.offline.sync_queue import SyncQueue

logger = logging.getLogger(__name__)

NOT_READY = "offline or already syncing"

SyncCallback = Callable[[SyncResult], None]


def _create(gateway: RemoteGateway, item: QueueItem) -> Any:
    return gateway.create(item.type, item.data)


def _update(gateway: RemoteGateway, item: QueueItem) -> Any:
    return gateway.update(item.type, item.id, item.data)


def _delete(gateway: RemoteGateway, item: QueueItem) -> Any:
    return gateway.delete(item.type, item.id)


# (type, action) -> gateway call; pairs absent here have no backend operation
DISPATCH: Dict[tuple, Callable[[RemoteGateway, QueueItem], Any]] = {
    (RecordType.PRODUCTS, SyncAction.CREATE): _create,
    (RecordType.PRODUCTS, SyncAction.UPDATE): _update,
    (RecordType.PRODUCTS, SyncAction.DELETE): _delete,
    (RecordType.SALES, SyncAction.CREATE): _create,
    (RecordType.SETTINGS, SyncAction.UPDATE): _update,
    (RecordType.MOVEMENTS, SyncAction.CREATE): _create,
}


class SyncEngine:
    """
    Queue-draining sync engine.

    Usage:
        engine = SyncEngine(store, queue, gateway, connection, config.sync)
        engine.start()          # periodic background passes
        engine.request_sync()   # wake the worker now
        result = engine.sync_all()
        engine.stop()
    """

    def __init__(
        self,
        store: LocalRecordStore,
        queue: SyncQueue,
        gateway: RemoteGateway,
        connection: ConnectionManager,
        config: Optional[SyncConfig] = None,
    ):
        self._store = store
        self._queue = queue
        self._gateway = gateway
        self._connection = connection
        self.config = config or SyncConfig()

        self._pass_lock = threading.Lock()
        self._sync_thread: Optional[threading.Thread] = None
        self._stop_sync = threading.Event()
        self._wake = threading.Event()
        self._callbacks: List[SyncCallback] = []
        self._last_result: Optional[SyncResult] = None
        self._total_synced = 0
        self._initialized = False
        self._atexit_registered = False

    @property
    def is_syncing(self) -> bool:
        """Check if a pass is in progress."""
        return self._pass_lock.locked()

    @property
    def is_running(self) -> bool:
        return self._sync_thread is not None and self._sync_thread.is_alive()

    @property
    def last_result(self) -> Optional[SyncResult]:
        return self._last_result

    @property
    def last_sync(self) -> Optional[str]:
        """ISO timestamp of the last finished pass, persisted across restarts."""
        return self._store.get_last_sync()

    def initialize(self) -> None:
        """Register for connection status changes."""
        if self._initialized:
            return

        self._connection.register_callback(self._on_connection_change)
        self._initialized = True
        logger.info("SyncEngine initialized")

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """Start background sync thread."""
        if self.is_running:
            return

        self.initialize()
        self._stop_sync.clear()
        self._wake.clear()
        self._sync_thread = threading.Thread(
            target=self._sync_loop,
            daemon=True,
            name="SyncEngine"
        )
        self._sync_thread.start()

        if self.config.flush_on_exit and not self._atexit_registered:
            atexit.register(self._flush_at_exit)
            self._atexit_registered = True

        logger.info(f"Sync engine started (interval {self.config.sync_interval}s)")

    def stop(self, flush: bool = True) -> None:
        """
        Stop background sync thread.

        Args:
            flush: Run one last pass if online
        """
        self._stop_sync.set()
        self._wake.set()
        if self._sync_thread:
            self._sync_thread.join(timeout=10)
            self._sync_thread = None

        if self._atexit_registered:
            atexit.unregister(self._flush_at_exit)
            self._atexit_registered = False

        if flush and self._connection.is_online and len(self._queue):
            self.sync_all()
        logger.info("Sync engine stopped")

    def _flush_at_exit(self) -> None:
        try:
            self.stop(flush=True)
        except Exception as e:
            logger.error(f"Final sync failed: {e}")

    def _sync_loop(self) -> None:
        """Background sync loop."""
        while not self._stop_sync.is_set():
            self._wake.wait(timeout=self.config.sync_interval)
            self._wake.clear()
            if self._stop_sync.is_set():
                break

            if self._connection.is_online:
                try:
                    self.sync_all()
                except Exception as e:
                    logger.error(f"Sync error: {e}")

    def request_sync(self) -> bool:
        """
        Ask the background worker for a pass as soon as possible.

        Returns:
            True if a running worker was woken
        """
        if not self.is_running:
            logger.debug("Sync requested but worker not running")
            return False
        self._wake.set()
        return True

    def _on_connection_change(self, state: ConnectionState) -> None:
        """Handle connection status changes."""
        if not state.came_online:
            return

        logger.info("Connection restored, triggering sync")
        if not self.request_sync():
            self.sync_all()

    # =========================================================================
    # SYNC PASS
    # =========================================================================

    def force_sync(self) -> bool:
        """
        Perform an immediate pass.

        Returns:
            True if the pass ran and every item synced
        """
        return self.sync_all().success

    def sync_all(self) -> SyncResult:
        """
        Drain the queue once.

        Returns a no-op result when offline or when another pass is running.
        """
        if not self._connection.is_online:
            return SyncResult.noop(NOT_READY)

        if not self._pass_lock.acquire(blocking=False):
            logger.debug("Sync pass already in progress")
            return SyncResult.noop(NOT_READY)

        try:
            result = self._perform_sync()
            self._last_result = result
        finally:
            self._pass_lock.release()

        self._notify_callbacks(result)
        return result

    def _perform_sync(self) -> SyncResult:
        result = SyncResult()
        pending = [item for item in self._queue.all() if not item.synced]
        if not pending:
            self._store.set_last_sync()
            return result

        reasons: Dict[str, str] = {}
        rejected: List[QueueItem] = []

        with LogContext(logger, f"Syncing {len(pending)} operations"):
            for item in pending:
                try:
                    with self._queue.sending(item):
                        self._sync_item(item)
                except UnsupportedActionError as e:
                    # Nothing can ever apply this item
                    self._record_failure(result, reasons, item, e.message, "unsupported")
                    rejected.append(item)
                except GatewayError as e:
                    kind = "network" if e.retryable else "rejected"
                    self._record_failure(result, reasons, item, e.message, kind)
                    if not e.retryable and not self.config.retry_rejected:
                        rejected.append(item)
                    else:
                        self._queue.increment_retry(item.id, item.type, expected=item)
                except Exception as e:
                    logger.error(f"Error syncing {item.key}: {e}")
                    self._record_failure(result, reasons, item, str(e), "error")
                    self._queue.increment_retry(item.id, item.type, expected=item)
                else:
                    self._queue.mark_synced(item.id, item.type, expected=item)
                    result.synced += 1

            rejected = [
                item for item in rejected
                if self._queue.remove(item.id, item.type, expected=item) is not None
            ]
            exhausted = self._queue.cleanup()
            dropped = rejected + exhausted
            self._queue.park(dropped, reasons)
            result.dropped = len(dropped)

        result.success = result.failed == 0
        self._total_synced += result.synced
        self._store.set_last_sync()
        logger.info(
            f"Sync complete: {result.synced} success, {result.failed} failed, "
            f"{result.dropped} dropped"
        )
        return result

    def _sync_item(self, item: QueueItem) -> Any:
        handler = DISPATCH.get((item.type, item.action))
        if handler is None:
            raise UnsupportedActionError(item.type.value, item.action.value)
        return handler(self._gateway, item)

    @staticmethod
    def _record_failure(
        result: SyncResult,
        reasons: Dict[str, str],
        item: QueueItem,
        message: str,
        kind: str,
    ) -> None:
        result.failed += 1
        result.errors.append(f"{item.type.value}:{item.id} - [{kind}] {message}")
        reasons[item.key] = message

    # =========================================================================
    # CALLBACKS AND STATUS
    # =========================================================================

    def register_callback(self, callback: SyncCallback) -> None:
        """Register a callback notified after each pass."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: SyncCallback) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self, result: SyncResult) -> None:
        """Notify all registered callbacks."""
        for callback in list(self._callbacks):
            try:
                callback(result)
            except Exception as e:
                logger.error(f"Error in sync callback: {e}")

    def get_status_display(self) -> Dict[str, Any]:
        """Get sync status for UI display."""
        last = self._last_result
        return {
            "is_syncing": self.is_syncing,
            "is_running": self.is_running,
            "last_sync": self.last_sync,
            "last_success": last.success if last else None,
            "pending_count": self._queue.pending_count(),
            "failed_count": last.failed if last else 0,
            "dropped_count": len(self._queue.dropped()),
            "total_synced": self._total_synced,
        }
