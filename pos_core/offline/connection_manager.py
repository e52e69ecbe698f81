# =============================================================================
# pos_core/offline/connection_manager.py
# Connection Status Detection and Management
# =============================================================================
"""
ConnectionManager - Detects and monitors reachability of the POS backend.

Features:
- Health checks through the remote gateway (``GET /health``)
- Periodic background monitoring
- Event callbacks for status changes
- Synthetic online/offline events for tests and manual overrides
"""

from __future__ import annotations
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
import logging

from pos_core.offline.gateway import RemoteGateway

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"           # Backend answered the health check
    OFFLINE = "offline"         # Backend unreachable or forced offline
    UNKNOWN = "unknown"         # Initial state, before the first check


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    previous_status: ConnectionStatus = ConnectionStatus.UNKNOWN
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None
    forced: bool = False

    @property
    def came_online(self) -> bool:
        """True when the latest change was a transition into ONLINE."""
        return (
            self.status == ConnectionStatus.ONLINE
            and self.previous_status != ConnectionStatus.ONLINE
        )


ConnectionCallback = Callable[[ConnectionState], None]


class ConnectionManager:
    """
    Connectivity observer for the sync layer.

    Usage:
        manager = ConnectionManager(gateway)
        manager.initialize()
        if manager.is_online:
            ...
        manager.register_callback(on_change)
    """

    # Configuration
    CHECK_INTERVAL_ONLINE = 30      # Seconds between checks when online
    CHECK_INTERVAL_OFFLINE = 10     # Seconds between checks when offline

    def __init__(
        self,
        gateway: Optional[RemoteGateway] = None,
        check_interval_online: float = CHECK_INTERVAL_ONLINE,
        check_interval_offline: float = CHECK_INTERVAL_OFFLINE,
    ):
        """
        Initialize connection manager.

        Args:
            gateway: Gateway used for health checks; without one the status
                only changes through set_online()/set_offline()
            check_interval_online: Seconds between checks while online
            check_interval_offline: Seconds between checks while offline
        """
        self._gateway = gateway
        self._state = ConnectionState()
        self._callbacks: List[ConnectionCallback] = []
        self._monitor_thread: Optional[threading.Thread] = None
        self._stop_monitoring = threading.Event()
        self._state_lock = threading.Lock()
        self._initialized = False
        self.check_interval_online = check_interval_online
        self.check_interval_offline = check_interval_offline

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def is_online(self) -> bool:
        """Check if the backend is reachable."""
        return self._state.status == ConnectionStatus.ONLINE

    @property
    def is_offline(self) -> bool:
        return not self.is_online

    def initialize(self, start_monitoring: bool = True) -> None:
        """
        Initialize the connection manager.

        Args:
            start_monitoring: Whether to start background monitoring
        """
        if self._initialized:
            return

        self.check_connection()

        if start_monitoring and self._gateway is not None:
            self.start_monitoring()

        self._initialized = True
        logger.info(f"ConnectionManager initialized. Status: {self._state.status.value}")

    def check_connection(self) -> ConnectionState:
        """
        Perform a health check and update state.

        Returns:
            Updated ConnectionState
        """
        if self._gateway is None or self._state.forced:
            return self._state

        health = self._gateway.health_check()
        reachable = str(health.get("status", "OK")).lower() not in ("offline", "error")

        with self._state_lock:
            self._state.last_check = datetime.now()
            if reachable:
                self._state.consecutive_failures = 0
                self._state.error_message = None
            else:
                self._state.consecutive_failures += 1
                self._state.error_message = health.get("error")

        self._transition(ConnectionStatus.ONLINE if reachable else ConnectionStatus.OFFLINE)
        return self._state

    def _transition(self, new_status: ConnectionStatus) -> None:
        """Apply a status and notify callbacks if it changed."""
        with self._state_lock:
            old_status = self._state.status
            if old_status == new_status:
                return
            self._state.previous_status = old_status
            self._state.status = new_status
            if new_status == ConnectionStatus.ONLINE:
                self._state.last_online = datetime.now()

        logger.info(f"Connection status changed: {old_status.value} -> {new_status.value}")
        self._notify_callbacks()

    def start_monitoring(self) -> None:
        """Start background connection monitoring."""
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return

        self._stop_monitoring.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitoring_loop,
            daemon=True,
            name="ConnectionMonitor"
        )
        self._monitor_thread.start()
        logger.debug("Connection monitoring started")

    def stop_monitoring(self) -> None:
        """Stop background connection monitoring."""
        self._stop_monitoring.set()
        if self._monitor_thread:
            self._monitor_thread.join(timeout=5)
            self._monitor_thread = None
        logger.debug("Connection monitoring stopped")

    def _monitoring_loop(self) -> None:
        """Background monitoring loop."""
        while not self._stop_monitoring.is_set():
            interval = (
                self.check_interval_online
                if self.is_online
                else self.check_interval_offline
            )

            if self._stop_monitoring.wait(timeout=interval):
                break

            try:
                self.check_connection()
            except Exception as e:
                logger.error(f"Error in connection check: {e}")

    def register_callback(self, callback: ConnectionCallback) -> None:
        """
        Register a callback for connection status changes.

        Args:
            callback: Function called with ConnectionState when status changes
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: ConnectionCallback) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        """Notify all registered callbacks of status change."""
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}")

    # =========================================================================
    # SYNTHETIC EVENTS
    # =========================================================================

    def set_online(self) -> None:
        """Report the backend reachable (releases a forced offline mode)."""
        self._state.forced = False
        self._transition(ConnectionStatus.ONLINE)

    def set_offline(self) -> None:
        """Report the backend unreachable until the next successful check."""
        self._transition(ConnectionStatus.OFFLINE)

    def force_offline(self) -> None:
        """Stay offline, ignoring health checks, until set_online()."""
        self._state.forced = True
        self._transition(ConnectionStatus.OFFLINE)
        logger.info("Forced offline mode")

    def force_check(self) -> ConnectionState:
        """Force an immediate connection check."""
        return self.check_connection()

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "forced": self._state.forced,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }
