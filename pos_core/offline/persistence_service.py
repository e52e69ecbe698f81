# =============================================================================
# pos_core/offline/persistence_service.py
# Data Persistence Service - Single API for Online/Offline Operations
# =============================================================================
"""
DataPersistenceService - The primary API for all POS data operations.

This service provides a unified interface that automatically handles:
- Writes: local store first, then the sync queue, then a background sync
- Reads: server listing when online, local backup plus pending edits otherwise
- Status for the connectivity indicator
- Dead-lettered items (listing, retry, clearing)

Usage:
------
from pos_core.offline import create_persistence_service

service = create_persistence_service()
service.start()

sale_id = service.save_data("sales", "create", {"total": 12.5}, business_id)
sales = service.load_data("sales", business_id)

print(service.get_sync_status().to_dict())
service.stop()
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging

import pandas as pd

from pos_core.config import AppConfig, load_config
from pos_core.errors import (
    GatewayError,
    RecordValidationError,
    UnsupportedActionError,
)
from pos_core.offline.connection_manager import ConnectionManager
from pos_core.offline.gateway import HttpRemoteGateway, RemoteGateway
from pos_core.offline.local_store import LocalRecordStore
from pos_core.offline.models import (
    QueueItem,
    RecordType,
    SyncAction,
    SyncResult,
    SyncStatus,
    generate_record_id,
    now_ms,
    sanitize_data,
)
from pos_core.offline.sync_engine import DISPATCH, SyncCallback, SyncEngine
from pos_core.offline.sync_queue import SyncQueue

logger = logging.getLogger(__name__)


class DataPersistenceService:
    """
    Persistence facade used by the UI-state classes.

    Construct it once (see ``create_persistence_service``) and pass it to
    whatever needs it.
    """

    def __init__(
        self,
        store: LocalRecordStore,
        queue: SyncQueue,
        gateway: RemoteGateway,
        connection: ConnectionManager,
        engine: Optional[SyncEngine] = None,
        config: Optional[AppConfig] = None,
    ):
        self.config = config or AppConfig()
        self.store = store
        self.queue = queue
        self.gateway = gateway
        self.connection = connection
        self.engine = engine or SyncEngine(store, queue, gateway, connection, self.config.sync)

        self.store.initialize()
        self.engine.initialize()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def is_online(self) -> bool:
        """Check if currently online."""
        return self.connection.is_online

    @property
    def is_offline(self) -> bool:
        return not self.is_online

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """Start connectivity monitoring and the background sync worker."""
        self.connection.initialize(start_monitoring=True)
        self.engine.start()
        logger.info(f"DataPersistenceService started. Online: {self.is_online}")

    def stop(self, flush: bool = True) -> None:
        """
        Stop background work.

        Args:
            flush: Push pending mutations one last time if online
        """
        self.engine.stop(flush=flush)
        self.connection.stop_monitoring()
        self.store.close()
        logger.info("DataPersistenceService stopped")

    def __enter__(self) -> DataPersistenceService:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop(flush=True)
        return False

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @staticmethod
    def _require_business(business_id: Any) -> str:
        if business_id is None or not str(business_id).strip():
            raise RecordValidationError("businessId is required", field="businessId")
        return str(business_id)

    # =========================================================================
    # WRITES
    # =========================================================================

    def save_data(
        self,
        record_type: Any,
        action: Any,
        data: Dict[str, Any],
        business_id: str,
        record_id: Optional[str] = None,
    ) -> str:
        """
        Persist a mutation locally and queue it for the backend.

        Args:
            record_type: products | sales | settings | movements
            action: create | update | delete
            data: Record payload
            business_id: Owning business
            record_id: Record id (defaults to data["id"], generated for creates)

        Returns:
            The record id, available immediately for reads

        Raises:
            RecordValidationError, UnknownRecordTypeError, UnsupportedActionError
        """
        record_type = RecordType.parse(record_type)
        action = SyncAction.parse(action)
        if (record_type, action) not in DISPATCH:
            raise UnsupportedActionError(record_type.value, action.value)

        business_id = self._require_business(business_id)
        if not isinstance(data, dict):
            raise RecordValidationError(
                "Record data must be a mapping",
                field="data",
                record_type=record_type.value,
            )

        record_id = record_id or data.get("id")
        if not record_id:
            if action != SyncAction.CREATE:
                raise RecordValidationError(
                    f"An id is required to {action.value} {record_type.value}",
                    field="id",
                    record_type=record_type.value,
                )
            record_id = generate_record_id(record_type)
        record_id = str(record_id)

        payload = sanitize_data(data)
        payload["id"] = record_id

        local_data = payload
        if action == SyncAction.UPDATE:
            existing = self.store.get(record_type, record_id)
            if existing and existing.get("action") != SyncAction.DELETE.value:
                local_data = {**(existing.get("data") or {}), **payload}

        item = QueueItem(
            id=record_id,
            type=record_type,
            action=action,
            data=payload,
            business_id=business_id,
            timestamp=now_ms(),
        )

        envelope = item.to_dict()
        envelope["data"] = local_data
        if not self.store.put(record_type, record_id, envelope):
            logger.warning(f"Local write failed for {item.key}; queued only")

        self.queue.enqueue(item)
        logger.debug(f"Saved {record_type.value}:{record_id} ({action.value}) locally")

        if self.is_online:
            self.engine.request_sync()

        return record_id

    # =========================================================================
    # READS
    # =========================================================================

    def load_data(self, record_type: Any, business_id: str) -> List[Dict[str, Any]]:
        """
        Current view of a record type for a business.

        Online, the server listing is fetched, saved as the backup and
        overlaid with mutations still waiting in the queue. Offline (or when
        the server fails) the backup is overlaid with locally stored records.
        """
        record_type = RecordType.parse(record_type)
        business_id = self._require_business(business_id)

        if self.is_online:
            try:
                server_records = self.gateway.list(record_type)
                self.store.put_backup(record_type, business_id, server_records)
                return self._overlay_pending(record_type, business_id, server_records)
            except GatewayError as e:
                logger.warning(f"Falling back to local {record_type.value}: {e.message}")
            except Exception as e:
                logger.error(f"Unexpected error loading {record_type.value}: {e}")

        return self._load_local(record_type, business_id)

    def _load_local(self, record_type: RecordType, business_id: str) -> List[Dict[str, Any]]:
        """
        Backup overlaid with local writes the backup does not reflect yet:
        those still queued, and those saved after the backup was taken.
        """
        records = self._index(self.store.get_backup(record_type, business_id) or [])
        backup_time = self.store.get_backup_time(record_type, business_id)
        pending = {
            item.id for item in self.queue.all()
            if not item.synced and item.type == record_type and item.business_id == business_id
        }

        for envelope in self.store.list_envelopes(record_type, business_id):
            record_id = envelope.get("id")
            newer = backup_time is None or (envelope.get("timestamp") or 0) > backup_time
            if str(record_id) in pending or newer:
                self._apply(records, record_id, envelope.get("action"), envelope.get("data"))
        return list(records.values())

    def _overlay_pending(
        self,
        record_type: RecordType,
        business_id: str,
        server_records: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        records = self._index(server_records)
        for item in self.queue.all():
            if item.synced or item.type != record_type or item.business_id != business_id:
                continue
            local = self.store.get(record_type, item.id)
            data = local.get("data") if local else item.data
            self._apply(records, item.id, item.action.value, data)
        return list(records.values())

    @staticmethod
    def _index(records: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        indexed = {}
        for position, record in enumerate(records):
            if not isinstance(record, dict):
                continue
            key = str(record.get("id", f"__row_{position}"))
            indexed[key] = record
        return indexed

    @staticmethod
    def _apply(
        records: Dict[str, Dict[str, Any]],
        record_id: Any,
        action: Optional[str],
        data: Optional[Dict[str, Any]],
    ) -> None:
        if record_id is None:
            return
        key = str(record_id)
        if action == SyncAction.DELETE.value:
            records.pop(key, None)
        else:
            records[key] = {**records.get(key, {}), **(data or {})}

    def load_dataframe(self, record_type: Any, business_id: str) -> pd.DataFrame:
        """load_data() as a pandas DataFrame."""
        return pd.DataFrame(self.load_data(record_type, business_id))

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_pending_count(self, business_id: Optional[str] = None) -> int:
        return self.queue.pending_count(business_id)

    def get_connection_status(self) -> str:
        """'online' or 'offline'."""
        return "online" if self.is_online else "offline"

    def get_sync_status(self) -> SyncStatus:
        return SyncStatus(
            is_online=self.is_online,
            queue_length=self.queue.pending_count(),
            last_sync=self.engine.last_sync,
            is_syncing=self.engine.is_syncing,
        )

    def register_callback(self, callback: SyncCallback) -> None:
        """Be notified after every sync pass."""
        self.engine.register_callback(callback)

    # =========================================================================
    # SYNC
    # =========================================================================

    def sync_all(self) -> SyncResult:
        return self.engine.sync_all()

    def force_sync(self) -> bool:
        """Run a pass now; True only if it ran and nothing failed."""
        return self.engine.force_sync()

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def clear_all_data(self, business_id: str) -> int:
        """Remove every local record, backup and queued item of a business."""
        business_id = self._require_business(business_id)
        with self.queue.lock:
            return self.store.clear_for_business(business_id)

    def get_dropped_items(self, business_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.queue.dropped(business_id)

    def retry_dropped(self, item_id: str, record_type: Any = None) -> bool:
        """
        Put a dead-lettered item back in the queue.

        Args:
            item_id: Record id of the dropped item
            record_type: Narrow the match when ids repeat across types
        """
        restored = self.queue.restore(item_id, record_type)
        if restored is None:
            return False
        if self.is_online:
            self.engine.request_sync()
        return True

    def clear_dropped(self, business_id: Optional[str] = None) -> int:
        return self.queue.clear_dropped(business_id)


def create_persistence_service(
    config: Optional[AppConfig] = None,
    gateway: Optional[RemoteGateway] = None,
) -> DataPersistenceService:
    """
    Build the default service: SQLite store, HTTP gateway, health-check monitor.

    Args:
        config: Application configuration (defaults to load_config())
        gateway: Gateway override, e.g. a fake in tests

    Returns:
        A service that is ready for reads and writes; call start() for
        background monitoring and sync
    """
    config = config or load_config()

    store = LocalRecordStore(config.storage.db_path, key_prefix=config.storage.key_prefix)
    store.initialize()
    queue = SyncQueue(store, max_retries=config.sync.max_retries)
    gateway = gateway or HttpRemoteGateway(config.gateway)
    connection = ConnectionManager(
        gateway,
        check_interval_online=config.sync.health_check_interval,
        check_interval_offline=config.sync.health_check_interval,
    )
    engine = SyncEngine(store, queue, gateway, connection, config.sync)

    return DataPersistenceService(store, queue, gateway, connection, engine, config)
