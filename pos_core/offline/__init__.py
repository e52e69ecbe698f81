# =============================================================================
# pos_core/offline/__init__.py
# Offline-First Persistence and Sync for the Vitana POS
# =============================================================================
"""
Offline-First Persistence Module

Sales, products, settings and stock movements are written to local storage
first and pushed to the backend in the background, so the checkout keeps
working when the network drops.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                    OFFLINE-FIRST ARCHITECTURE                    │
├─────────────────────────────────────────────────────────────────┤
│                                                                  │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │               DataPersistenceService                      │  │
│   │        (Single API - UI state classes use this)           │  │
│   └──────────────────────────────────────────────────────────┘  │
│              │                  │                  │             │
│              ▼                  ▼                  ▼             │
│   ┌──────────────────┐ ┌────────────────┐ ┌────────────────┐    │
│   │ LocalRecordStore │ │   SyncQueue    │ │ ConnectionMgr  │    │
│   │ (SQLite records) │ │ (pending ops)  │ │(Online/Offline)│    │
│   └──────────────────┘ └────────────────┘ └────────────────┘    │
│                                 │                  │             │
│                                 ▼                  │             │
│                      ┌──────────────────┐          │             │
│                      │    SyncEngine    │◄─────────┘             │
│                      │ (Auto Background)│                        │
│                      └──────────────────┘                        │
│                                 │                                │
│                                 ▼                                │
│                      ┌──────────────────┐                        │
│                      │  RemoteGateway   │                        │
│                      │  (REST backend)  │                        │
│                      └──────────────────┘                        │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from pos_core.offline import create_persistence_service

service = create_persistence_service()
service.start()

product_id = service.save_data("products", "create", product, business_id)
products = service.load_data("products", business_id)

print(service.get_connection_status())  # 'online' / 'offline'
print(service.get_pending_count())      # Number of pending operations
"""

from pos_core.offline.models import (
    RecordType,
    SyncAction,
    QueueItem,
    SyncResult,
    SyncStatus,
    generate_record_id,
    sanitize_data,
)

from pos_core.offline.local_store import LocalRecordStore

from pos_core.offline.sync_queue import SyncQueue, merge_items

from pos_core.offline.gateway import (
    RemoteGateway,
    HttpRemoteGateway,
    SUPPORTED_ACTIONS,
)

from pos_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
)

from pos_core.offline.sync_engine import SyncEngine, DISPATCH

from pos_core.offline.persistence_service import (
    DataPersistenceService,
    create_persistence_service,
)

__all__ = [
    # Models
    "RecordType",
    "SyncAction",
    "QueueItem",
    "SyncResult",
    "SyncStatus",
    "generate_record_id",
    "sanitize_data",
    # Local Storage
    "LocalRecordStore",
    "SyncQueue",
    "merge_items",
    # Backend
    "RemoteGateway",
    "HttpRemoteGateway",
    "SUPPORTED_ACTIONS",
    # Connection Management
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    # Sync Engine
    "SyncEngine",
    "DISPATCH",
    # Persistence Service (Main API)
    "DataPersistenceService",
    "create_persistence_service",
]
