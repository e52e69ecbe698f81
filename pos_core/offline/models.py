# =============================================================================
# pos_core/offline/models.py
# Record Types, Queue Items and Sync Results
# =============================================================================
"""
Data types shared by the offline store, the sync queue and the sync engine.

The persisted layout uses the camelCase keys of the POS web client
(``businessId``, ``retryCount``) so queues written by either side stay
readable.
"""

from __future__ import annotations
import random
import string
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from pos_core.errors import UnknownRecordTypeError, RecordValidationError


class RecordType(str, Enum):
    """Domain record types that can be stored offline and synced."""
    PRODUCTS = "products"
    SALES = "sales"
    SETTINGS = "settings"
    MOVEMENTS = "movements"

    @classmethod
    def parse(cls, value: Any) -> RecordType:
        """Accept the enum, its value, or the singular alias ('product')."""
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower()
        aliases = {
            "product": cls.PRODUCTS,
            "sale": cls.SALES,
            "setting": cls.SETTINGS,
            "movement": cls.MOVEMENTS,
            "stock_movement": cls.MOVEMENTS,
        }
        if raw in aliases:
            return aliases[raw]
        try:
            return cls(raw)
        except ValueError:
            raise UnknownRecordTypeError(value) from None


class SyncAction(str, Enum):
    """Mutations a queue item can carry."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: Any) -> SyncAction:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            raise RecordValidationError(
                f"Unknown action: {value}", field="action"
            ) from None


def now_ms() -> int:
    """Client clock in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_record_id(record_type: RecordType) -> str:
    """Client-side id: ``{type}_{epoch_ms}_{9 base36 chars}``."""
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(random.choices(alphabet, k=9))
    return f"{record_type.value}_{now_ms()}_{suffix}"


def sanitize_data(data: Any) -> Any:
    """
    Make a payload JSON-safe.

    Dates become ISO strings, numpy scalars become Python numbers, NaN/NaT
    become None. Containers are sanitized recursively.
    """
    if data is None:
        return None
    if isinstance(data, (pd.Timestamp, datetime, date)):
        if pd.isna(data):
            return None
        return data.isoformat()
    if isinstance(data, Enum):
        return data.value
    if isinstance(data, Decimal):
        return float(data)
    if isinstance(data, np.integer):
        return int(data)
    if isinstance(data, np.floating):
        return None if np.isnan(data) else float(data)
    if isinstance(data, np.bool_):
        return bool(data)
    if isinstance(data, float) and data != data:
        return None
    if isinstance(data, dict):
        return {str(k): sanitize_data(v) for k, v in data.items()}
    if isinstance(data, (list, tuple, set)):
        return [sanitize_data(item) for item in data]
    if isinstance(data, np.ndarray):
        return [sanitize_data(item) for item in data.tolist()]
    return data


@dataclass
class QueueItem:
    """A pending mutation against a record, awaiting server confirmation."""
    id: str
    type: RecordType
    action: SyncAction
    data: Dict[str, Any]
    business_id: str
    timestamp: int = field(default_factory=now_ms)
    synced: bool = False
    retry_count: int = 0

    @property
    def key(self) -> str:
        return f"{self.type.value}_{self.id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "action": self.action.value,
            "data": self.data,
            "timestamp": self.timestamp,
            "businessId": self.business_id,
            "synced": self.synced,
            "retryCount": self.retry_count,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> QueueItem:
        return cls(
            id=str(raw["id"]),
            type=RecordType.parse(raw["type"]),
            action=SyncAction.parse(raw["action"]),
            data=raw.get("data") or {},
            business_id=str(raw.get("businessId", "")),
            timestamp=int(raw.get("timestamp") or 0),
            synced=bool(raw.get("synced", False)),
            retry_count=int(raw.get("retryCount", 0)),
        )


@dataclass
class SyncResult:
    """Summary of one sync pass. Errors are for observability only."""
    success: bool = True
    synced: int = 0
    failed: int = 0
    dropped: int = 0
    errors: List[str] = field(default_factory=list)
    skipped: bool = False

    @classmethod
    def noop(cls, reason: str) -> SyncResult:
        return cls(success=False, errors=[reason], skipped=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "synced": self.synced,
            "failed": self.failed,
            "dropped": self.dropped,
            "errors": list(self.errors),
            "skipped": self.skipped,
        }


@dataclass
class SyncStatus:
    """Snapshot polled by the connectivity indicator."""
    is_online: bool
    queue_length: int
    last_sync: Optional[str]
    is_syncing: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isOnline": self.is_online,
            "queueLength": self.queue_length,
            "lastSync": self.last_sync,
            "isSyncing": self.is_syncing,
        }
