# =============================================================================
# pos_core/offline/local_store.py
# Local SQLite Key-Value Store for Offline Operations
# =============================================================================
"""
LocalRecordStore - durable, namespaced key-value storage for POS records.

Features:
- One SQLite table, one row per key
- Records keyed ``{type}_{id}`` and tagged with their business id
- Per-type backup snapshots (last full listing from the server)
- Well-known keys for the sync queue, dead letters and last-sync time
- Thread-safe (thread-local connections)

Write failures (serialization, disk full, locked database) are logged and
reported as ``False``; they never propagate to the caller. A checkout must not
fail because the local cache could not be written.
"""

from __future__ import annotations
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

import pandas as pd

from pos_core.errors import StorageError
from pos_core.offline.models import RecordType, SyncAction, now_ms

logger = logging.getLogger(__name__)

KIND_RECORD = "record"
KIND_BACKUP = "backup"
KIND_META = "meta"

QUEUE_KEY = "sync_queue"
DEAD_LETTER_KEY = "dead_letter"
LAST_SYNC_KEY = "last_sync_time"


class LocalRecordStore:
    """
    Local SQLite key-value store.

    Usage:
        store = LocalRecordStore(Path("local_data/pos_offline.db"))
        store.initialize()
        store.put(RecordType.SALES, sale_id, envelope)
        sales = store.list_by_business(RecordType.SALES, "biz-1")
    """

    DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "local_data" / "pos_offline.db"
    DEFAULT_PREFIX = "vitana_offline_"

    SCHEMA = {
        "kv_store": """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                kind TEXT NOT NULL DEFAULT 'meta',
                record_type TEXT,
                business_id TEXT,
                value TEXT NOT NULL,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
        "idx_kv_business": """
            CREATE INDEX IF NOT EXISTS idx_kv_business
            ON kv_store (business_id, kind, record_type)
        """,
    }

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        key_prefix: str = DEFAULT_PREFIX,
    ):
        """
        Initialize the store.

        Args:
            db_path: Path to the SQLite database file
            key_prefix: Namespace prepended to every key
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.key_prefix = key_prefix
        self._ensure_directory()
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._initialized = False

    def _ensure_directory(self) -> None:
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False, timeout=10)
            conn.row_factory = sqlite3.Row
            self._local.connection = conn
            with self._connections_lock:
                self._connections.append(conn)
        return self._local.connection

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def initialize(self) -> None:
        """Initialize database schema."""
        if self._initialized:
            return

        with self.transaction() as conn:
            for name, ddl in self.SCHEMA.items():
                conn.execute(ddl)
                logger.debug(f"Created/verified schema object: {name}")

        self._initialized = True
        logger.info(f"Local record store initialized at: {self.db_path}")

    def _full_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    # =========================================================================
    # RAW KEY-VALUE ACCESS
    # =========================================================================

    def set_value(
        self,
        key: str,
        value: Any,
        business_id: Optional[str] = None,
        kind: str = KIND_META,
        record_type: Optional[str] = None,
    ) -> bool:
        """
        Store a JSON value under a key.

        Returns:
            True if stored, False if serialization or SQLite failed
        """
        try:
            self._write(key, value, business_id, kind, record_type)
            return True
        except StorageError as e:
            logger.error(str(e))
            return False

    def _write(
        self,
        key: str,
        value: Any,
        business_id: Optional[str],
        kind: str,
        record_type: Optional[str],
    ) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Could not serialize value: {e}", key=key) from e

        try:
            with self.transaction() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO kv_store
                        (key, kind, record_type, business_id, value, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        self._full_key(key),
                        kind,
                        record_type,
                        business_id,
                        payload,
                        datetime.now().isoformat(),
                    ],
                )
        except sqlite3.Error as e:
            raise StorageError(f"Error writing to local store: {e}", key=key) from e

    def get_value(self, key: str, default: Any = None) -> Any:
        """Load a JSON value, or ``default`` if missing or unreadable."""
        try:
            row = self._get_connection().execute(
                "SELECT value FROM kv_store WHERE key = ?",
                [self._full_key(key)],
            ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error reading {key} from local store: {e}")
            return default

        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt value under {key}: {e}")
            return default

    def delete_value(self, key: str) -> bool:
        try:
            with self.transaction() as conn:
                cursor = conn.execute(
                    "DELETE FROM kv_store WHERE key = ?",
                    [self._full_key(key)],
                )
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Error deleting {key} from local store: {e}")
            return False

    def keys(self) -> List[str]:
        """All keys in this store's namespace, without the prefix."""
        rows = self._get_connection().execute("SELECT key FROM kv_store").fetchall()
        size = len(self.key_prefix)
        return [r["key"][size:] for r in rows if r["key"].startswith(self.key_prefix)]

    # =========================================================================
    # RECORDS
    # =========================================================================

    def put(self, record_type: RecordType, record_id: str, envelope: Dict[str, Any]) -> bool:
        """Store or overwrite a record envelope under ``{type}_{id}``."""
        record_type = RecordType.parse(record_type)
        return self.set_value(
            f"{record_type.value}_{record_id}",
            envelope,
            business_id=envelope.get("businessId"),
            kind=KIND_RECORD,
            record_type=record_type.value,
        )

    def get(self, record_type: RecordType, record_id: str) -> Optional[Dict[str, Any]]:
        record_type = RecordType.parse(record_type)
        return self.get_value(f"{record_type.value}_{record_id}")

    def list_envelopes(self, record_type: RecordType, business_id: str) -> List[Dict[str, Any]]:
        """Every stored envelope of a type for a business, oldest first."""
        record_type = RecordType.parse(record_type)
        try:
            rows = self._get_connection().execute(
                """
                SELECT key, value FROM kv_store
                WHERE kind = ? AND record_type = ? AND business_id = ?
                """,
                [KIND_RECORD, record_type.value, business_id],
            ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error loading {record_type.value} locally: {e}")
            return []

        envelopes = []
        for row in rows:
            try:
                envelopes.append(json.loads(row["value"]))
            except json.JSONDecodeError:
                logger.warning(f"Skipping corrupt record {row['key']}")
        envelopes.sort(key=lambda env: env.get("timestamp") or 0)
        return envelopes

    def list_by_business(self, record_type: RecordType, business_id: str) -> List[Dict[str, Any]]:
        """Live record payloads (last action not ``delete``) for a business."""
        return [
            env.get("data") or {}
            for env in self.list_envelopes(record_type, business_id)
            if env.get("action") != SyncAction.DELETE.value
        ]

    def to_dataframe(self, record_type: RecordType, business_id: str) -> pd.DataFrame:
        """Load a type's live records into a pandas DataFrame."""
        return pd.DataFrame(self.list_by_business(record_type, business_id))

    # =========================================================================
    # BACKUP SNAPSHOTS
    # =========================================================================

    def put_backup(
        self,
        record_type: RecordType,
        business_id: str,
        records: List[Dict[str, Any]],
    ) -> bool:
        """Save the last full server listing of a type."""
        record_type = RecordType.parse(record_type)
        return self.set_value(
            f"{record_type.value}_backup_{business_id}",
            {"data": records, "timestamp": now_ms(), "businessId": business_id},
            business_id=business_id,
            kind=KIND_BACKUP,
            record_type=record_type.value,
        )

    def get_backup(self, record_type: RecordType, business_id: str) -> Optional[List[Dict[str, Any]]]:
        record_type = RecordType.parse(record_type)
        backup = self.get_value(f"{record_type.value}_backup_{business_id}")
        if backup and isinstance(backup.get("data"), list):
            return backup["data"]
        return None

    def get_backup_time(self, record_type: RecordType, business_id: str) -> Optional[int]:
        """Epoch ms at which the backup was taken, None without one."""
        record_type = RecordType.parse(record_type)
        backup = self.get_value(f"{record_type.value}_backup_{business_id}")
        if isinstance(backup, dict) and backup.get("timestamp") is not None:
            return int(backup["timestamp"])
        return None

    # =========================================================================
    # BUSINESS-SCOPED CLEANUP
    # =========================================================================

    def clear_for_business(self, business_id: str) -> int:
        """
        Remove every record, backup and queued item tagged with a business.

        List-valued meta keys (sync queue, dead letters) are filtered in place.

        Returns:
            Number of rows deleted
        """
        deleted = 0
        try:
            with self.transaction() as conn:
                cursor = conn.execute(
                    "DELETE FROM kv_store WHERE business_id = ?",
                    [business_id],
                )
                deleted = cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"Error clearing data for business {business_id}: {e}")
            return 0

        for key in (QUEUE_KEY, DEAD_LETTER_KEY):
            items = self.get_value(key)
            if isinstance(items, list):
                kept = [i for i in items if i.get("businessId") != business_id]
                if len(kept) != len(items):
                    self.set_value(key, kept)

        logger.info(f"Cleared {deleted} local entries for business {business_id}")
        return deleted

    # =========================================================================
    # LAST SYNC
    # =========================================================================

    def get_last_sync(self) -> Optional[str]:
        return self.get_value(LAST_SYNC_KEY)

    def set_last_sync(self, when: Optional[datetime] = None) -> None:
        self.set_value(LAST_SYNC_KEY, (when or datetime.now()).isoformat())

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._connections_lock:
            for conn in self._connections:
                try:
                    conn.close()
                except sqlite3.Error as e:
                    logger.debug(f"Error closing connection: {e}")
            self._connections.clear()
        self._local = threading.local()
