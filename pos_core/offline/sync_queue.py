# =============================================================================
# pos_core/offline/sync_queue.py
# Write-Ahead Queue of Pending Mutations
# =============================================================================
"""
SyncQueue - ordered list of pending mutations persisted in the local store.

The queue is stored as one JSON list under the ``sync_queue`` key so it
survives restarts. Every read-modify-write runs under a single RLock because
the sync engine drains it from a background thread while the UI enqueues.

There is at most one live item per record: enqueueing a mutation for a record
that already has an unsynced item merges the two (see ``merge_items``).
Items dropped after exhausting their retries are parked in a dead-letter list
(``dead_letter`` key) from which they can be re-queued.
"""

from __future__ import annotations
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional, Set
import logging

from pos_core.errors import POSError
from pos_core.offline.local_store import DEAD_LETTER_KEY, LocalRecordStore, QUEUE_KEY
from pos_core.offline.models import QueueItem, RecordType, SyncAction, now_ms

logger = logging.getLogger(__name__)


def merge_items(live: QueueItem, new: QueueItem, in_flight: bool = False) -> Optional[QueueItem]:
    """
    Combine a new mutation with the live item for the same record.

    Args:
        live: The queued item for the record
        new: The incoming mutation
        in_flight: The live item is being sent right now

    Returns:
        The surviving item, or None when a never-attempted create is
        cancelled by a delete.
    """
    action = new.action
    data = new.data

    if not live.synced:
        if new.action == SyncAction.DELETE:
            attempted = live.retry_count > 0 or in_flight
            if live.action == SyncAction.CREATE and not attempted:
                return None
            data = new.data or live.data
        elif new.action == SyncAction.UPDATE and live.action in (SyncAction.CREATE, SyncAction.UPDATE):
            # create followed by update is still a create on the server
            action = live.action
            data = {**live.data, **new.data}

    return QueueItem(
        id=new.id,
        type=new.type,
        action=action,
        data=data,
        business_id=new.business_id,
        timestamp=now_ms(),
        synced=False,
        retry_count=0,
    )


class SyncQueue:
    """
    Persistent pending-mutation queue.

    Usage:
        queue = SyncQueue(store, max_retries=3)
        queue.enqueue(QueueItem(id, RecordType.SALES, SyncAction.CREATE, data, "biz-1"))
        for item in queue.all():
            ...
        exhausted = queue.cleanup()
    """

    def __init__(self, store: LocalRecordStore, max_retries: int = 3):
        self._store = store
        self.max_retries = max_retries
        self._lock = threading.RLock()
        self._sending: Set[str] = set()

    @property
    def lock(self) -> threading.RLock:
        """Lock serializing queue mutations; hold it for multi-step edits."""
        return self._lock

    @contextmanager
    def sending(self, item: QueueItem):
        """Mark an item as in flight while its request runs."""
        with self._lock:
            self._sending.add(item.key)
        try:
            yield item
        finally:
            with self._lock:
                self._sending.discard(item.key)

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _load(self) -> List[QueueItem]:
        raw_items = self._store.get_value(QUEUE_KEY, default=[])
        if not isinstance(raw_items, list):
            logger.error("Sync queue is corrupt, starting empty")
            return []

        items = []
        for raw in raw_items:
            try:
                items.append(QueueItem.from_dict(raw))
            except (KeyError, TypeError, ValueError, POSError) as e:
                logger.warning(f"Discarding unreadable queue item {raw!r}: {e}")
        return items

    def _save(self, items: List[QueueItem]) -> bool:
        saved = self._store.set_value(QUEUE_KEY, [item.to_dict() for item in items])
        if not saved:
            logger.error("Could not persist sync queue")
        return saved

    @staticmethod
    def _matches(item: QueueItem, item_id: str, record_type: Optional[RecordType]) -> bool:
        return item.id == item_id and (record_type is None or item.type == record_type)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def enqueue(self, item: QueueItem) -> Optional[QueueItem]:
        """
        Add a mutation, replacing and merging any live item for the same record.

        Returns:
            The item now in the queue, or None if the mutation cancelled it
        """
        with self._lock:
            items = self._load()
            live = next(
                (i for i in items if self._matches(i, item.id, item.type)),
                None,
            )
            items = [i for i in items if not self._matches(i, item.id, item.type)]

            if live is None:
                survivor = item
            else:
                survivor = merge_items(live, item, in_flight=live.key in self._sending)

            if survivor is None:
                logger.debug(f"Dropped unsent create for {item.key}")
            else:
                items.append(survivor)

            self._save(items)
            return survivor

    def all(self) -> List[QueueItem]:
        with self._lock:
            return self._load()

    def get(self, item_id: str, record_type: Optional[RecordType] = None) -> Optional[QueueItem]:
        with self._lock:
            for item in self._load():
                if self._matches(item, item_id, record_type):
                    return item
        return None

    def mark_synced(
        self,
        item_id: str,
        record_type: Optional[RecordType] = None,
        expected: Optional[QueueItem] = None,
    ) -> bool:
        """
        Flag an item as confirmed by the server.

        With ``expected``, the flag is only applied if the live item is still
        that snapshot; an item replaced while its request was in flight stays
        pending. If the confirmed snapshot was a create, the record now exists
        on the server, so a pending create left behind is turned into an
        update.
        """
        return self._update(item_id, record_type, expected, synced=True)

    def increment_retry(
        self,
        item_id: str,
        record_type: Optional[RecordType] = None,
        expected: Optional[QueueItem] = None,
    ) -> bool:
        return self._update(item_id, record_type, expected, retry=True)

    @staticmethod
    def _same_version(item: QueueItem, expected: Optional[QueueItem]) -> bool:
        if expected is None:
            return True
        return (
            item.timestamp == expected.timestamp
            and item.action == expected.action
            and item.data == expected.data
        )

    def _update(
        self,
        item_id: str,
        record_type: Optional[RecordType],
        expected: Optional[QueueItem] = None,
        synced: bool = False,
        retry: bool = False,
    ) -> bool:
        with self._lock:
            items = self._load()
            found = changed = False
            for item in items:
                if not self._matches(item, item_id, record_type):
                    continue
                if self._same_version(item, expected):
                    if synced:
                        item.synced = True
                    if retry:
                        item.retry_count += 1
                    found = changed = True
                elif (
                    synced
                    and expected.action == SyncAction.CREATE
                    and item.action == SyncAction.CREATE
                ):
                    item.action = SyncAction.UPDATE
                    changed = True
                    logger.debug(f"{item.key} created on server, pending edit sent as update")
            if changed:
                self._save(items)
            return found

    def cleanup(self) -> List[QueueItem]:
        """
        Remove synced items and items that reached the retry cap.

        Returns:
            The exhausted (never synced) items that were removed
        """
        with self._lock:
            items = self._load()
            kept, exhausted = [], []
            for item in items:
                if item.synced:
                    continue
                if item.retry_count >= self.max_retries:
                    exhausted.append(item)
                    continue
                kept.append(item)

            if len(kept) != len(items):
                self._save(kept)
            return exhausted

    def remove(
        self,
        item_id: str,
        record_type: Optional[RecordType] = None,
        expected: Optional[QueueItem] = None,
    ) -> Optional[QueueItem]:
        """Take an item out of the queue without syncing it."""
        with self._lock:
            items = self._load()
            removed = None
            kept = []
            for item in items:
                if (
                    removed is None
                    and self._matches(item, item_id, record_type)
                    and self._same_version(item, expected)
                ):
                    removed = item
                else:
                    kept.append(item)
            if removed is not None:
                self._save(kept)
            return removed

    def pending_count(self, business_id: Optional[str] = None) -> int:
        with self._lock:
            return sum(
                1 for item in self._load()
                if not item.synced and (business_id is None or item.business_id == business_id)
            )

    def remove_business(self, business_id: str) -> int:
        with self._lock:
            items = self._load()
            kept = [i for i in items if i.business_id != business_id]
            removed = len(items) - len(kept)
            if removed:
                self._save(kept)
            return removed

    def __len__(self) -> int:
        return len(self.all())

    # =========================================================================
    # DEAD LETTERS
    # =========================================================================

    def park(self, items: List[QueueItem], reasons: Optional[Dict[str, str]] = None) -> None:
        """
        Append dropped items to the persisted dead-letter list.

        Args:
            items: Items removed from the queue without reaching the server
            reasons: Last error per item key
        """
        if not items:
            return
        reasons = reasons or {}
        with self._lock:
            parked = self._store.get_value(DEAD_LETTER_KEY, default=[])
            if not isinstance(parked, list):
                parked = []
            dropped_at = datetime.now().isoformat()
            for item in items:
                entry = item.to_dict()
                entry["error"] = reasons.get(item.key)
                entry["droppedAt"] = dropped_at
                parked.append(entry)
                logger.warning(
                    f"Dropped {item.type.value}:{item.id} ({item.action.value}) "
                    f"after {item.retry_count} attempts: {entry['error']}"
                )
            self._store.set_value(DEAD_LETTER_KEY, parked)

    def dropped(self, business_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            parked = self._store.get_value(DEAD_LETTER_KEY, default=[])
        if not isinstance(parked, list):
            return []
        return [p for p in parked if business_id is None or p.get("businessId") == business_id]

    def restore(
        self,
        item_id: str,
        record_type: Optional[RecordType] = None,
    ) -> Optional[QueueItem]:
        """Move a dead-lettered item back into the queue with a fresh retry budget."""
        record_type = RecordType.parse(record_type) if record_type is not None else None
        with self._lock:
            parked = self.dropped()
            entry = next(
                (
                    p for p in parked
                    if p.get("id") == item_id
                    and (record_type is None or p.get("type") == record_type.value)
                ),
                None,
            )
            if entry is None:
                return None
            self._store.set_value(DEAD_LETTER_KEY, [p for p in parked if p is not entry])

            item = QueueItem.from_dict(entry)
            item.retry_count = 0
            item.synced = False
            item.timestamp = now_ms()
            logger.info(f"Re-queued dropped item {item.key}")
            return self.enqueue(item)

    def clear_dropped(self, business_id: Optional[str] = None) -> int:
        with self._lock:
            parked = self.dropped()
            kept = [p for p in parked if business_id is not None and p.get("businessId") != business_id]
            self._store.set_value(DEAD_LETTER_KEY, kept)
            return len(parked) - len(kept)
