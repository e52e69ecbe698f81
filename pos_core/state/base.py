# =============================================================================
# pos_core/state/base.py
# Shared Plumbing for the UI State Classes
# =============================================================================

from __future__ import annotations
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from pos_core.logging import get_logger
from pos_core.offline.models import RecordType, SyncAction
from pos_core.offline.persistence_service import DataPersistenceService

logger = get_logger(__name__)

DateLike = Union[str, date, datetime, pd.Timestamp]


def to_timestamp(value: Any) -> Optional[pd.Timestamp]:
    """Parse a stored date (ISO string, date, datetime) into a naive Timestamp."""
    if value is None or value == "":
        return None
    ts = pd.to_datetime(value, errors="coerce")
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


class RecordState:
    """
    In-memory list of one record type, kept in step with the persistence service.

    Writes update ``items`` optimistically and go through
    ``DataPersistenceService.save_data``; reads come from ``load()``.
    """

    record_type: RecordType = RecordType.PRODUCTS

    def __init__(self, service: DataPersistenceService, business_id: str):
        self.service = service
        self.business_id = business_id
        self.items: List[Dict[str, Any]] = []

    def load(self) -> List[Dict[str, Any]]:
        self.items = self.service.load_data(self.record_type, self.business_id)
        return self.items

    def _save(self, action: SyncAction, data: Dict[str, Any], record_id: Optional[str] = None) -> str:
        return self.service.save_data(
            self.record_type,
            action,
            data,
            self.business_id,
            record_id=record_id,
        )

    def _find(self, record_id: str) -> Optional[Dict[str, Any]]:
        return next((item for item in self.items if str(item.get("id")) == str(record_id)), None)

    def _filter_by_date(
        self,
        start: DateLike,
        end: DateLike,
        field: str = "date",
    ) -> List[Dict[str, Any]]:
        """Items whose ``field`` falls within [start, end], both inclusive."""
        start_ts, end_ts = to_timestamp(start), to_timestamp(end)
        selected = []
        for item in self.items:
            ts = to_timestamp(item.get(field))
            if ts is not None and start_ts <= ts <= end_ts:
                selected.append(item)
        return selected

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.items)
