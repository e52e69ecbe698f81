# =============================================================================
# pos_core/state/movements.py
# Stock Movement Log
# =============================================================================

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List

from pos_core.offline.models import RecordType, SyncAction
from pos_core.state.base import DateLike, RecordState


class StockMovementsState(RecordState):
    """Entries and exits of stock, one record per movement."""

    record_type = RecordType.MOVEMENTS

    def load(self) -> List[Dict[str, Any]]:
        super().load()
        for movement in self.items:
            if not movement.get("date") and movement.get("created_at"):
                movement["date"] = movement["created_at"]
        return self.items

    def add_movement(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        movement = {**fields, "date": datetime.now().isoformat()}
        movement.pop("id", None)
        movement["id"] = self._save(SyncAction.CREATE, movement)
        self.items.append(movement)
        return movement

    def get_movements_by_product(self, product_id: str) -> List[Dict[str, Any]]:
        return [m for m in self.items if str(m.get("productId")) == str(product_id)]

    def get_movements_by_date_range(self, start: DateLike, end: DateLike) -> List[Dict[str, Any]]:
        return self._filter_by_date(start, end)
