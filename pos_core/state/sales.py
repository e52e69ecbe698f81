# =============================================================================
# pos_core/state/sales.py
# Sales History and Revenue
# =============================================================================

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List

import pandas as pd

from pos_core.offline.models import RecordType, SyncAction
from pos_core.state.base import DateLike, RecordState, to_timestamp


class SalesState(RecordState):
    """
    Recorded sales and revenue totals.

    A sale's ``date`` is stamped locally when it is added, so revenue figures
    include sales that have not reached the server yet.
    """

    record_type = RecordType.SALES

    def load(self) -> List[Dict[str, Any]]:
        super().load()
        for sale in self.items:
            # Server rows carry created_at instead of date
            if not sale.get("date") and sale.get("created_at"):
                sale["date"] = sale["created_at"]
            sale.setdefault("items", [])
        return self.items

    def add_sale(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        sale = {**fields, "date": datetime.now().isoformat()}
        sale.pop("id", None)
        sale.setdefault("items", [])
        sale["id"] = self._save(SyncAction.CREATE, sale)
        self.items.append(sale)
        return sale

    def get_sales_by_date_range(self, start: DateLike, end: DateLike) -> List[Dict[str, Any]]:
        return self._filter_by_date(start, end)

    def _revenue(self, start: pd.Timestamp, end: pd.Timestamp) -> float:
        return float(sum(float(s.get("total") or 0) for s in self.get_sales_by_date_range(start, end)))

    def get_daily_revenue(self, day: DateLike) -> float:
        start = to_timestamp(day).normalize()
        return self._revenue(start, start + pd.Timedelta(days=1) - pd.Timedelta(microseconds=1))

    def get_monthly_revenue(self, day: DateLike) -> float:
        start = to_timestamp(day).normalize().replace(day=1)
        end = start + pd.offsets.MonthBegin(1) - pd.Timedelta(microseconds=1)
        return self._revenue(start, end)

    def get_yearly_revenue(self, day: DateLike) -> float:
        start = to_timestamp(day).normalize().replace(month=1, day=1)
        end = start.replace(year=start.year + 1) - pd.Timedelta(microseconds=1)
        return self._revenue(start, end)

    def revenue_by_day(self) -> pd.DataFrame:
        """Daily totals: columns ``date``, ``revenue``, ``sales``."""
        columns = ["date", "revenue", "sales"]
        if not self.items:
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame({
            "date": [to_timestamp(s.get("date")) for s in self.items],
            "total": [float(s.get("total") or 0) for s in self.items],
        }).dropna(subset=["date"])
        if df.empty:
            return pd.DataFrame(columns=columns)

        df["date"] = pd.to_datetime(df["date"]).dt.normalize()
        daily = (
            df.groupby("date")
            .agg(revenue=("total", "sum"), sales=("total", "size"))
            .reset_index()
            .sort_values("date")
        )
        return daily[columns].reset_index(drop=True)
