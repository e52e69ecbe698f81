# =============================================================================
# tests/unit/test_state.py
# Unit Tests for the Products, Sales, Settings and Movements State
# =============================================================================

import pandas as pd
import pytest

from conftest import assert_dataframe_equal
from pos_core.offline.models import RecordType, SyncAction
from pos_core.state import (
    DEFAULT_PRODUCTS,
    DEFAULT_SETTINGS,
    ProductsState,
    SalesState,
    SettingsState,
    StockMovementsState,
)
from pos_core.state.base import to_timestamp


def sale(sale_id, when, total):
    return {"id": sale_id, "date": when, "total": total, "items": []}


class TestToTimestamp:
    """Test date parsing used by the range filters"""

    def test_parses_iso_string(self):
        assert to_timestamp("2024-03-05T10:30:00") == pd.Timestamp("2024-03-05 10:30")

    def test_drops_timezone(self):
        ts = to_timestamp("2024-03-05T10:30:00Z")
        assert ts.tzinfo is None
        assert ts == pd.Timestamp("2024-03-05 10:30")

    def test_empty_and_invalid(self):
        assert to_timestamp(None) is None
        assert to_timestamp("") is None
        assert to_timestamp("not a date") is None


class TestProductsState:
    """Test the product catalogue"""

    def test_empty_business_gets_defaults(self, offline_service, business_id, queue):
        products = ProductsState(offline_service, business_id)

        products.load()

        assert [p["id"] for p in products.items] == [f"biz-001_{n}" for n in "12345"]
        assert queue.pending_count(business_id) == 5
        assert {i.action for i in queue.all()} == {SyncAction.CREATE}

    def test_defaults_survive_reload(self, offline_service, business_id, queue):
        ProductsState(offline_service, business_id).load()

        products = ProductsState(offline_service, business_id)
        products.load()

        assert len(products.items) == 5
        assert queue.pending_count(business_id) == 5

    def test_seeding_can_be_disabled(self, offline_service, business_id):
        products = ProductsState(offline_service, business_id)

        assert products.load(seed_defaults=False) == []

    def test_defaults_not_mutated(self, offline_service, business_id):
        products = ProductsState(offline_service, business_id)
        products.load()

        products.update_stock("biz-001_1", 0)

        assert DEFAULT_PRODUCTS[0]["stock"] == 48

    def test_find_by_barcode(self, offline_service, business_id):
        products = ProductsState(offline_service, business_id)
        products.load()

        assert products.find_by_barcode("7891910000147")["name"] == "Água Crystal 500ml"
        assert products.find_by_barcode("000") is None

    def test_low_stock(self, offline_service, business_id):
        products = ProductsState(offline_service, business_id)
        products.load()

        assert [p["id"] for p in products.low_stock()] == ["biz-001_3"]

    def test_two_businesses_seed_on_one_device(self, offline_service, business_id, queue):
        ProductsState(offline_service, business_id).load()
        ProductsState(offline_service, "biz-002").load()

        assert queue.pending_count(business_id) == 5
        assert queue.pending_count("biz-002") == 5
        assert len(ProductsState(offline_service, business_id).load(seed_defaults=False)) == 5
        assert len(ProductsState(offline_service, "biz-002").load(seed_defaults=False)) == 5

    def test_add_update_delete(self, offline_service, business_id, store):
        products = ProductsState(offline_service, business_id)
        products.load(seed_defaults=False)

        added = products.add_product({"name": "Heineken 600ml", "price": 9.9, "stock": 12, "minStock": 6})
        products.update_stock(added["id"], 5)

        assert products._find(added["id"])["stock"] == 5
        assert store.get(RecordType.PRODUCTS, added["id"])["data"]["stock"] == 5
        assert [p["id"] for p in products.low_stock()] == [added["id"]]

        products.delete_product(added["id"])

        assert products.items == []
        assert ProductsState(offline_service, business_id).load(seed_defaults=False) == []


class TestSalesState:
    """Test sales recording and revenue"""

    @pytest.fixture
    def sales(self, offline_service, business_id):
        state = SalesState(offline_service, business_id)
        state.items = [
            sale("s1", "2024-03-01T09:00:00", 10.0),
            sale("s2", "2024-03-01T23:59:59", 5.5),
            sale("s3", "2024-03-02T00:00:00", 4.0),
            sale("s4", "2024-04-10T12:00:00", 20.0),
            sale("s5", "2023-12-31T18:00:00", 100.0),
        ]
        return state

    def test_add_sale_stamps_date_and_id(self, offline_service, business_id):
        sales = SalesState(offline_service, business_id)

        recorded = sales.add_sale({"total": 12.5, "paymentMethod": "pix"})

        assert recorded["id"].startswith("sales_")
        assert to_timestamp(recorded["date"]) is not None
        assert SalesState(offline_service, business_id).load()[0]["total"] == 12.5

    def test_load_maps_created_at(self, service, business_id, gateway):
        gateway.records[RecordType.SALES]["s1"] = {"id": "s1", "total": 3, "created_at": "2024-03-01T09:00:00"}

        loaded = SalesState(service, business_id).load()

        assert loaded[0]["date"] == "2024-03-01T09:00:00"
        assert loaded[0]["items"] == []

    def test_date_range_is_inclusive(self, sales):
        selected = sales.get_sales_by_date_range("2024-03-01T09:00:00", "2024-03-02T00:00:00")

        assert [s["id"] for s in selected] == ["s1", "s2", "s3"]

    def test_daily_revenue(self, sales):
        assert sales.get_daily_revenue("2024-03-01") == pytest.approx(15.5)
        assert sales.get_daily_revenue("2024-03-03") == 0.0

    def test_monthly_revenue(self, sales):
        assert sales.get_monthly_revenue("2024-03-15") == pytest.approx(19.5)

    def test_yearly_revenue(self, sales):
        assert sales.get_yearly_revenue("2024-06-01") == pytest.approx(39.5)
        assert sales.get_yearly_revenue("2023-01-01") == pytest.approx(100.0)

    def test_revenue_by_day(self, sales):
        expected = pd.DataFrame({
            "date": pd.to_datetime(["2023-12-31", "2024-03-01", "2024-03-02", "2024-04-10"]),
            "revenue": [100.0, 15.5, 4.0, 20.0],
            "sales": [1, 2, 1, 1],
        })

        assert_dataframe_equal(sales.revenue_by_day(), expected)

    def test_revenue_by_day_empty(self, offline_service, business_id):
        daily = SalesState(offline_service, business_id).revenue_by_day()

        assert daily.empty
        assert list(daily.columns) == ["date", "revenue", "sales"]


class TestSettingsState:
    """Test the per-business settings record"""

    def test_defaults_when_nothing_stored(self, offline_service, business_id):
        settings = SettingsState(offline_service, business_id)

        assert settings.load() == DEFAULT_SETTINGS

    def test_record_id(self, offline_service, business_id):
        assert SettingsState(offline_service, business_id).record_id == "settings_biz-001"

    def test_update_is_queued_as_update(self, offline_service, business_id, queue):
        settings = SettingsState(offline_service, business_id)
        settings.load()

        settings.update_settings({"businessName": "Depósito do Zé"})

        item = queue.get("settings_biz-001", RecordType.SETTINGS)
        assert item.action == SyncAction.UPDATE
        assert item.data["name"] == "Depósito do Zé"
        assert item.data["subtitle"] == DEFAULT_SETTINGS["businessSubtitle"]

    def test_update_survives_reload(self, offline_service, business_id):
        SettingsState(offline_service, business_id).update_settings({"logoUrl": "http://x/logo.png"})

        reloaded = SettingsState(offline_service, business_id).load()

        assert reloaded["logoUrl"] == "http://x/logo.png"
        assert reloaded["businessName"] == DEFAULT_SETTINGS["businessName"]

    def test_server_column_names(self, service, business_id, gateway):
        gateway.records[RecordType.SETTINGS]["1"] = {"id": "1", "name": "Adega", "logo_url": "l.png"}

        loaded = SettingsState(service, business_id).load()

        assert loaded["businessName"] == "Adega"
        assert loaded["logoUrl"] == "l.png"
        assert loaded["businessSubtitle"] == DEFAULT_SETTINGS["businessSubtitle"]

    def test_reset(self, offline_service, business_id):
        settings = SettingsState(offline_service, business_id)
        settings.update_settings({"businessName": "Outro"})

        assert settings.reset_settings() == DEFAULT_SETTINGS
        assert SettingsState(offline_service, business_id).load() == DEFAULT_SETTINGS


class TestStockMovementsState:
    """Test the stock movement log"""

    def test_add_and_filter_by_product(self, offline_service, business_id):
        movements = StockMovementsState(offline_service, business_id)

        movements.add_movement({"productId": "1", "type": "entrada", "quantity": 24})
        movements.add_movement({"productId": "2", "type": "saida", "quantity": 3})
        movements.add_movement({"productId": 1, "type": "saida", "quantity": 2})

        assert [m["quantity"] for m in movements.get_movements_by_product("1")] == [24, 2]

    def test_filter_by_date_range(self, offline_service, business_id):
        movements = StockMovementsState(offline_service, business_id)
        movements.items = [
            {"id": "m1", "date": "2024-05-01T08:00:00"},
            {"id": "m2", "date": "2024-05-03T08:00:00"},
            {"id": "m3", "date": None},
        ]

        selected = movements.get_movements_by_date_range("2024-05-01", "2024-05-02")

        assert [m["id"] for m in selected] == ["m1"]

    def test_reload_reads_pending_movements(self, offline_service, business_id):
        StockMovementsState(offline_service, business_id).add_movement({"productId": "1", "quantity": 1})

        assert len(StockMovementsState(offline_service, business_id).load()) == 1
