# =============================================================================
# pos_core/state/products.py
# Product Catalogue State
# =============================================================================

from __future__ import annotations
import copy
from datetime import datetime
from typing import Any, Dict, List, Optional

from pos_core.logging import get_logger
from pos_core.offline.models import RecordType, SyncAction
from pos_core.state.base import RecordState

logger = get_logger(__name__)


def _product(pid, name, barcode, category, brand, price, cost, stock, min_stock):
    return {
        "id": pid,
        "name": name,
        "barcode": barcode,
        "category": category,
        "brand": brand,
        "price": price,
        "cost": cost,
        "stock": stock,
        "minStock": min_stock,
        "unit": "unidade",
        "createdAt": "2024-01-15T00:00:00",
        "updatedAt": "2024-01-15T00:00:00",
    }


# Starter catalogue for a new beverage store
DEFAULT_PRODUCTS: List[Dict[str, Any]] = [
    _product("1", "Coca-Cola 2L", "7894900011517", "Refrigerante", "Coca-Cola", 8.50, 5.20, 48, 10),
    _product("2", "Cerveja Skol Lata 350ml", "7891991010924", "Cerveja", "Skol", 3.20, 2.10, 120, 24),
    _product("3", "Água Crystal 500ml", "7891910000147", "Água", "Crystal", 2.00, 1.20, 8, 20),
    _product("4", "Guaraná Antarctica 2L", "7891991010931", "Refrigerante", "Antarctica", 7.80, 4.90, 32, 15),
    _product("5", "Cerveja Brahma Long Neck", "7891991010948", "Cerveja", "Brahma", 4.50, 2.80, 96, 30),
]


class ProductsState(RecordState):
    """
    Product list for the PDV and inventory screens.

    Usage:
        products = ProductsState(service, business_id)
        products.load()
        product = products.find_by_barcode("7894900011517")
        products.update_stock(product["id"], product["stock"] - 1)
    """

    record_type = RecordType.PRODUCTS

    def load(self, seed_defaults: bool = True) -> List[Dict[str, Any]]:
        """
        Load products; a business with no products anywhere gets the
        default catalogue, saved locally and queued for the server.

        Seeded ids are ``{businessId}_{n}``: local keys and the queue are
        not scoped by business, so two businesses on one device must not
        share them.
        """
        super().load()
        if not self.items and seed_defaults:
            logger.info(f"Seeding default products for business {self.business_id}")
            for product in copy.deepcopy(DEFAULT_PRODUCTS):
                product["id"] = f"{self.business_id}_{product['id']}"
                self._save(SyncAction.CREATE, product, record_id=product["id"])
                self.items.append(product)
        return self.items

    def add_product(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.now().isoformat()
        product = {**fields, "createdAt": now, "updatedAt": now}
        product.pop("id", None)
        product["id"] = self._save(SyncAction.CREATE, product)
        self.items.append(product)
        return product

    def update_product(self, product_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        current = self._find(product_id) or {"id": product_id}
        updated = {**current, **updates, "id": product_id, "updatedAt": datetime.now().isoformat()}
        self._save(SyncAction.UPDATE, updated, record_id=product_id)
        self.items = [updated if str(p.get("id")) == str(product_id) else p for p in self.items]
        return updated

    def delete_product(self, product_id: str) -> None:
        self._save(SyncAction.DELETE, {"id": product_id}, record_id=product_id)
        self.items = [p for p in self.items if str(p.get("id")) != str(product_id)]

    def update_stock(self, product_id: str, quantity: float) -> Optional[Dict[str, Any]]:
        """Set the absolute stock level of a product."""
        return self.update_product(product_id, {"stock": quantity})

    def find_by_barcode(self, barcode: str) -> Optional[Dict[str, Any]]:
        return next((p for p in self.items if p.get("barcode") == barcode), None)

    def low_stock(self) -> List[Dict[str, Any]]:
        return [
            p for p in self.items
            if p.get("stock") is not None and p.get("minStock") is not None
            and p["stock"] <= p["minStock"]
        ]
