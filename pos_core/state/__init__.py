# =============================================================================
# pos_core/state/__init__.py
# UI State for Products, Sales, Settings and Stock Movements
# =============================================================================

from .base import RecordState
from .products import ProductsState, DEFAULT_PRODUCTS
from .sales import SalesState
from .settings import SettingsState, DEFAULT_SETTINGS
from .movements import StockMovementsState

__all__ = [
    "RecordState",
    "ProductsState",
    "DEFAULT_PRODUCTS",
    "SalesState",
    "SettingsState",
    "DEFAULT_SETTINGS",
    "StockMovementsState",
]
