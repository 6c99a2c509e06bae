"""Inventory directory factory.

Provides get_inventory() / set_inventory() to swap implementations;
FakeInventory is the default.
"""

from sales.stock.fake_adapter import FakeInventory
from sales.stock.port import InventoryDirectory, StockResult, Store

__all__ = ["InventoryDirectory", "StockResult", "Store", "get_inventory", "set_inventory", "reset_inventory"]

_current_inventory: InventoryDirectory | None = None


def get_inventory() -> InventoryDirectory:
    """Return the current inventory adapter. Defaults to FakeInventory."""
    global _current_inventory
    if _current_inventory is None:
        _current_inventory = FakeInventory()
    return _current_inventory


def set_inventory(inventory: InventoryDirectory) -> None:
    """Override the active inventory adapter (useful for tests)."""
    global _current_inventory
    _current_inventory = inventory


def reset_inventory() -> None:
    """Reset to default adapter."""
    global _current_inventory
    _current_inventory = None
