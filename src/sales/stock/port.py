"""Store / inventory directory port (abstract interface).

Defines the stock operations the order workflows depend on: decrementing
on-hand quantities at dispatch and posting inventory-adjustment
transactions when goods come back from a cancelled order.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

ADJUSTMENT = "adjustment"
SALES_ORDER_RETURN = "sales_order_return"
SALES_ORDER_RETURN_REVERSAL = "sales_order_return_reversal"


@dataclass(frozen=True)
class Store:
    id: str
    name: str


@dataclass(frozen=True)
class StockResult:
    """Result of a single stock movement."""

    success: bool
    transaction_id: str | None = None
    failure_reason: str | None = None


class InventoryDirectory(ABC):
    """Abstract interface for inventory adapters."""

    @abstractmethod
    def list_stores(self) -> list[Store]: ...

    @abstractmethod
    def decrement_on_hand(self, store_ref: str, product_ref: str, quantity: int) -> StockResult:
        """Take ``quantity`` units of a product out of a store's on-hand stock."""
        ...

    @abstractmethod
    def restore_on_hand(self, store_ref: str, product_ref: str, quantity: int) -> StockResult:
        """Undo a previous decrement."""
        ...

    @abstractmethod
    def post_adjustment(
        self,
        store_ref: str,
        product_ref: str,
        quantity: int,
        unit_cost: float,
        transaction_type: str = ADJUSTMENT,
        reference_type: str = SALES_ORDER_RETURN,
        reference_id: str | None = None,
    ) -> StockResult:
        """Post one inventory transaction; negative quantities reverse stock."""
        ...

    @abstractmethod
    def on_hand(self, store_ref: str, product_ref: str) -> int: ...

    def get_store(self, store_ref: str) -> Store | None:
        return next((s for s in self.list_stores() if str(s.id) == str(store_ref)), None)
