"""Configurable in-memory inventory for development and testing.

Stock levels are kept per (store, product). The adapter can be told to
fail every call, or only calls touching particular products, which lets
tests exercise the rollback paths of the order workflows.
"""

from uuid import uuid4

from sales.stock.port import (
    ADJUSTMENT,
    SALES_ORDER_RETURN,
    InventoryDirectory,
    StockResult,
    Store,
)


class FakeInventory(InventoryDirectory):
    def __init__(self, stores: list[Store] | None = None) -> None:
        self.stores: list[Store] = list(stores or [Store(id="1", name="Main")])
        self.levels: dict[tuple[str, str], int] = {}
        self.transactions: list[dict] = []
        self.should_succeed: bool = True
        self.failure_reason: str = "Inventory service unavailable"
        self.failing_products: set[str] = set()
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Inventory service unavailable",
        failing_products=None,
    ) -> None:
        """Configure adapter behaviour at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.failing_products = {str(p) for p in (failing_products or [])}

    def set_on_hand(self, store_ref: str, product_ref: str, quantity: int) -> None:
        self.levels[(str(store_ref), str(product_ref))] = quantity

    def _fails_for(self, product_ref: str) -> bool:
        return not self.should_succeed or str(product_ref) in self.failing_products

    def list_stores(self) -> list[Store]:
        self.calls.append({"method": "list_stores"})
        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)
        return list(self.stores)

    def on_hand(self, store_ref: str, product_ref: str) -> int:
        return self.levels.get((str(store_ref), str(product_ref)), 0)

    def _move(self, method: str, store_ref: str, product_ref: str, quantity: int, **details) -> StockResult:
        self.calls.append(
            {
                "method": method,
                "store_ref": str(store_ref),
                "product_ref": str(product_ref),
                "quantity": quantity,
                **details,
            }
        )
        if self._fails_for(product_ref):
            return StockResult(success=False, failure_reason=self.failure_reason)

        key = (str(store_ref), str(product_ref))
        self.levels[key] = self.levels.get(key, 0) + quantity
        transaction_id = f"fake_txn_{uuid4().hex[:12]}"
        self.transactions.append({"transaction_id": transaction_id, **self.calls[-1]})
        return StockResult(success=True, transaction_id=transaction_id)

    def decrement_on_hand(self, store_ref: str, product_ref: str, quantity: int) -> StockResult:
        return self._move("decrement_on_hand", store_ref, product_ref, -quantity)

    def restore_on_hand(self, store_ref: str, product_ref: str, quantity: int) -> StockResult:
        return self._move("restore_on_hand", store_ref, product_ref, quantity)

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
        return self._move(
            "post_adjustment",
            store_ref,
            product_ref,
            quantity,
            unit_cost=unit_cost,
            transaction_type=transaction_type,
            reference_type=reference_type,
            reference_id=reference_id,
        )
