"""Application tests for receive-to-stock: seeding, overrides, posting and rollback."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from sales.errors import DependencyFailure, InvalidStateTransition, QuantityExceeded, Unauthorized
from sales.order.order import FulfillmentStatus, SalesOrder
from sales.order.stock_return import (
    ReceiveToStock,
    default_return_note,
    draft_stock_return,
    merge_return_lines,
)
from sales.stock.port import SALES_ORDER_RETURN, SALES_ORDER_RETURN_REVERSAL


def _receive(order_id, store_ref="1", items=None, actor_role="stock", **fields):
    return current_domain.process(
        ReceiveToStock(
            order_id=str(order_id),
            store_ref=store_ref,
            items=json.dumps(items) if items is not None else None,
            actor_id="stock-1",
            actor_role=actor_role,
            **fields,
        ),
        asynchronous=False,
    )


def _reload(order):
    return current_domain.repository_for(SalesOrder).get(order.id)


class TestDraftStockReturn:
    def test_seeds_full_quantities_at_cost_price(self, make_order, catalog):
        order = make_order(status=FulfillmentStatus.CANCELLED)
        draft = draft_stock_return(order)
        assert [(line["product_ref"], line["quantity"], line["unit_cost"]) for line in draft] == [
            ("prod-1", 5, 70.0),
            ("prod-2", 2, 35.5),
        ]
        assert draft[0]["product_name"] == "Cooking Oil 5L"

    def test_unknown_product_costs_zero(self, make_order, catalog):
        order = make_order(
            status=FulfillmentStatus.CANCELLED,
            items=[{"product_ref": "prod-x", "quantity": 1, "unit_price": 10.0}],
        )
        assert draft_stock_return(order)[0]["unit_cost"] == 0.0

    def test_default_note(self, make_order):
        order = make_order(order_number="SO-0042")
        assert default_return_note(order) == "Return to stock from cancelled order SO-0042"

    def test_overrides_replace_draft_values(self):
        draft = [{"line_item_id": "a", "quantity": 5, "unit_cost": 1.0}]
        merged = merge_return_lines(draft, {"a": {"quantity": 2}})
        assert merged == [{"line_item_id": "a", "quantity": 2, "unit_cost": 1.0}]


class TestReceiveToStockFlow:
    def test_returns_goods_to_selected_store(self, make_order, catalog, inventory):
        order = make_order(status=FulfillmentStatus.CANCELLED, order_number="SO-0077")
        assert _receive(order.id) == "Returned to Stock"

        order = _reload(order)
        assert order.status == FulfillmentStatus.RETURNED_TO_STOCK
        assert order.return_record.store_ref == "1"
        assert order.return_record.received_by == "stock-1"
        assert order.return_record.notes == "Return to stock from cancelled order SO-0077"
        assert inventory.on_hand("1", "prod-1") == 5
        assert inventory.on_hand("1", "prod-2") == 2

    def test_posts_one_adjustment_per_line(self, make_order, catalog, inventory):
        order = make_order(status=FulfillmentStatus.CANCELLED)
        _receive(order.id, store_ref="2", notes="Damaged box")

        assert len(inventory.transactions) == 2
        first = inventory.transactions[0]
        assert first["store_ref"] == "2"
        assert first["quantity"] == 5
        assert first["unit_cost"] == 70.0
        assert first["transaction_type"] == "adjustment"
        assert first["reference_type"] == SALES_ORDER_RETURN
        assert first["reference_id"] == str(order.id)
        assert _reload(order).return_record.notes == "Damaged box"

    def test_overrides_by_line_item_id(self, make_order, catalog, inventory):
        order = make_order(status=FulfillmentStatus.CANCELLED)
        first, second = order.items
        _receive(
            order.id,
            items={str(first.id): {"quantity": 3, "unit_cost": 60.0}, str(second.id): {"quantity": 1}},
        )
        assert inventory.on_hand("1", "prod-1") == 3
        assert inventory.on_hand("1", "prod-2") == 1
        assert inventory.transactions[0]["unit_cost"] == 60.0
        assert inventory.transactions[1]["unit_cost"] == 35.5

    def test_resubmission_rejected(self, make_order, catalog, inventory):
        order = make_order(status=FulfillmentStatus.CANCELLED)
        _receive(order.id)
        with pytest.raises(InvalidStateTransition):
            _receive(order.id)
        assert len(inventory.transactions) == 2


class TestReceiveToStockGuards:
    def test_requires_stock_role(self, make_order, catalog, inventory):
        order = make_order(status=FulfillmentStatus.CANCELLED)
        with pytest.raises(Unauthorized):
            _receive(order.id, actor_role="admin")

    def test_requires_cancelled_order(self, make_order, catalog, inventory):
        order = make_order(status=FulfillmentStatus.APPROVED)
        with pytest.raises(InvalidStateTransition) as exc:
            _receive(order.id)
        assert exc.value.required == ["Cancelled"]

    def test_requires_store(self, make_order, catalog, inventory):
        order = make_order(status=FulfillmentStatus.CANCELLED)
        with pytest.raises(ValidationError) as exc:
            _receive(order.id, store_ref=None)
        assert "store_ref" in exc.value.messages

    def test_unknown_store_rejected(self, make_order, catalog, inventory):
        order = make_order(status=FulfillmentStatus.CANCELLED)
        with pytest.raises(ValidationError) as exc:
            _receive(order.id, store_ref="99")
        assert "does not exist" in str(exc.value)

    def test_quantity_above_original_rejected(self, make_order, catalog, inventory):
        order = make_order(status=FulfillmentStatus.CANCELLED)
        first = order.items[0]
        with pytest.raises(QuantityExceeded) as exc:
            _receive(order.id, items={str(first.id): {"quantity": 6}})

        assert exc.value.product_names == ["Cooking Oil 5L"]
        assert _reload(order).status == FulfillmentStatus.CANCELLED
        assert inventory.transactions == []

    def test_zero_quantity_rejected(self, make_order, catalog, inventory):
        order = make_order(status=FulfillmentStatus.CANCELLED)
        with pytest.raises(ValidationError) as exc:
            _receive(order.id, items={str(order.items[1].id): {"quantity": 0}})
        assert "greater than 0" in str(exc.value)

    def test_unknown_line_rejected(self, make_order, catalog, inventory):
        order = make_order(status=FulfillmentStatus.CANCELLED)
        with pytest.raises(ValidationError) as exc:
            _receive(order.id, items={"not-a-line": {"quantity": 1}})
        assert "not part of this order" in str(exc.value)

    def test_malformed_items_rejected(self, make_order, catalog, inventory):
        order = make_order(status=FulfillmentStatus.CANCELLED)
        with pytest.raises(ValidationError):
            current_domain.process(
                ReceiveToStock(
                    order_id=str(order.id),
                    store_ref="1",
                    items="{not json",
                    actor_id="stock-1",
                    actor_role="stock",
                ),
                asynchronous=False,
            )


class TestReceiveToStockRollback:
    def test_failed_posting_reverses_batch(self, make_order, catalog, inventory):
        inventory.configure(failing_products=["prod-2"], failure_reason="Ledger locked")
        order = make_order(status=FulfillmentStatus.CANCELLED)

        with pytest.raises(DependencyFailure) as exc:
            _receive(order.id)

        assert exc.value.reason == "Ledger locked"
        assert inventory.on_hand("1", "prod-1") == 0
        assert inventory.on_hand("1", "prod-2") == 0
        reversal = inventory.transactions[-1]
        assert reversal["quantity"] == -5
        assert reversal["reference_type"] == SALES_ORDER_RETURN_REVERSAL

        order = _reload(order)
        assert order.status == FulfillmentStatus.CANCELLED
        assert order.return_record is None
        assert len(order.returned_items) == 0

    def test_store_directory_outage(self, make_order, catalog, inventory):
        inventory.configure(should_succeed=False)
        order = make_order(status=FulfillmentStatus.CANCELLED)
        with pytest.raises(DependencyFailure):
            _receive(order.id)
        assert _reload(order).status == FulfillmentStatus.CANCELLED

    def test_raised_posting_reverses_batch(self, make_order, catalog, inventory, monkeypatch):
        post_adjustment = inventory.post_adjustment

        def flaky_post(store_ref, product_ref, quantity, unit_cost, **kwargs):
            if product_ref == "prod-2" and quantity > 0:
                raise TimeoutError("Stock ledger timed out")
            return post_adjustment(store_ref, product_ref, quantity, unit_cost, **kwargs)

        monkeypatch.setattr(inventory, "post_adjustment", flaky_post)
        order = make_order(status=FulfillmentStatus.CANCELLED)

        with pytest.raises(DependencyFailure) as exc:
            _receive(order.id)

        assert exc.value.dependency == "inventory"
        assert exc.value.reason == "Stock ledger timed out"
        assert isinstance(exc.value.__cause__, TimeoutError)
        assert inventory.on_hand("1", "prod-1") == 0
        assert [(t["quantity"], t["reference_type"]) for t in inventory.transactions] == [
            (5, SALES_ORDER_RETURN),
            (-5, SALES_ORDER_RETURN_REVERSAL),
        ]
        assert _reload(order).status == FulfillmentStatus.CANCELLED

    def test_store_lookup_timeout(self, make_order, catalog, inventory, monkeypatch):
        def timeout():
            raise TimeoutError("Store directory timed out")

        monkeypatch.setattr(inventory, "list_stores", timeout)
        order = make_order(status=FulfillmentStatus.CANCELLED)
        with pytest.raises(DependencyFailure) as exc:
            _receive(order.id)
        assert exc.value.dependency == "inventory"
        assert inventory.transactions == []

    def test_catalog_timeout_while_drafting(self, make_order, catalog, inventory, monkeypatch):
        def timeout(product_ref):
            raise TimeoutError("Catalog timed out")

        monkeypatch.setattr(catalog, "get_product", timeout)
        order = make_order(status=FulfillmentStatus.CANCELLED)
        with pytest.raises(DependencyFailure) as exc:
            _receive(order.id)
        assert exc.value.dependency == "catalog"
        assert _reload(order).status == FulfillmentStatus.CANCELLED
