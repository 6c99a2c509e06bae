"""Tests for SalesOrder registration, line items and derived totals."""

from decimal import Decimal

import pytest
from protean.exceptions import ValidationError
from sales.order.events import SalesOrderRegistered
from sales.order.order import (
    BillingStatus,
    FulfillmentStatus,
    SalesOrder,
    build_line_items,
)


def _items():
    return [
        {"product_ref": "prod-1", "product_name": "Cooking Oil 5L", "quantity": 3, "unit_price": 100.0},
        {
            "product_ref": "prod-2",
            "product_name": "Maize Flour 2kg",
            "quantity": 2,
            "unit_price": 50.0,
            "tax_class": "zero_rated",
        },
    ]


def _make_order(**kwargs):
    return SalesOrder.create(order_number="SO-0001", customer_ref="cust-1", items_data=_items(), **kwargs)


class TestRegistration:
    def test_new_order_starts_new_and_draft(self):
        order = _make_order()
        assert order.status == FulfillmentStatus.NEW
        assert order.fulfillment_status == 0
        assert order.billing == BillingStatus.DRAFT

    def test_items_keep_their_order(self):
        order = _make_order()
        assert [i.product_ref for i in order.items] == ["prod-1", "prod-2"]

    def test_line_totals_are_gross_first(self):
        order = _make_order()
        assert order.items[0].line_total == 300.0
        assert order.items[1].line_total == 100.0

    def test_total_amount_is_sum_of_line_totals(self):
        order = _make_order()
        assert order.total_amount == 400.0

    def test_customer_name_defaults_from_reference(self):
        order = _make_order()
        assert order.customer_name == "Customer cust-1"

    def test_raises_registered_event(self):
        order = _make_order(customer_name="Duka La Mama")
        assert len(order._events) == 1
        event = order._events[0]
        assert isinstance(event, SalesOrderRegistered)
        assert event.order_number == "SO-0001"
        assert event.total_amount == 400.0

    def test_order_needs_items(self):
        with pytest.raises(ValidationError) as exc:
            SalesOrder.create(order_number="SO-0002", customer_ref="cust-1", items_data=[])
        assert "at least one line item" in str(exc.value)

    def test_tax_additive_registration(self):
        order = _make_order(tax_additive=True)
        assert order.items[0].line_total == 348.0
        assert order.items[1].line_total == 100.0
        assert order.total_amount == 448.0


class TestBuildLineItems:
    def test_rejects_zero_quantity(self):
        with pytest.raises(ValidationError) as exc:
            build_line_items([{"product_ref": "prod-1", "quantity": 0, "unit_price": 10}])
        assert "quantity must be at least 1" in str(exc.value)

    @pytest.mark.parametrize("quantity", [1.5, "abc", None])
    def test_rejects_non_whole_quantity(self, quantity):
        with pytest.raises(ValidationError) as exc:
            build_line_items([{"product_ref": "prod-1", "quantity": quantity, "unit_price": 10}])
        assert "quantity must be a whole number" in str(exc.value)

    def test_rejects_non_numeric_price(self):
        with pytest.raises(ValidationError) as exc:
            build_line_items([{"product_ref": "prod-1", "quantity": 1, "unit_price": "ten"}])
        assert "unit price must be a number" in str(exc.value)

    def test_accepts_numeric_strings(self):
        (item,) = build_line_items([{"product_ref": "prod-1", "quantity": "3", "unit_price": "10.5"}])
        assert item.quantity == 3
        assert item.line_total == 31.5

    def test_rejects_negative_price(self):
        with pytest.raises(ValidationError) as exc:
            build_line_items([{"product_ref": "prod-1", "quantity": 1, "unit_price": -1}])
        assert "must not be negative" in str(exc.value)

    def test_rejects_missing_product(self):
        with pytest.raises(ValidationError) as exc:
            build_line_items([{"quantity": 1, "unit_price": 10}])
        assert "a product is required" in str(exc.value)

    def test_rejects_unknown_tax_class(self):
        with pytest.raises(ValidationError) as exc:
            build_line_items([{"product_ref": "prod-1", "quantity": 1, "unit_price": 10, "tax_class": "8%"}])
        assert "unknown tax class" in str(exc.value)

    def test_defaults_to_standard_rate_and_product_name(self):
        (item,) = build_line_items([{"product_ref": "prod-9", "quantity": 1, "unit_price": 10}])
        assert item.tax_class == "16%"
        assert item.product_name == "Product prod-9"

    def test_keeps_supplied_id(self):
        (item,) = build_line_items([{"id": "line-1", "product_ref": "prod-1", "quantity": 1, "unit_price": 10}])
        assert str(item.id) == "line-1"


class TestTotals:
    def test_totals_decompose_each_line(self):
        totals = _make_order().totals()
        assert totals.net_subtotal == Decimal("358.62")
        assert totals.tax_total == Decimal("41.38")
        assert totals.gross_total == Decimal("400.00")

    def test_gross_total_matches_total_amount(self):
        order = _make_order()
        assert float(order.totals().gross_total) == order.total_amount

    def test_item_lookup(self):
        order = _make_order()
        first = order.items[0]
        assert order.item(str(first.id)) is first
        assert order.item("missing") is None


class TestInvariants:
    def test_in_transit_requires_rider(self):
        order = _make_order()
        order.approve("admin-1")
        with pytest.raises(ValidationError) as exc:
            order.fulfillment_status = FulfillmentStatus.IN_TRANSIT.value
        assert "must have a rider" in str(exc.value)

    def test_complete_requires_delivery_record(self):
        order = _make_order()
        order.approve("admin-1")
        order.assign_rider("rider-1", "Juma", "1", "stock-1")
        with pytest.raises(ValidationError) as exc:
            order.fulfillment_status = FulfillmentStatus.COMPLETE.value
        assert "delivery record" in str(exc.value)

    def test_returned_requires_return_record(self):
        order = _make_order()
        order.approve("admin-1")
        order.cancel("admin-1")
        with pytest.raises(ValidationError) as exc:
            order.fulfillment_status = FulfillmentStatus.RETURNED_TO_STOCK.value
        assert "stock return record" in str(exc.value)


class TestStatusLabels:
    @pytest.mark.parametrize(
        "status, label",
        [
            (FulfillmentStatus.NEW, "New"),
            (FulfillmentStatus.IN_TRANSIT, "In Transit"),
            (FulfillmentStatus.RETURNED_TO_STOCK, "Returned to Stock"),
        ],
    )
    def test_label(self, status, label):
        assert status.label == label
