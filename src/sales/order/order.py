"""SalesOrder aggregate (CQRS), the core of the sales domain.

The SalesOrder tracks two loosely coupled status dimensions. The fulfillment
status is the physical progress that this context enforces; the billing
status tracks invoicing and is only advanced at the synchronisation points
listed in _BILLING_SYNC.

Fulfillment State Machine:
    NEW → APPROVED → IN_TRANSIT → COMPLETE
    APPROVED → CANCELLED | DECLINED
    CANCELLED → RETURNED_TO_STOCK
    COMPLETE, DECLINED, RETURNED_TO_STOCK are terminal
"""

import json
from datetime import UTC, date, datetime
from enum import Enum, IntEnum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Date,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from sales.domain import sales
from sales.errors import InvalidStateTransition, QuantityExceeded
from sales.order import pricing
from sales.order.events import (
    DeliveryCompleted,
    LineItemsRepriced,
    OrderApproved,
    OrderCancelled,
    OrderConvertedToInvoice,
    OrderDeclined,
    OrderEdited,
    OrderReturnedToStock,
    RiderAssigned,
    SalesOrderRegistered,
)
from sales.order.pricing import TaxClass

# Sentinel for distinguishing "not provided" from None in partial updates
_UNSET = object()


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class FulfillmentStatus(IntEnum):
    NEW = 0
    APPROVED = 1
    IN_TRANSIT = 2
    COMPLETE = 3
    CANCELLED = 4
    DECLINED = 5
    RETURNED_TO_STOCK = 6

    @property
    def label(self) -> str:
        return _FULFILLMENT_LABELS[self]


_FULFILLMENT_LABELS = {
    FulfillmentStatus.NEW: "New",
    FulfillmentStatus.APPROVED: "Approved",
    FulfillmentStatus.IN_TRANSIT: "In Transit",
    FulfillmentStatus.COMPLETE: "Complete",
    FulfillmentStatus.CANCELLED: "Cancelled",
    FulfillmentStatus.DECLINED: "Declined",
    FulfillmentStatus.RETURNED_TO_STOCK: "Returned to Stock",
}


class BillingStatus(Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    IN_PAYMENT = "in_payment"
    PAID = "paid"


# Billing only ever moves forward along this order
_BILLING_ORDER = [status.value for status in BillingStatus]

_VALID_TRANSITIONS = {
    FulfillmentStatus.NEW: {FulfillmentStatus.APPROVED},
    FulfillmentStatus.APPROVED: {
        FulfillmentStatus.IN_TRANSIT,
        FulfillmentStatus.CANCELLED,
        FulfillmentStatus.DECLINED,
    },
    FulfillmentStatus.IN_TRANSIT: {FulfillmentStatus.COMPLETE},
    FulfillmentStatus.CANCELLED: {FulfillmentStatus.RETURNED_TO_STOCK},
    FulfillmentStatus.COMPLETE: set(),  # Terminal
    FulfillmentStatus.DECLINED: set(),  # Terminal
    FulfillmentStatus.RETURNED_TO_STOCK: set(),  # Terminal
}

TERMINAL_STATES = {
    FulfillmentStatus.COMPLETE,
    FulfillmentStatus.DECLINED,
    FulfillmentStatus.RETURNED_TO_STOCK,
}

# Status changes an administrator may request through an order edit
EDITABLE_TRANSITIONS = {
    FulfillmentStatus.NEW: {FulfillmentStatus.APPROVED},
    FulfillmentStatus.APPROVED: {FulfillmentStatus.CANCELLED, FulfillmentStatus.DECLINED},
}

# Line items may only be replaced before anything leaves the store
_ITEM_EDITABLE_STATES = {FulfillmentStatus.NEW, FulfillmentStatus.APPROVED}

# Billing synchronisation: transition -> (billing states that advance, target)
_BILLING_SYNC = {
    "assign_rider": (
        {BillingStatus.DRAFT, BillingStatus.CONFIRMED},
        BillingStatus.SHIPPED,
    ),
    "complete_delivery": (
        {BillingStatus.DRAFT, BillingStatus.CONFIRMED, BillingStatus.SHIPPED},
        BillingStatus.DELIVERED,
    ),
    "convert_to_invoice": (
        {BillingStatus.DRAFT},
        BillingStatus.CONFIRMED,
    ),
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@sales.value_object(part_of="SalesOrder")
class DeliveryRecord:
    """Proof that the goods reached the customer."""

    recipient_name = String(required=True, max_length=255)
    recipient_phone = String(required=True, max_length=50)
    proof_image_ref = String(max_length=500)
    notes = Text()
    completed_at = DateTime(required=True)


@sales.value_object(part_of="SalesOrder")
class StockReturnRecord:
    """Header of a reverse-logistics receipt; the lines live on the aggregate."""

    store_ref = Identifier(required=True)
    notes = Text()
    received_by = Identifier(required=True)
    returned_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@sales.entity(part_of="SalesOrder")
class LineItem:
    """A priced order line.

    ``unit_price`` is tax-exclusive by contract but ``line_total`` is computed
    gross-first; see ``sales.order.pricing``.
    """

    product_ref = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    tax_class = String(choices=TaxClass, default=TaxClass.STANDARD_16.value)
    line_total = Float(default=0.0, min_value=0.0)


@sales.entity(part_of="SalesOrder")
class StockReturnLine:
    """Quantity of one order line received back into a store."""

    line_item_id = Identifier(required=True)
    product_ref = Identifier(required=True)
    product_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_cost = Float(default=0.0, min_value=0.0)


def whole_quantity(value):
    """Coerce a quantity to int, raising ValueError for anything fractional or non-numeric."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{value!r} is not a whole number")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{value!r} is not a whole number")
        return int(value)
    return int(str(value).strip())


def build_line_items(items_data, tax_additive=False):
    """Price raw line dicts into LineItem entities, preserving their order."""
    if not items_data:
        raise ValidationError({"items": ["An order needs at least one line item"]})

    items = []
    for index, data in enumerate(items_data):
        if not data.get("product_ref"):
            raise ValidationError({"items": [f"Line {index + 1}: a product is required"]})
        try:
            quantity = whole_quantity(data.get("quantity"))
        except (TypeError, ValueError) as exc:
            raise ValidationError({"items": [f"Line {index + 1}: quantity must be a whole number"]}) from exc
        try:
            unit_price = float(data.get("unit_price"))
        except (TypeError, ValueError) as exc:
            raise ValidationError({"items": [f"Line {index + 1}: unit price must be a number"]}) from exc
        if quantity < 1:
            raise ValidationError({"items": [f"Line {index + 1}: quantity must be at least 1"]})
        if unit_price < 0:
            raise ValidationError({"items": [f"Line {index + 1}: unit price must not be negative"]})

        tax_class = data.get("tax_class") or TaxClass.STANDARD_16.value
        if tax_class not in {t.value for t in TaxClass}:
            raise ValidationError({"items": [f"Line {index + 1}: unknown tax class {tax_class}"]})
        total = pricing.line_total(quantity, unit_price, tax_class, tax_additive=tax_additive)
        kwargs = {
            "product_ref": str(data["product_ref"]),
            "product_name": data.get("product_name") or f"Product {data['product_ref']}",
            "quantity": quantity,
            "unit_price": unit_price,
            "tax_class": TaxClass(tax_class).value,
            "line_total": float(total),
        }
        if data.get("id"):
            kwargs["id"] = str(data["id"])
        items.append(LineItem(**kwargs))
    return items


def _items_json(items):
    return json.dumps(
        [
            {
                "id": str(item.id),
                "product_ref": str(item.product_ref),
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "tax_class": item.tax_class,
                "line_total": item.line_total,
            }
            for item in items
        ]
    )


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@sales.aggregate
class SalesOrder:
    order_number = String(required=True, max_length=50)
    order_date = Date(required=True)
    expected_delivery_date = Date()
    customer_ref = Identifier(required=True)
    customer_name = String(max_length=255)
    billing_status = String(
        choices=BillingStatus,
        default=BillingStatus.DRAFT.value,
    )
    fulfillment_status = Integer(
        default=FulfillmentStatus.NEW.value,
        min_value=FulfillmentStatus.NEW.value,
        max_value=FulfillmentStatus.RETURNED_TO_STOCK.value,
    )
    notes = Text()
    items = HasMany(LineItem)
    rider_ref = Identifier()
    rider_name = String(max_length=255)
    assigned_at = DateTime()
    delivery = ValueObject(DeliveryRecord)
    return_record = ValueObject(StockReturnRecord)
    returned_items = HasMany(StockReturnLine)
    invoice_ref = Identifier()
    invoice_number = String(max_length=50)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def in_transit_order_must_have_rider(self):
        if self.fulfillment_status == FulfillmentStatus.IN_TRANSIT and not self.rider_ref:
            raise ValidationError({"rider_ref": ["An order in transit must have a rider"]})

    @invariant.post
    def complete_order_must_have_delivery_record(self):
        if self.fulfillment_status == FulfillmentStatus.COMPLETE and self.delivery is None:
            raise ValidationError({"delivery": ["A complete order must have a delivery record"]})

    @invariant.post
    def returned_order_must_have_return_record(self):
        if self.fulfillment_status == FulfillmentStatus.RETURNED_TO_STOCK and self.return_record is None:
            raise ValidationError({"return_record": ["A returned order must have a stock return record"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_number,
        customer_ref,
        items_data,
        order_date=None,
        customer_name=None,
        expected_delivery_date=None,
        notes=None,
        tax_additive=False,
    ):
        """Register an order coming from order entry, in state New / draft.

        Args:
            order_number: Display identifier, e.g. ``SO-0001``.
            customer_ref: The customer the order belongs to.
            items_data: List of dicts with product_ref, product_name,
                        quantity, unit_price and optionally tax_class.
        """
        now = datetime.now(UTC)
        items = build_line_items(items_data, tax_additive=tax_additive)

        order = cls(
            order_number=order_number,
            order_date=order_date or date.today(),
            expected_delivery_date=expected_delivery_date,
            customer_ref=customer_ref,
            customer_name=customer_name or f"Customer {customer_ref}",
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        for item in items:
            order.add_items(item)

        order.raise_(
            SalesOrderRegistered(
                order_id=str(order.id),
                order_number=order_number,
                customer_ref=str(customer_ref),
                items=_items_json(order.items),
                total_amount=order.total_amount,
                registered_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def total_amount(self) -> float:
        """Gross order total; always the sum of the line totals."""
        return float(sum((pricing.round2(item.line_total) for item in self.items), pricing.round2(0)))

    @property
    def status(self) -> FulfillmentStatus:
        return FulfillmentStatus(self.fulfillment_status)

    @property
    def billing(self) -> BillingStatus:
        return BillingStatus(self.billing_status)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def totals(self) -> pricing.OrderTotals:
        return pricing.summarize(self.items)

    def item(self, item_id):
        return next((i for i in self.items if str(i.id) == str(item_id)), None)

    # -------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------
    def require_status(self, action, *allowed):
        """Fail with InvalidStateTransition unless the order is in one of ``allowed``."""
        if self.status not in allowed:
            raise InvalidStateTransition(action, self.status.label, [s.label for s in allowed])

    def require_not_terminal(self, action):
        if self.is_terminal:
            non_terminal = [s for s in FulfillmentStatus if s not in TERMINAL_STATES]
            raise InvalidStateTransition(action, self.status.label, [s.label for s in non_terminal])

    def require_items_editable(self):
        """Line items can only change before the order leaves the store."""
        self.require_status("change line items", *sorted(_ITEM_EDITABLE_STATES))

    def require_billing(self, action, *allowed):
        if self.billing not in allowed:
            raise InvalidStateTransition(action, self.billing.value, [s.value for s in allowed])

    def _assert_can_transition(self, target, action):
        if target not in _VALID_TRANSITIONS[self.status]:
            allowed_from = [s.label for s, targets in _VALID_TRANSITIONS.items() if target in targets]
            raise InvalidStateTransition(action, self.status.label, allowed_from)

    def _synchronise_billing(self, transition):
        advances_from, target = _BILLING_SYNC[transition]
        if self.billing in advances_from:
            self.billing_status = target.value

    # -------------------------------------------------------------------
    # Administrative edits
    # -------------------------------------------------------------------
    def edit_details(self, edited_by, expected_delivery_date=_UNSET, notes=_UNSET, billing_status=None):
        """Edit header fields. Billing status may only move forward."""
        self.require_not_terminal("edit order")

        changed = []
        with atomic_change(self):
            if expected_delivery_date is not _UNSET and expected_delivery_date != self.expected_delivery_date:
                self.expected_delivery_date = expected_delivery_date
                changed.append("expected_delivery_date")
            if notes is not _UNSET and notes != self.notes:
                self.notes = notes
                changed.append("notes")
            if billing_status and billing_status != self.billing_status:
                try:
                    target = BillingStatus(billing_status)
                except ValueError as exc:
                    raise ValidationError({"billing_status": [f"Unknown billing status {billing_status}"]}) from exc
                if _BILLING_ORDER.index(target.value) < _BILLING_ORDER.index(self.billing_status):
                    raise ValidationError(
                        {"billing_status": [f"Cannot move billing status back from {self.billing_status} to {target.value}"]}
                    )
                self.billing_status = target.value
                changed.append("billing_status")

        if not changed:
            return []

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            OrderEdited(
                order_id=str(self.id),
                changed_fields=json.dumps(changed),
                edited_by=str(edited_by),
                edited_at=now,
            )
        )
        return changed

    def replace_items(self, items_data, tax_additive=False):
        """Replace every line item and re-price the order."""
        self.require_items_editable()

        new_items = build_line_items(items_data, tax_additive=tax_additive)
        previous_total = self.total_amount

        with atomic_change(self):
            for existing in list(self.items):
                self.remove_items(existing)
            for item in new_items:
                self.add_items(item)

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            LineItemsRepriced(
                order_id=str(self.id),
                items=_items_json(self.items),
                previous_total=previous_total,
                new_total=self.total_amount,
                repriced_at=now,
            )
        )

    def change_status(self, target, changed_by):
        """Apply a status change requested through an order edit."""
        target = FulfillmentStatus(target)
        if target == self.status:
            return
        if target not in EDITABLE_TRANSITIONS.get(self.status, set()):
            allowed_from = [s.label for s, targets in EDITABLE_TRANSITIONS.items() if target in targets]
            raise InvalidStateTransition(f"set status to {target.label}", self.status.label, allowed_from)

        if target == FulfillmentStatus.APPROVED:
            self.approve(changed_by)
        elif target == FulfillmentStatus.CANCELLED:
            self.cancel(changed_by)
        else:
            self.decline(changed_by)

    def approve(self, approved_by):
        self._assert_can_transition(FulfillmentStatus.APPROVED, "approve order")
        now = datetime.now(UTC)
        self.fulfillment_status = FulfillmentStatus.APPROVED.value
        self.updated_at = now
        self.raise_(
            OrderApproved(
                order_id=str(self.id),
                approved_by=str(approved_by),
                approved_at=now,
            )
        )

    def cancel(self, cancelled_by):
        self._assert_can_transition(FulfillmentStatus.CANCELLED, "cancel order")
        previous = self.fulfillment_status
        now = datetime.now(UTC)
        self.fulfillment_status = FulfillmentStatus.CANCELLED.value
        self.updated_at = now
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=previous,
                cancelled_by=str(cancelled_by),
                cancelled_at=now,
            )
        )

    def decline(self, declined_by):
        self._assert_can_transition(FulfillmentStatus.DECLINED, "decline order")
        previous = self.fulfillment_status
        now = datetime.now(UTC)
        self.fulfillment_status = FulfillmentStatus.DECLINED.value
        self.updated_at = now
        self.raise_(
            OrderDeclined(
                order_id=str(self.id),
                previous_status=previous,
                declined_by=str(declined_by),
                declined_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    def assign_rider(self, rider_id, rider_name, dispatch_store_ref, assigned_by):
        """Hand the order to a rider: Approved → In Transit."""
        self.require_status("assign rider", FulfillmentStatus.APPROVED)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.rider_ref = str(rider_id)
            self.rider_name = rider_name
            self.assigned_at = now
            self.fulfillment_status = FulfillmentStatus.IN_TRANSIT.value
            self._synchronise_billing("assign_rider")
            self.updated_at = now

        self.raise_(
            RiderAssigned(
                order_id=str(self.id),
                rider_id=str(rider_id),
                rider_name=rider_name,
                dispatch_store_ref=str(dispatch_store_ref),
                billing_status=self.billing_status,
                assigned_by=str(assigned_by),
                assigned_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------
    @staticmethod
    def validate_recipient(recipient_name, recipient_phone):
        errors = {}
        if not (recipient_name or "").strip():
            errors["recipient_name"] = ["Recipient name is required"]
        if not (recipient_phone or "").strip():
            errors["recipient_phone"] = ["Recipient phone is required"]
        if errors:
            raise ValidationError(errors)

    def complete_delivery(self, recipient_name, recipient_phone, completed_by, proof_image_ref=None, notes=None):
        """Record the hand-over to the customer: In Transit → Complete."""
        self.require_status("complete delivery", FulfillmentStatus.IN_TRANSIT)
        self.validate_recipient(recipient_name, recipient_phone)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.delivery = DeliveryRecord(
                recipient_name=recipient_name.strip(),
                recipient_phone=recipient_phone.strip(),
                proof_image_ref=proof_image_ref,
                notes=notes,
                completed_at=now,
            )
            self.fulfillment_status = FulfillmentStatus.COMPLETE.value
            self._synchronise_billing("complete_delivery")
            self.updated_at = now

        self.raise_(
            DeliveryCompleted(
                order_id=str(self.id),
                recipient_name=self.delivery.recipient_name,
                recipient_phone=self.delivery.recipient_phone,
                proof_image_ref=proof_image_ref,
                billing_status=self.billing_status,
                completed_by=str(completed_by),
                completed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Reverse logistics
    # -------------------------------------------------------------------
    def validate_stock_return(self, lines):
        """Check return lines against the original line items.

        Each line is a dict with line_item_id, quantity and unit_cost.
        Non-positive quantities fail with ValidationError; quantities above
        the ordered quantity fail with QuantityExceeded naming the products.
        """
        if not lines:
            raise ValidationError({"items": ["At least one line must be returned"]})

        seen = set()
        exceeded = []
        for line in lines:
            item = self.item(line["line_item_id"])
            if item is None:
                raise ValidationError({"items": [f"Line item {line['line_item_id']} is not part of this order"]})
            if str(item.id) in seen:
                raise ValidationError({"items": [f"Line item {item.id} is listed more than once"]})
            seen.add(str(item.id))

            try:
                quantity = whole_quantity(line.get("quantity"))
                unit_cost = float(line.get("unit_cost") or 0.0)
            except (TypeError, ValueError) as exc:
                raise ValidationError({"items": [f"Invalid quantity or unit cost for {item.product_name}"]}) from exc
            if quantity <= 0:
                raise ValidationError({"items": ["All quantities must be greater than 0"]})
            if unit_cost < 0:
                raise ValidationError({"items": [f"Unit cost for {item.product_name} must not be negative"]})
            if quantity > item.quantity:
                exceeded.append(item.product_name)

        if exceeded:
            raise QuantityExceeded(exceeded)

    def receive_to_stock(self, store_ref, lines, received_by, notes=None):
        """Record goods received back into a store: Cancelled → Returned to Stock."""
        self.require_status("receive to stock", FulfillmentStatus.CANCELLED)
        self.validate_stock_return(lines)

        now = datetime.now(UTC)
        return_lines = []
        for line in lines:
            item = self.item(line["line_item_id"])
            return_lines.append(
                StockReturnLine(
                    line_item_id=str(item.id),
                    product_ref=str(item.product_ref),
                    product_name=item.product_name,
                    quantity=whole_quantity(line["quantity"]),
                    unit_cost=float(line.get("unit_cost") or 0.0),
                )
            )

        with atomic_change(self):
            self.return_record = StockReturnRecord(
                store_ref=str(store_ref),
                notes=notes,
                received_by=str(received_by),
                returned_at=now,
            )
            for line in return_lines:
                self.add_returned_items(line)
            self.fulfillment_status = FulfillmentStatus.RETURNED_TO_STOCK.value
            self.updated_at = now

        self.raise_(
            OrderReturnedToStock(
                order_id=str(self.id),
                store_ref=str(store_ref),
                lines=json.dumps(
                    [
                        {
                            "product_ref": line.product_ref,
                            "quantity": line.quantity,
                            "unit_cost": line.unit_cost,
                        }
                        for line in return_lines
                    ]
                ),
                received_by=str(received_by),
                returned_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Invoicing
    # -------------------------------------------------------------------
    def mark_invoiced(self, invoice_id, invoice_number, converted_by):
        """Record the invoice produced from this order: draft → confirmed."""
        self.require_billing("convert to invoice", BillingStatus.DRAFT)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.invoice_ref = str(invoice_id)
            self.invoice_number = invoice_number
            self._synchronise_billing("convert_to_invoice")
            self.updated_at = now

        self.raise_(
            OrderConvertedToInvoice(
                order_id=str(self.id),
                invoice_id=str(invoice_id),
                invoice_number=invoice_number,
                converted_by=str(converted_by),
                converted_at=now,
            )
        )
