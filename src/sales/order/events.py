"""Domain events for the SalesOrder aggregate.

All events are versioned, immutable facts representing order state changes.
Collections (line items, returned lines) travel as JSON text.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from sales.domain import sales


@sales.event(part_of="SalesOrder")
class SalesOrderRegistered:
    """An order handed over by order entry was registered in state New."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_ref = Identifier(required=True)
    items = Text(required=True)  # JSON list of priced line items
    total_amount = Float(required=True)
    registered_at = DateTime(required=True)


@sales.event(part_of="SalesOrder")
class OrderApproved:
    __version__ = 1

    order_id = Identifier(required=True)
    approved_by = Identifier(required=True)
    approved_at = DateTime(required=True)


@sales.event(part_of="SalesOrder")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = Integer(required=True)
    cancelled_by = Identifier(required=True)
    cancelled_at = DateTime(required=True)


@sales.event(part_of="SalesOrder")
class OrderDeclined:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = Integer(required=True)
    declined_by = Identifier(required=True)
    declined_at = DateTime(required=True)


@sales.event(part_of="SalesOrder")
class OrderEdited:
    """Header fields of the order were edited by an administrator."""

    __version__ = 1

    order_id = Identifier(required=True)
    changed_fields = Text(required=True)  # JSON list of field names
    edited_by = Identifier(required=True)
    edited_at = DateTime(required=True)


@sales.event(part_of="SalesOrder")
class LineItemsRepriced:
    """The order's line items were replaced and their totals recomputed."""

    __version__ = 1

    order_id = Identifier(required=True)
    items = Text(required=True)  # JSON list of priced line items
    previous_total = Float(required=True)
    new_total = Float(required=True)
    repriced_at = DateTime(required=True)


@sales.event(part_of="SalesOrder")
class RiderAssigned:
    """A rider was dispatched and stock was taken out of the dispatch store."""

    __version__ = 1

    order_id = Identifier(required=True)
    rider_id = Identifier(required=True)
    rider_name = String()
    dispatch_store_ref = Identifier(required=True)
    billing_status = String(required=True)
    assigned_by = Identifier(required=True)
    assigned_at = DateTime(required=True)


@sales.event(part_of="SalesOrder")
class DeliveryCompleted:
    __version__ = 1

    order_id = Identifier(required=True)
    recipient_name = String(required=True)
    recipient_phone = String(required=True)
    proof_image_ref = String()
    billing_status = String(required=True)
    completed_by = Identifier(required=True)
    completed_at = DateTime(required=True)


@sales.event(part_of="SalesOrder")
class OrderReturnedToStock:
    """Goods from a cancelled order were received back into a store."""

    __version__ = 1

    order_id = Identifier(required=True)
    store_ref = Identifier(required=True)
    lines = Text(required=True)  # JSON list of {product_ref, quantity, unit_cost}
    received_by = Identifier(required=True)
    returned_at = DateTime(required=True)


@sales.event(part_of="SalesOrder")
class OrderConvertedToInvoice:
    __version__ = 1

    order_id = Identifier(required=True)
    invoice_id = Identifier(required=True)
    invoice_number = String()
    converted_by = Identifier(required=True)
    converted_at = DateTime(required=True)
