"""Administrative order edits: command and handler.

Administrators may edit header fields, replace the line items while the
order has not left the store, move billing forward and request the status
changes the edit screen allows (New → Approved, Approved → Cancelled or
Declined).
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Date, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from sales.catalogue import get_catalog
from sales.domain import sales
from sales.errors import DependencyFailure
from sales.order.authorization import ActorRole, require_role
from sales.order.order import FulfillmentStatus, SalesOrder
from sales.settings import get_settings

logger = structlog.get_logger(__name__)


@sales.command(part_of="SalesOrder")
class EditOrder:
    """Edit an order; fields left empty are not changed."""

    order_id = Identifier(required=True)
    expected_delivery_date = Date()
    notes = Text()
    billing_status = String(max_length=20)
    fulfillment_status = Integer()
    items = Text()  # JSON list of line dicts
    actor_id = Identifier()
    actor_role = String(max_length=50)


def _parse_items(raw):
    try:
        items_data = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError as exc:
        raise ValidationError({"items": ["Line items must be valid JSON"]}) from exc
    if not isinstance(items_data, list):
        raise ValidationError({"items": ["Line items must be a list"]})
    return items_data


def complete_from_catalog(items_data):
    """Fill in missing product names and unit prices from the catalog."""
    catalog = get_catalog()
    completed = []
    for data in items_data:
        data = dict(data)
        if data.get("product_ref") and (not data.get("product_name") or data.get("unit_price") is None):
            try:
                product = catalog.get_product(data["product_ref"])
            except Exception as exc:
                logger.error("Product catalog unavailable", product_ref=str(data["product_ref"]), reason=str(exc))
                raise DependencyFailure("catalog", exc) from exc
            if product is None:
                raise ValidationError({"items": [f"Product {data['product_ref']} does not exist"]})
            if not data.get("product_name"):
                data["product_name"] = product.name
            if data.get("unit_price") is None:
                data["unit_price"] = product.selling_price
        completed.append(data)
    return completed


def _validate_status(value):
    try:
        return FulfillmentStatus(value)
    except ValueError as exc:
        raise ValidationError({"fulfillment_status": [f"Unknown fulfillment status {value}"]}) from exc


@sales.command_handler(part_of=SalesOrder)
class EditOrderHandler:
    @handle(EditOrder)
    def edit_order(self, command):
        require_role("edit orders", command.actor_id, command.actor_role, ActorRole.ADMIN)

        repo = current_domain.repository_for(SalesOrder)
        order = repo.get(command.order_id)
        order.require_not_terminal("edit order")

        target_status = None
        if command.fulfillment_status is not None:
            target_status = _validate_status(command.fulfillment_status)

        changed = []
        if command.items:
            order.require_items_editable()
            items_data = complete_from_catalog(_parse_items(command.items))
            order.replace_items(items_data, tax_additive=get_settings().tax_additive)
            changed.append("items")

        changed.extend(
            order.edit_details(
                edited_by=command.actor_id,
                expected_delivery_date=(
                    command.expected_delivery_date
                    if command.expected_delivery_date is not None
                    else order.expected_delivery_date
                ),
                notes=command.notes if command.notes is not None else order.notes,
                billing_status=command.billing_status,
            )
        )

        # Status goes last: cancelling first would lock the line items
        if target_status is not None and target_status != order.status:
            order.change_status(target_status, changed_by=command.actor_id)
            changed.append("fulfillment_status")

        repo.add(order)
        logger.info(
            "Order edited",
            order_id=str(order.id),
            changed=changed,
            fulfillment_status=order.status.label,
        )
        return changed
