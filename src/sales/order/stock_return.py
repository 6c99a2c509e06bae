"""Receive to stock, the reverse-logistics path for cancelled orders.

Goods of a cancelled order are received back into a store. The return
lines default to the order's original lines, valued at the catalog cost
price, and may be overridden per line before submission. The inventory
adjustments are posted as one batch: when any posting fails, the ones
already posted are reversed and the order keeps its Cancelled status.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from sales.catalogue import get_catalog
from sales.domain import sales
from sales.errors import DependencyFailure
from sales.order.authorization import ActorRole, require_role
from sales.order.order import FulfillmentStatus, SalesOrder
from sales.stock import get_inventory
from sales.stock.port import ADJUSTMENT, SALES_ORDER_RETURN, SALES_ORDER_RETURN_REVERSAL

logger = structlog.get_logger(__name__)


@sales.command(part_of="SalesOrder")
class ReceiveToStock:
    """Return the goods of a cancelled order to a store."""

    order_id = Identifier(required=True)
    store_ref = Identifier()
    notes = Text()
    # JSON object keyed by line item id: {"<id>": {"quantity": 2, "unit_cost": 10.5}}
    items = Text()
    actor_id = Identifier()
    actor_role = String(max_length=50)


def default_return_note(order):
    return f"Return to stock from cancelled order {order.order_number}"


def draft_stock_return(order):
    """Seed return lines from the order: full quantities at catalog cost price."""
    catalog = get_catalog()
    lines = []
    for item in order.items:
        try:
            product = catalog.get_product(item.product_ref)
        except Exception as exc:
            logger.error("Product catalog unavailable", product_ref=str(item.product_ref), reason=str(exc))
            raise DependencyFailure("catalog", exc) from exc

        unit_cost = product.cost_price if product is not None and product.cost_price is not None else 0.0
        lines.append(
            {
                "line_item_id": str(item.id),
                "product_ref": str(item.product_ref),
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_cost": float(unit_cost),
            }
        )
    return lines


def _parse_overrides(raw):
    if not raw:
        return {}
    try:
        overrides = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError as exc:
        raise ValidationError({"items": ["Return lines must be valid JSON"]}) from exc
    if not isinstance(overrides, dict):
        raise ValidationError({"items": ["Return lines must be keyed by line item id"]})
    return {str(key): value or {} for key, value in overrides.items()}


def merge_return_lines(draft, overrides):
    """Apply per-line quantity and unit cost overrides on top of the draft."""
    lines = []
    known = set()
    for line in draft:
        known.add(line["line_item_id"])
        override = overrides.get(line["line_item_id"], {})
        merged = dict(line)
        if "quantity" in override:
            merged["quantity"] = override["quantity"]
        if override.get("unit_cost") is not None:
            merged["unit_cost"] = override["unit_cost"]
        lines.append(merged)

    # Unknown ids are passed through so the aggregate rejects them by name
    for line_item_id, override in overrides.items():
        if line_item_id not in known:
            lines.append({"line_item_id": line_item_id, **override})
    return lines


def _reverse_adjustments(inventory, order, store_ref, posted):
    for line in reversed(posted):
        try:
            result = inventory.post_adjustment(
                store_ref,
                line.product_ref,
                -line.quantity,
                line.unit_cost,
                transaction_type=ADJUSTMENT,
                reference_type=SALES_ORDER_RETURN_REVERSAL,
                reference_id=str(order.id),
            )
        except Exception as exc:
            logger.error(
                "Stock return reversal failed",
                order_id=str(order.id),
                product_ref=str(line.product_ref),
                reason=str(exc),
            )
            continue
        if not result.success:
            logger.error(
                "Stock return reversal failed",
                order_id=str(order.id),
                product_ref=str(line.product_ref),
                reason=result.failure_reason,
            )


def post_return_adjustments(order, store_ref):
    """Post one adjustment per returned line, reversing the batch on failure."""
    inventory = get_inventory()
    posted = []
    for line in order.returned_items:
        try:
            result = inventory.post_adjustment(
                store_ref,
                line.product_ref,
                line.quantity,
                line.unit_cost,
                transaction_type=ADJUSTMENT,
                reference_type=SALES_ORDER_RETURN,
                reference_id=str(order.id),
            )
        except Exception as exc:
            cause, failure = exc, DependencyFailure("inventory", exc)
        else:
            if result.success:
                posted.append(line)
                continue
            cause, failure = None, DependencyFailure("inventory", result.failure_reason or "Stock adjustment failed")

        logger.warning(
            "Stock return posting failed, reversing posted adjustments",
            order_id=str(order.id),
            store_ref=str(store_ref),
            product_ref=str(line.product_ref),
            reversed=len(posted),
        )
        _reverse_adjustments(inventory, order, store_ref, posted)
        logger.error("Receive to stock aborted", order_id=str(order.id), reason=failure.reason)
        raise failure from cause


def _require_store(store_ref):
    if not store_ref:
        raise ValidationError({"store_ref": ["A store must be selected"]})
    try:
        store = get_inventory().get_store(store_ref)
    except Exception as exc:
        logger.error("Store directory unavailable", store_ref=str(store_ref), reason=str(exc))
        raise DependencyFailure("inventory", exc) from exc
    if store is None:
        raise ValidationError({"store_ref": [f"Store {store_ref} does not exist"]})
    return store


@sales.command_handler(part_of=SalesOrder)
class StockReturnHandler:
    @handle(ReceiveToStock)
    def receive_to_stock(self, command):
        require_role("receive to stock", command.actor_id, command.actor_role, ActorRole.STOCK)

        repo = current_domain.repository_for(SalesOrder)
        order = repo.get(command.order_id)
        order.require_status("receive to stock", FulfillmentStatus.CANCELLED)

        store = _require_store(command.store_ref)
        lines = merge_return_lines(draft_stock_return(order), _parse_overrides(command.items))

        order.receive_to_stock(
            store_ref=store.id,
            lines=lines,
            received_by=command.actor_id,
            notes=command.notes or default_return_note(order),
        )
        post_return_adjustments(order, store.id)
        repo.add(order)

        logger.info(
            "Order returned to stock",
            order_id=str(order.id),
            store_ref=str(store.id),
            lines=len(order.returned_items),
        )
        return order.status.label
