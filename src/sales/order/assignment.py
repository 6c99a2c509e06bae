"""Rider assignment: command and handler.

Dispatching an order hands it to a rider and takes its goods out of the
dispatch store. The stock decrement and the status change succeed or fail
together: decrements already applied are restored when a later one fails,
and the order is only persisted once every decrement went through.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from sales.domain import sales
from sales.errors import DependencyFailure
from sales.order.authorization import ActorRole, require_role
from sales.order.order import FulfillmentStatus, SalesOrder
from sales.riders import get_rider_directory
from sales.settings import get_settings
from sales.stock import get_inventory

logger = structlog.get_logger(__name__)


@sales.command(part_of="SalesOrder")
class AssignRider:
    """Dispatch an approved order with a rider."""

    order_id = Identifier(required=True)
    rider_id = Identifier(required=True)
    actor_id = Identifier()
    actor_role = String(max_length=50)


def _find_rider(rider_id):
    try:
        rider = get_rider_directory().get_rider(rider_id)
    except Exception as exc:
        logger.error("Rider directory unavailable", rider_id=str(rider_id), reason=str(exc))
        raise DependencyFailure("rider_directory", exc) from exc

    if rider is None:
        raise ValidationError({"rider_id": [f"Rider {rider_id} does not exist"]})
    return rider


def _restore_decrements(inventory, order, store_ref, applied):
    for item in reversed(applied):
        try:
            result = inventory.restore_on_hand(store_ref, item.product_ref, item.quantity)
        except Exception as exc:
            logger.error(
                "Stock restore failed",
                order_id=str(order.id),
                product_ref=str(item.product_ref),
                reason=str(exc),
            )
            continue
        if not result.success:
            logger.error(
                "Stock restore failed",
                order_id=str(order.id),
                product_ref=str(item.product_ref),
                reason=result.failure_reason,
            )


def decrement_dispatch_stock(order, store_ref):
    """Take every line's quantity out of ``store_ref``, all or nothing.

    A decrement that fails, whether by result or by raising, restores the
    ones already applied and aborts with DependencyFailure.
    """
    inventory = get_inventory()
    applied = []
    for item in order.items:
        try:
            result = inventory.decrement_on_hand(store_ref, item.product_ref, item.quantity)
        except Exception as exc:
            cause, failure = exc, DependencyFailure("inventory", exc)
        else:
            if result.success:
                applied.append(item)
                continue
            cause, failure = None, DependencyFailure("inventory", result.failure_reason or "Stock decrement failed")

        logger.warning(
            "Stock decrement failed, restoring applied decrements",
            order_id=str(order.id),
            store_ref=str(store_ref),
            product_ref=str(item.product_ref),
            restored=len(applied),
        )
        _restore_decrements(inventory, order, store_ref, applied)
        logger.error("Rider assignment aborted", order_id=str(order.id), reason=failure.reason)
        raise failure from cause


@sales.command_handler(part_of=SalesOrder)
class AssignmentHandler:
    @handle(AssignRider)
    def assign_rider(self, command):
        require_role("assign rider", command.actor_id, command.actor_role, ActorRole.STOCK)

        repo = current_domain.repository_for(SalesOrder)
        order = repo.get(command.order_id)
        order.require_status("assign rider", FulfillmentStatus.APPROVED)

        rider = _find_rider(command.rider_id)
        store_ref = get_settings().default_dispatch_store_ref

        order.assign_rider(
            rider_id=rider.id,
            rider_name=rider.name,
            dispatch_store_ref=store_ref,
            assigned_by=command.actor_id,
        )
        decrement_dispatch_stock(order, store_ref)
        repo.add(order)

        logger.info(
            "Rider assigned",
            order_id=str(order.id),
            rider_id=str(rider.id),
            store_ref=str(store_ref),
            billing_status=order.billing_status,
        )
        return order.status.label
