"""Delivery completion: command and handler.

Any authenticated actor may complete a delivery. A proof-of-delivery image,
when supplied, is uploaded before the order is completed; a failed upload
is logged and the delivery is recorded without a proof reference.
"""

import base64
import binascii

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from sales.domain import sales
from sales.order.authorization import require_role
from sales.order.order import FulfillmentStatus, SalesOrder
from sales.storage import get_storage

logger = structlog.get_logger(__name__)


@sales.command(part_of="SalesOrder")
class CompleteDelivery:
    """Record that an order in transit reached its recipient."""

    order_id = Identifier(required=True)
    recipient_name = String(max_length=255)
    recipient_phone = String(max_length=50)
    proof_image = Text()  # base64, optionally as a data URL
    proof_image_name = String(max_length=255)
    notes = Text()
    actor_id = Identifier()
    actor_role = String(max_length=50)


def decode_image(encoded):
    """Decode a base64 payload, accepting ``data:<mime>;base64,`` prefixes."""
    if "," in encoded and encoded.lstrip().startswith("data:"):
        encoded = encoded.split(",", 1)[1]
    try:
        data = base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError({"proof_image": ["Proof image must be base64 encoded"]}) from exc
    if not data:
        raise ValidationError({"proof_image": ["Proof image is empty"]})
    return data


def upload_proof_image(order, data, filename, recipient_name, recipient_phone):
    """Upload the image and return its reference, or None when the upload fails."""
    metadata = {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "filename": filename or f"{order.order_number}-delivery.jpg",
        "recipient_name": recipient_name,
        "recipient_phone": recipient_phone,
    }
    try:
        result = get_storage().upload(data, metadata)
    except Exception as exc:
        # Upload failures never block the delivery
        logger.warning("Proof image upload failed", order_id=str(order.id), reason=str(exc), exc_info=True)
        return None

    if not result.success:
        logger.warning(
            "Proof image upload failed",
            order_id=str(order.id),
            reason=result.failure_reason,
        )
        return None
    return result.file_ref


@sales.command_handler(part_of=SalesOrder)
class DeliveryHandler:
    @handle(CompleteDelivery)
    def complete_delivery(self, command):
        require_role("complete delivery", command.actor_id, command.actor_role)

        repo = current_domain.repository_for(SalesOrder)
        order = repo.get(command.order_id)
        order.require_status("complete delivery", FulfillmentStatus.IN_TRANSIT)
        SalesOrder.validate_recipient(command.recipient_name, command.recipient_phone)

        proof_image_ref = None
        if command.proof_image:
            data = decode_image(command.proof_image)
            proof_image_ref = upload_proof_image(
                order,
                data,
                command.proof_image_name,
                command.recipient_name.strip(),
                command.recipient_phone.strip(),
            )

        order.complete_delivery(
            recipient_name=command.recipient_name,
            recipient_phone=command.recipient_phone,
            completed_by=command.actor_id,
            proof_image_ref=proof_image_ref,
            notes=command.notes,
        )
        repo.add(order)

        logger.info(
            "Delivery completed",
            order_id=str(order.id),
            proof_image_ref=proof_image_ref,
            billing_status=order.billing_status,
        )
        return order.status.label
