"""Convert to invoice: command and handler.

Only draft orders can be invoiced. The invoicing collaborator creates the
invoice from the order's lines; the order records the invoice reference
and its billing moves to confirmed.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from sales.domain import sales
from sales.errors import DependencyFailure
from sales.invoicing import get_invoicing
from sales.order.authorization import ActorRole, require_role
from sales.order.order import BillingStatus, SalesOrder

logger = structlog.get_logger(__name__)


@sales.command(part_of="SalesOrder")
class ConvertToInvoice:
    order_id = Identifier(required=True)
    actor_id = Identifier()
    actor_role = String(max_length=50)


@sales.command_handler(part_of=SalesOrder)
class InvoicingHandler:
    @handle(ConvertToInvoice)
    def convert_to_invoice(self, command):
        require_role("convert orders to invoices", command.actor_id, command.actor_role, ActorRole.ADMIN)

        repo = current_domain.repository_for(SalesOrder)
        order = repo.get(command.order_id)
        order.require_billing("convert to invoice", BillingStatus.DRAFT)

        try:
            result = get_invoicing().convert(str(order.id), order.expected_delivery_date, order.notes)
        except Exception as exc:
            logger.error("Invoicing service unavailable", order_id=str(order.id), reason=str(exc))
            raise DependencyFailure("invoicing", exc) from exc

        if not result.success:
            logger.error("Invoice conversion failed", order_id=str(order.id), reason=result.failure_reason)
            raise DependencyFailure("invoicing", result.failure_reason or "Invoice conversion failed")

        order.mark_invoiced(result.invoice_id, result.invoice_number, converted_by=command.actor_id)
        repo.add(order)

        logger.info(
            "Order converted to invoice",
            order_id=str(order.id),
            invoice_id=result.invoice_id,
            invoice_number=result.invoice_number,
        )
        return {"invoice_id": result.invoice_id, "invoice_number": result.invoice_number}
