"""Configurable fake invoicing service for development and testing."""

from uuid import uuid4

from sales.invoicing.port import InvoiceResult, InvoicingService


class FakeInvoicingService(InvoicingService):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Invoicing service unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Invoicing service unavailable") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def convert(self, order_id, expected_delivery_date, notes) -> InvoiceResult:
        self.calls.append(
            {
                "method": "convert",
                "order_id": str(order_id),
                "expected_delivery_date": expected_delivery_date,
                "notes": notes,
            }
        )
        if not self.should_succeed:
            return InvoiceResult(success=False, failure_reason=self.failure_reason)
        return InvoiceResult(
            success=True,
            invoice_id=str(uuid4()),
            invoice_number=f"INV-{uuid4().hex[:8].upper()}",
        )
