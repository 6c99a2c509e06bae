"""Invoicing port: the downstream collaborator that turns orders into invoices."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class InvoiceResult:
    success: bool
    invoice_id: str | None = None
    invoice_number: str | None = None
    failure_reason: str | None = None


class InvoicingService(ABC):
    @abstractmethod
    def convert(self, order_id: str, expected_delivery_date: date | None, notes: str | None) -> InvoiceResult:
        """Create an invoice for the order from its current lines."""
        ...
