"""Invoicing service factory.

Provides get_invoicing() / set_invoicing(); FakeInvoicingService is the default.
"""

from sales.invoicing.fake_adapter import FakeInvoicingService
from sales.invoicing.port import InvoiceResult, InvoicingService

__all__ = ["InvoiceResult", "InvoicingService", "get_invoicing", "set_invoicing", "reset_invoicing"]

_current_invoicing: InvoicingService | None = None


def get_invoicing() -> InvoicingService:
    global _current_invoicing
    if _current_invoicing is None:
        _current_invoicing = FakeInvoicingService()
    return _current_invoicing


def set_invoicing(service: InvoicingService) -> None:
    global _current_invoicing
    _current_invoicing = service


def reset_invoicing() -> None:
    global _current_invoicing
    _current_invoicing = None
