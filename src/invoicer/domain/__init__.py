"""Domain layer for invoicer application."""

from invoicer.domain.invoice_service import InvoiceService, InvoiceStatistics
from invoicer.domain.calculator import CalculationOptions, InvoiceCalculator
from invoicer.domain.invoice import Invoice
from invoicer.domain.validation import ValidationBuilder

__all__ = [
    "InvoiceService",
    "InvoiceStatistics",
    "CalculationOptions",
    "InvoiceCalculator",
    "Invoice",
    "ValidationBuilder",
]
