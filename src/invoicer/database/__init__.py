"""Storage layer for invoicer application."""

from invoicer.database.base import ClientStorage, InvoiceStorage
from invoicer.database.factories import create_memory_storage, load_invoice_file

__all__ = ["ClientStorage", "InvoiceStorage", "create_memory_storage", "load_invoice_file"]
