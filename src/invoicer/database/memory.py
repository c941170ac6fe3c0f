"""In-memory storage implementation."""

from threading import Lock
from typing import Optional

from invoicer.database.base import ClientStorage, InvoiceStorage
from invoicer.database.mappers import (
    Record,
    client_from_record,
    client_to_record,
    invoice_from_record,
    invoice_to_record,
)
from invoicer.domain.entities import Client
from invoicer.domain.errors import DuplicateRecordError, VersionConflictError, invoice_not_found
from invoicer.domain.invoice import Invoice
from invoicer.domain.requests import InvoiceFilter
from invoicer.utils.cancellation import CancellationToken, check_cancelled


class InMemoryStorage(InvoiceStorage, ClientStorage):
    """Invoice and client storage held in process memory.

    Stores records rather than live objects, so every read returns a fresh
    copy. A lock serializes access to the maps.
    """

    def __init__(self):
        self._lock = Lock()
        self._invoices: dict[str, Record] = {}
        self._clients: dict[str, Record] = {}

    # Invoice operations
    def create_invoice(self, invoice: Invoice, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        record = invoice_to_record(invoice)
        with self._lock:
            if invoice.id in self._invoices:
                raise DuplicateRecordError(f"invoice with ID '{invoice.id}' already exists")
            self._invoices[invoice.id] = record

    def get_invoice(
        self, invoice_id: str, cancel: Optional[CancellationToken] = None
    ) -> Optional[Invoice]:
        check_cancelled(cancel)
        with self._lock:
            record = self._invoices.get(invoice_id)
        return None if record is None else invoice_from_record(record)

    def update_invoice(
        self,
        invoice: Invoice,
        expected_version: int,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        check_cancelled(cancel)
        record = invoice_to_record(invoice)
        with self._lock:
            stored = self._invoices.get(invoice.id)
            if stored is None:
                raise invoice_not_found(invoice.id)
            if stored["version"] != expected_version:
                raise VersionConflictError("invoice", invoice.id, expected_version, stored["version"])
            self._invoices[invoice.id] = record

    def delete_invoice(self, invoice_id: str, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        with self._lock:
            if invoice_id not in self._invoices:
                raise invoice_not_found(invoice_id)
            del self._invoices[invoice_id]

    def list_invoices(
        self,
        invoice_filter: Optional[InvoiceFilter] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> list[Invoice]:
        matches = self._matching_invoices(invoice_filter, cancel)
        if invoice_filter is None:
            return matches
        start = invoice_filter.offset
        end = start + invoice_filter.limit if invoice_filter.limit else None
        return matches[start:end]

    def count_invoices(
        self,
        invoice_filter: Optional[InvoiceFilter] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> int:
        return len(self._matching_invoices(invoice_filter, cancel))

    def _matching_invoices(
        self, invoice_filter: Optional[InvoiceFilter], cancel: Optional[CancellationToken]
    ) -> list[Invoice]:
        check_cancelled(cancel)
        with self._lock:
            records = list(self._invoices.values())
        invoices = []
        for record in records:
            check_cancelled(cancel)
            invoice = invoice_from_record(record)
            if invoice_filter is None or invoice_filter.matches(invoice):
                invoices.append(invoice)
        return invoices

    # Client operations
    def create_client(self, client: Client, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        with self._lock:
            if client.id in self._clients:
                raise DuplicateRecordError(f"client with ID '{client.id}' already exists")
            self._clients[client.id] = client_to_record(client)

    def get_client(
        self, client_id: str, cancel: Optional[CancellationToken] = None
    ) -> Optional[Client]:
        check_cancelled(cancel)
        with self._lock:
            record = self._clients.get(client_id)
        return None if record is None else client_from_record(record)

    def list_clients(
        self, active_only: bool = False, cancel: Optional[CancellationToken] = None
    ) -> list[Client]:
        check_cancelled(cancel)
        with self._lock:
            records = list(self._clients.values())
        clients = [client_from_record(record) for record in records]
        if active_only:
            clients = [client for client in clients if client.active]
        return sorted(clients, key=lambda c: c.name)
