"""Abstract storage interfaces."""

from abc import ABC, abstractmethod
from typing import Optional

from invoicer.domain.entities import Client
from invoicer.domain.invoice import Invoice
from invoicer.domain.requests import InvoiceFilter
from invoicer.utils.cancellation import CancellationToken


class InvoiceStorage(ABC):
    """Abstract invoice storage.

    Implementations hand out independent copies: mutating a returned invoice
    has no effect until it is written back with update_invoice.
    """

    @abstractmethod
    def create_invoice(self, invoice: Invoice, cancel: Optional[CancellationToken] = None) -> None:
        """Store a new invoice. Raises DuplicateRecordError if the ID exists."""
        pass

    @abstractmethod
    def get_invoice(
        self, invoice_id: str, cancel: Optional[CancellationToken] = None
    ) -> Optional[Invoice]:
        """Get invoice by ID."""
        pass

    @abstractmethod
    def update_invoice(
        self,
        invoice: Invoice,
        expected_version: int,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        """Replace a stored invoice if its stored version still matches.

        Args:
            invoice: Invoice to write, already carrying its new version
            expected_version: Version the caller read before mutating

        Raises:
            InvoiceNotFoundError: If the invoice does not exist
            VersionConflictError: If the stored version differs from expected_version
        """
        pass

    @abstractmethod
    def delete_invoice(self, invoice_id: str, cancel: Optional[CancellationToken] = None) -> None:
        """Delete an invoice. Raises InvoiceNotFoundError if absent."""
        pass

    @abstractmethod
    def list_invoices(
        self,
        invoice_filter: Optional[InvoiceFilter] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> list[Invoice]:
        """List invoices matching the filter, honoring its limit and offset."""
        pass

    @abstractmethod
    def count_invoices(
        self,
        invoice_filter: Optional[InvoiceFilter] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> int:
        """Count invoices matching the filter, ignoring limit and offset."""
        pass


class ClientStorage(ABC):
    """Abstract client storage."""

    @abstractmethod
    def create_client(self, client: Client, cancel: Optional[CancellationToken] = None) -> None:
        """Store a new client. Raises DuplicateRecordError if the ID exists."""
        pass

    @abstractmethod
    def get_client(
        self, client_id: str, cancel: Optional[CancellationToken] = None
    ) -> Optional[Client]:
        """Get client by ID."""
        pass

    @abstractmethod
    def list_clients(
        self, active_only: bool = False, cancel: Optional[CancellationToken] = None
    ) -> list[Client]:
        """List clients, optionally only active ones."""
        pass
