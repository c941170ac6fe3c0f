"""Invoice domain service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Iterable, Optional

import structlog

from invoicer.domain.entities import InvoiceStatus, LineItem, WorkItem
from invoicer.domain.errors import (
    CannotDeletePaidInvoiceError,
    CannotMarkNonSentAsPaidError,
    CannotSendEmptyInvoiceError,
    CannotSendNonDraftInvoiceError,
    ClientInactiveError,
    InvoiceNumberExistsError,
    InvoiceNumberNotFoundError,
    NotFoundError,
    PreconditionError,
    client_not_found,
    invoice_not_found,
    with_status,
    with_subject,
)
from invoicer.domain.invoice import Invoice
from invoicer.domain.requests import CreateInvoiceRequest, InvoiceFilter, UpdateInvoiceRequest
from invoicer.utils.amount_parser import round2
from invoicer.utils.cancellation import CancellationToken, check_cancelled

if TYPE_CHECKING:
    from invoicer.database.base import ClientStorage, InvoiceStorage
    from invoicer.utils.ids import IDGenerator

Mutation = Callable[[Invoice], None]


@dataclass(frozen=True)
class InvoiceStatistics:
    """Counts per status and money totals across all invoices."""

    total_invoices: int = 0
    draft_count: int = 0
    sent_count: int = 0
    paid_count: int = 0
    overdue_count: int = 0
    voided_count: int = 0
    total_amount: Decimal = Decimal("0.00")
    paid_amount: Decimal = Decimal("0.00")
    outstanding_amount: Decimal = Decimal("0.00")


class InvoiceService:
    """Service for managing invoices."""

    def __init__(
        self,
        invoice_storage: InvoiceStorage,
        client_storage: ClientStorage,
        id_generator: IDGenerator,
        logger=None,
    ):
        """Initialize invoice service.

        Args:
            invoice_storage: Invoice storage
            client_storage: Client storage
            id_generator: Source of invoice and item IDs
            logger: Optional structlog logger
        """
        self.invoice_storage = invoice_storage
        self.client_storage = client_storage
        self.id_generator = id_generator
        self.logger = logger or structlog.get_logger(__name__)

    def create_invoice(
        self, request: CreateInvoiceRequest, cancel: Optional[CancellationToken] = None
    ) -> Invoice:
        """Create a draft invoice for an active client.

        Args:
            request: Invoice header and optional initial work items
            cancel: Optional cancellation token

        Returns:
            The stored invoice, at version 1

        Raises:
            RequestValidationError: If the request is invalid
            ClientNotFoundError: If the client doesn't exist
            ClientInactiveError: If the client is inactive
            InvoiceNumberExistsError: If the number is already used
        """
        check_cancelled(cancel)
        self.logger.info("creating invoice", number=request.number, client_id=request.client_id)

        request.validate(cancel=cancel)

        client = self.client_storage.get_client(request.client_id, cancel=cancel)
        if client is None:
            raise client_not_found(request.client_id)
        if not client.active:
            raise with_subject(ClientInactiveError, client.name)

        self._ensure_unique_number(request.number, cancel=cancel)

        invoice = Invoice.create(
            id=self.id_generator.generate_invoice_id(cancel=cancel),
            number=request.number,
            date=request.date,
            due_date=request.due_date,
            client=client,
            tax_rate=request.tax_rate,
            description=request.description,
            cancel=cancel,
        )
        invoice.usdc_address_override = request.usdc_address
        invoice.bsv_address_override = request.bsv_address

        for requested in request.work_items:
            check_cancelled(cancel)
            item = WorkItem.create(
                id=self.id_generator.generate_work_item_id(cancel=cancel),
                date=requested.date,
                hours=requested.hours,
                rate=requested.rate,
                description=requested.description,
                cancel=cancel,
            )
            invoice.add_work_item_without_version_increment(item, cancel=cancel)

        self.invoice_storage.create_invoice(invoice, cancel=cancel)
        self.logger.info(
            "invoice created",
            invoice_id=invoice.id,
            number=invoice.number,
            total=str(invoice.total),
        )
        return invoice

    def get_invoice(self, invoice_id: str, cancel: Optional[CancellationToken] = None) -> Invoice:
        """Get invoice by ID.

        Raises:
            PreconditionError: If the ID is blank
            InvoiceNotFoundError: If no invoice has this ID
        """
        check_cancelled(cancel)
        if not invoice_id or not invoice_id.strip():
            raise PreconditionError("invoice ID cannot be empty")

        invoice = self.invoice_storage.get_invoice(invoice_id, cancel=cancel)
        if invoice is None:
            raise invoice_not_found(invoice_id)
        return invoice

    def get_invoice_by_number(
        self, number: str, cancel: Optional[CancellationToken] = None
    ) -> Invoice:
        """Get invoice by its number.

        Raises:
            PreconditionError: If the number is blank
            InvoiceNumberNotFoundError: If no invoice has this number
        """
        check_cancelled(cancel)
        if not number or not number.strip():
            raise PreconditionError("invoice number cannot be empty")

        for invoice in self.invoice_storage.list_invoices(cancel=cancel):
            if invoice.number == number:
                return invoice
        raise with_subject(InvoiceNumberNotFoundError, number)

    def list_invoices(
        self,
        invoice_filter: Optional[InvoiceFilter] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> list[Invoice]:
        """List invoices matching an optional filter.

        Raises:
            RequestValidationError: If the filter is invalid
        """
        check_cancelled(cancel)
        if invoice_filter is not None:
            invoice_filter.validate(cancel=cancel)

        invoices = self.invoice_storage.list_invoices(invoice_filter, cancel=cancel)
        self.logger.debug("listed invoices", count=len(invoices))
        return invoices

    def update_invoice(
        self, request: UpdateInvoiceRequest, cancel: Optional[CancellationToken] = None
    ) -> Invoice:
        """Update invoice header fields and, optionally, its status.

        All changes are stored as a single new version.

        Raises:
            RequestValidationError: If the request is invalid
            InvoiceNotFoundError: If the invoice doesn't exist
            InvoiceNumberExistsError: If the new number is already used
            InvalidStatusError: If the status change is not allowed
            InvoiceValidationError: If the updated invoice would be invalid
            VersionConflictError: If the invoice changed since it was read
        """
        check_cancelled(cancel)
        self.logger.info("updating invoice", invoice_id=request.id)

        request.validate(cancel=cancel)
        invoice = self.get_invoice(request.id, cancel=cancel)
        expected_version = invoice.version

        if request.number is not None and request.number != invoice.number:
            self._ensure_unique_number(request.number, cancel=cancel)

        with invoice.batch():
            invoice.update_details(
                number=request.number,
                date=request.date,
                due_date=request.due_date,
                description=request.description,
                usdc_address=request.usdc_address,
                bsv_address=request.bsv_address,
                cancel=cancel,
            )
            if request.status is not None and request.status != invoice.status:
                invoice.update_status(request.status, cancel=cancel)

        self._save(invoice, expected_version, cancel=cancel)
        self.logger.info("invoice updated", invoice_id=invoice.id, version=invoice.version)
        return invoice

    def delete_invoice(self, id_or_number: str, cancel: Optional[CancellationToken] = None) -> None:
        """Delete an invoice, looked up by ID first and then by number.

        Raises:
            InvoiceNotFoundError: If neither lookup finds the invoice
            CannotDeletePaidInvoiceError: If the invoice is paid
        """
        check_cancelled(cancel)
        self.logger.info("deleting invoice", invoice_id=id_or_number)

        invoice = self.invoice_storage.get_invoice(id_or_number, cancel=cancel)
        if invoice is None:
            try:
                invoice = self.get_invoice_by_number(id_or_number, cancel=cancel)
            except (NotFoundError, PreconditionError):
                raise invoice_not_found(id_or_number) from None

        if invoice.status == InvoiceStatus.PAID:
            raise with_subject(CannotDeletePaidInvoiceError, invoice.number)

        self.invoice_storage.delete_invoice(invoice.id, cancel=cancel)
        self.logger.info("invoice deleted", invoice_id=invoice.id, number=invoice.number)

    def add_work_item_to_invoice(
        self, invoice_id: str, item: WorkItem, cancel: Optional[CancellationToken] = None
    ) -> Invoice:
        """Add a work item to a draft invoice.

        A blank item ID is replaced with a generated one, and a missing
        created_at is set to now.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist
            CannotAddWorkItemToNonDraftError: If the invoice is not a draft
            WorkItemValidationError: If the item is invalid
        """
        check_cancelled(cancel)
        self.logger.info("adding work item to invoice", invoice_id=invoice_id)

        invoice = self.get_invoice(invoice_id, cancel=cancel)
        expected_version = invoice.version
        self._prepare_item(item, cancel=cancel)
        invoice.add_work_item(item, cancel=cancel)

        self._save(invoice, expected_version, cancel=cancel)
        self.logger.info(
            "work item added", invoice_id=invoice.id, work_item_id=item.id, total=str(invoice.total)
        )
        return invoice

    def add_line_item_to_invoice(
        self, invoice_id: str, item: LineItem, cancel: Optional[CancellationToken] = None
    ) -> Invoice:
        """Add a line item to a draft invoice.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist
            CannotAddWorkItemToNonDraftError: If the invoice is not a draft
            LineItemValidationError: If the item is invalid
        """
        check_cancelled(cancel)
        self.logger.info("adding line item to invoice", invoice_id=invoice_id, type=str(item.type))

        invoice = self.get_invoice(invoice_id, cancel=cancel)
        expected_version = invoice.version
        self._prepare_item(item, cancel=cancel)
        invoice.add_line_item(item, cancel=cancel)

        self._save(invoice, expected_version, cancel=cancel)
        self.logger.info(
            "line item added", invoice_id=invoice.id, line_item_id=item.id, type=str(item.type)
        )
        return invoice

    def remove_work_item_from_invoice(
        self, invoice_id: str, work_item_id: str, cancel: Optional[CancellationToken] = None
    ) -> Invoice:
        """Remove a work item from a draft invoice.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist
            CannotRemoveWorkItemFromNonDraftError: If the invoice is not a draft
            WorkItemNotFoundError: If the invoice has no such work item
        """
        check_cancelled(cancel)
        self.logger.info(
            "removing work item from invoice", invoice_id=invoice_id, work_item_id=work_item_id
        )

        invoice = self.get_invoice(invoice_id, cancel=cancel)
        expected_version = invoice.version
        invoice.remove_work_item(work_item_id, cancel=cancel)

        self._save(invoice, expected_version, cancel=cancel)
        self.logger.info("work item removed", invoice_id=invoice.id, work_item_id=work_item_id)
        return invoice

    def send_invoice(self, invoice_id: str, cancel: Optional[CancellationToken] = None) -> Invoice:
        """Move a draft invoice with at least one item to sent.

        Raises:
            CannotSendNonDraftInvoiceError: If the invoice is not a draft
            CannotSendEmptyInvoiceError: If the invoice has no items
        """
        check_cancelled(cancel)
        self.logger.info("sending invoice", invoice_id=invoice_id)

        invoice = self.get_invoice(invoice_id, cancel=cancel)
        if invoice.status != InvoiceStatus.DRAFT:
            raise with_status(CannotSendNonDraftInvoiceError, invoice.status)
        if not invoice.has_items():
            raise CannotSendEmptyInvoiceError()

        return self._transition(invoice, InvoiceStatus.SENT, cancel=cancel)

    def mark_invoice_paid(
        self, invoice_id: str, cancel: Optional[CancellationToken] = None
    ) -> Invoice:
        """Mark a sent or overdue invoice as paid.

        Raises:
            CannotMarkNonSentAsPaidError: For any other status
        """
        check_cancelled(cancel)
        self.logger.info("marking invoice as paid", invoice_id=invoice_id)

        invoice = self.get_invoice(invoice_id, cancel=cancel)
        if invoice.status not in (InvoiceStatus.SENT, InvoiceStatus.OVERDUE):
            raise with_status(CannotMarkNonSentAsPaidError, invoice.status)

        return self._transition(invoice, InvoiceStatus.PAID, cancel=cancel)

    def void_invoice(self, invoice_id: str, cancel: Optional[CancellationToken] = None) -> Invoice:
        """Void an invoice that has not been paid.

        Raises:
            CannotVoidPaidInvoiceError: If the invoice is paid
            InvalidStatusError: If the invoice is already voided
        """
        check_cancelled(cancel)
        self.logger.info("voiding invoice", invoice_id=invoice_id)

        invoice = self.get_invoice(invoice_id, cancel=cancel)
        return self._transition(invoice, InvoiceStatus.VOIDED, cancel=cancel)

    def mark_overdue_invoices(
        self, today: Optional[date] = None, cancel: Optional[CancellationToken] = None
    ) -> list[Invoice]:
        """Move every sent invoice past its due date to overdue.

        Args:
            today: Reference date (defaults to today)
            cancel: Optional cancellation token

        Returns:
            The invoices that changed status
        """
        check_cancelled(cancel)
        today = today or date.today()
        candidates = self.invoice_storage.list_invoices(
            InvoiceFilter(status=InvoiceStatus.SENT), cancel=cancel
        )

        overdue = []
        for invoice in candidates:
            check_cancelled(cancel)
            if invoice.is_overdue(today):
                overdue.append(self._transition(invoice, InvoiceStatus.OVERDUE, cancel=cancel))

        self.logger.info("marked overdue invoices", count=len(overdue), as_of=today.isoformat())
        return overdue

    def get_invoice_statistics(
        self, cancel: Optional[CancellationToken] = None
    ) -> InvoiceStatistics:
        """Count invoices per status and sum total, paid and outstanding amounts."""
        check_cancelled(cancel)
        invoices = self.invoice_storage.list_invoices(cancel=cancel)
        return _statistics(invoices)

    def apply_batch(
        self,
        invoice_id: str,
        mutations: Iterable[Mutation],
        cancel: Optional[CancellationToken] = None,
    ) -> Invoice:
        """Apply several mutations to one invoice and store them as one version.

        Each mutation is called with the loaded invoice. If any of them
        raises, nothing is stored.

        Raises:
            VersionConflictError: If the invoice changed since it was read
        """
        check_cancelled(cancel)
        invoice = self.get_invoice(invoice_id, cancel=cancel)
        expected_version = invoice.version

        applied = 0
        with invoice.batch():
            for mutation in mutations:
                check_cancelled(cancel)
                mutation(invoice)
                applied += 1

        if invoice.version != expected_version:
            self._save(invoice, expected_version, cancel=cancel)
        self.logger.info(
            "batch applied", invoice_id=invoice.id, mutations=applied, version=invoice.version
        )
        return invoice

    def _transition(
        self, invoice: Invoice, status: InvoiceStatus, cancel: Optional[CancellationToken] = None
    ) -> Invoice:
        expected_version = invoice.version
        previous = invoice.status
        invoice.update_status(status, cancel=cancel)
        self._save(invoice, expected_version, cancel=cancel)
        self.logger.info(
            "invoice status changed",
            invoice_id=invoice.id,
            number=invoice.number,
            from_status=str(previous),
            to_status=str(status),
            total=str(invoice.total),
        )
        return invoice

    def _prepare_item(self, item, cancel: Optional[CancellationToken] = None) -> None:
        if not item.id:
            item.id = self.id_generator.generate_work_item_id(cancel=cancel)
        if item.created_at is None:
            item.created_at = datetime.now(UTC)

    def _save(
        self, invoice: Invoice, expected_version: int, cancel: Optional[CancellationToken] = None
    ) -> None:
        self.invoice_storage.update_invoice(invoice, expected_version, cancel=cancel)

    def _ensure_unique_number(self, number: str, cancel: Optional[CancellationToken] = None) -> None:
        for invoice in self.invoice_storage.list_invoices(cancel=cancel):
            if invoice.number == number:
                raise with_subject(InvoiceNumberExistsError, number)


def _statistics(invoices: list[Invoice]) -> InvoiceStatistics:
    counts = {status: 0 for status in InvoiceStatus}
    total = paid = outstanding = Decimal(0)
    for invoice in invoices:
        counts[invoice.status] = counts.get(invoice.status, 0) + 1
        total += invoice.total
        if invoice.status == InvoiceStatus.PAID:
            paid += invoice.total
        elif invoice.status in (InvoiceStatus.SENT, InvoiceStatus.OVERDUE):
            outstanding += invoice.total

    return InvoiceStatistics(
        total_invoices=len(invoices),
        draft_count=counts[InvoiceStatus.DRAFT],
        sent_count=counts[InvoiceStatus.SENT],
        paid_count=counts[InvoiceStatus.PAID],
        overdue_count=counts[InvoiceStatus.OVERDUE],
        voided_count=counts[InvoiceStatus.VOIDED],
        total_amount=round2(total),
        paid_amount=round2(paid),
        outstanding_amount=round2(outstanding),
    )
