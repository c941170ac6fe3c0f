"""Invoice aggregate.

The invoice owns its work items and line items and is the only place their
collections change. Every mutation checks the invoice status first, so a
failed call leaves the invoice exactly as it was.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date, datetime, UTC
from decimal import Decimal
import re
from typing import Iterator, Optional

from invoicer.domain.entities import (
    INVOICE_STATUSES,
    Client,
    InvoiceStatus,
    LineItem,
    WorkItem,
)
from invoicer.domain.errors import (
    CannotAddWorkItemToNonDraftError,
    CannotRemoveWorkItemFromNonDraftError,
    CannotVoidPaidInvoiceError,
    ClientValidationError,
    InvalidStatusError,
    InvoiceValidationError,
    LineItemNotFoundError,
    StateError,
    WorkItemNotFoundError,
    with_status,
    with_subject,
)
from invoicer.domain.validation import ValidationBuilder
from invoicer.utils.amount_parser import Number, lenient_context, round2, to_decimal
from invoicer.utils.cancellation import CancellationToken, check_cancelled

INVOICE_NUMBER_PATTERN = re.compile(r"[A-Z0-9-]+")
INVOICE_NUMBER_MESSAGE = "must contain only uppercase letters, numbers, and hyphens"

# Allowed status edges. Paid and voided are terminal.
TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.SENT, InvoiceStatus.VOIDED}),
    InvoiceStatus.SENT: frozenset(
        {InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.VOIDED}
    ),
    InvoiceStatus.OVERDUE: frozenset({InvoiceStatus.PAID, InvoiceStatus.VOIDED}),
    InvoiceStatus.PAID: frozenset(),
    InvoiceStatus.VOIDED: frozenset(),
}


@dataclass
class Invoice:
    """Invoice aggregate root."""

    id: str
    number: str
    date: date
    due_date: date
    client: Client
    status: InvoiceStatus = InvoiceStatus.DRAFT
    description: str = ""
    work_items: list[WorkItem] = field(default_factory=list)
    line_items: list[LineItem] = field(default_factory=list)
    subtotal: Decimal = Decimal("0.00")
    tax_rate: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    usdc_address_override: Optional[str] = None
    bsv_address_override: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1
    _batch_depth: int = field(default=0, init=False, repr=False, compare=False)
    _batch_changed: bool = field(default=False, init=False, repr=False, compare=False)

    @classmethod
    def create(
        cls,
        id: str,
        number: str,
        date: date,
        due_date: date,
        client: Client,
        tax_rate: Number = 0,
        description: str = "",
        cancel: Optional[CancellationToken] = None,
    ) -> "Invoice":
        """Create a draft invoice with no items.

        Args:
            id: Invoice ID
            number: Human-readable invoice number (e.g., "INV-2024-001")
            date: Invoice date
            due_date: Payment due date, on or after the invoice date
            client: Client snapshot to bill
            tax_rate: Tax rate as a fraction between 0 and 1
            description: Optional description
            cancel: Optional cancellation token

        Returns:
            Validated draft invoice at version 1

        Raises:
            InvoiceValidationError: If any field is invalid
        """
        check_cancelled(cancel)
        now = datetime.now(UTC)
        invoice = cls(
            id=id,
            number=number,
            date=date,
            due_date=due_date,
            client=client,
            description=description,
            tax_rate=to_decimal(tax_rate),
            created_at=now,
            updated_at=now,
        )
        invoice.recalculate_totals()
        invoice.validate(cancel=cancel)
        return invoice

    # --- Items ---

    def add_work_item(self, item: WorkItem, cancel: Optional[CancellationToken] = None) -> None:
        """Append a work item and bump the version.

        Raises:
            CannotAddWorkItemToNonDraftError: If the invoice is not a draft
            WorkItemValidationError: If the item is invalid
        """
        self.add_work_item_without_version_increment(item, cancel=cancel)
        self._mark_changed()

    def add_work_item_without_version_increment(
        self, item: WorkItem, cancel: Optional[CancellationToken] = None
    ) -> None:
        """Append a work item without touching version or updated_at."""
        check_cancelled(cancel)
        self._require_draft(CannotAddWorkItemToNonDraftError)
        item.validate(cancel=cancel)
        self.work_items.append(item)
        self.recalculate_totals()

    def add_line_item(self, item: LineItem, cancel: Optional[CancellationToken] = None) -> None:
        """Append a line item and bump the version.

        Raises:
            CannotAddWorkItemToNonDraftError: If the invoice is not a draft
            LineItemValidationError: If the item is invalid
        """
        self.add_line_item_without_version_increment(item, cancel=cancel)
        self._mark_changed()

    def add_line_item_without_version_increment(
        self, item: LineItem, cancel: Optional[CancellationToken] = None
    ) -> None:
        check_cancelled(cancel)
        self._require_draft(CannotAddWorkItemToNonDraftError)
        item.validate(cancel=cancel)
        self.line_items.append(item)
        self.recalculate_totals()

    def remove_work_item(self, item_id: str, cancel: Optional[CancellationToken] = None) -> None:
        """Remove a work item by ID.

        Raises:
            CannotRemoveWorkItemFromNonDraftError: If the invoice is not a draft
            WorkItemNotFoundError: If no work item has this ID
        """
        check_cancelled(cancel)
        self._require_draft(CannotRemoveWorkItemFromNonDraftError)
        index = _index_of(self.work_items, item_id)
        if index is None:
            raise with_subject(WorkItemNotFoundError, item_id)
        del self.work_items[index]
        self.recalculate_totals()
        self._mark_changed()

    def remove_line_item(self, item_id: str, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        self._require_draft(CannotRemoveWorkItemFromNonDraftError)
        index = _index_of(self.line_items, item_id)
        if index is None:
            raise with_subject(LineItemNotFoundError, item_id)
        del self.line_items[index]
        self.recalculate_totals()
        self._mark_changed()

    def all_items(self) -> list[LineItem]:
        """Work items rendered as hourly line items, followed by the line items."""
        return [LineItem.from_work_item(item) for item in self.work_items] + list(self.line_items)

    def has_items(self) -> bool:
        return bool(self.work_items or self.line_items)

    # --- Header ---

    def update_details(
        self,
        number: Optional[str] = None,
        date: Optional[date] = None,
        due_date: Optional[date] = None,
        description: Optional[str] = None,
        usdc_address: Optional[str] = None,
        bsv_address: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        """Change header fields. Arguments left as None keep their value.

        The changed invoice is validated before anything is applied.

        Raises:
            InvoiceValidationError: If the result would be invalid
        """
        check_cancelled(cancel)
        changes = {
            "number": number,
            "date": date,
            "due_date": due_date,
            "description": description,
            "usdc_address_override": usdc_address,
            "bsv_address_override": bsv_address,
        }
        changes = {
            name: value
            for name, value in changes.items()
            if value is not None and value != getattr(self, name)
        }
        if not changes:
            return

        replace(self, **changes).validate(cancel=cancel)
        for name, value in changes.items():
            setattr(self, name, value)
        self._mark_changed()

    # --- Status ---

    def update_status(self, new_status: str, cancel: Optional[CancellationToken] = None) -> None:
        """Move the invoice along one of the allowed status edges.

        Raises:
            CannotVoidPaidInvoiceError: For paid -> voided
            InvalidStatusError: For unknown statuses and any other disallowed edge
        """
        check_cancelled(cancel)
        try:
            target = InvoiceStatus(new_status)
        except ValueError:
            raise InvalidStatusError(
                f"invalid status '{new_status}', must be one of: {', '.join(INVOICE_STATUSES)}"
            ) from None

        if self.status == InvoiceStatus.PAID and target == InvoiceStatus.VOIDED:
            raise CannotVoidPaidInvoiceError()
        if target not in TRANSITIONS.get(self.status, frozenset()):
            raise InvalidStatusError(
                f"invalid status transition from {self.status} to {target}"
            )

        self.status = target
        self._mark_changed()

    def is_overdue(self, today: Optional[date] = None) -> bool:
        """Return True if the invoice is awaiting payment past its due date."""
        if self.status not in (InvoiceStatus.SENT, InvoiceStatus.OVERDUE):
            return False
        return self.due_date < (today or date.today())

    def age_in_days(self, today: Optional[date] = None) -> int:
        return ((today or date.today()) - self.date).days

    def days_until_due(self, today: Optional[date] = None) -> int:
        return (self.due_date - (today or date.today())).days

    # --- Payment addresses ---

    def get_usdc_address(self, default: str) -> str:
        """Return the per-invoice USDC address if set, otherwise the default."""
        return self.usdc_address_override or default

    def get_bsv_address(self, default: str) -> str:
        return self.bsv_address_override or default

    def has_usdc_address_override(self) -> bool:
        return bool(self.usdc_address_override)

    def has_bsv_address_override(self) -> bool:
        return bool(self.bsv_address_override)

    # --- Totals and validation ---

    def recalculate_totals(self, cancel: Optional[CancellationToken] = None) -> None:
        """Refresh cached subtotal, tax and total from the stored item totals."""
        check_cancelled(cancel)
        with lenient_context():
            subtotal = sum((item.total for item in self.work_items), Decimal(0))
            subtotal += sum((item.total for item in self.line_items), Decimal(0))
            self.subtotal = round2(subtotal)
            self.tax_amount = round2(self.subtotal * self.tax_rate)
            self.total = round2(self.subtotal + self.tax_amount)

    def validate(self, cancel: Optional[CancellationToken] = None) -> None:
        """Validate header fields, the client and every item.

        Raises:
            InvoiceValidationError: Listing every failed field
        """
        check_cancelled(cancel)
        builder = (
            ValidationBuilder()
            .required("id", self.id)
            .required("number", self.number)
            .pattern("number", self.number, INVOICE_NUMBER_PATTERN, INVOICE_NUMBER_MESSAGE)
            .time_required("date", self.date)
            .time_required("due_date", self.due_date)
            .time_order("due_date", self.date, self.due_date, "invoice date", "due date")
            .required("status", self.status)
            .valid_option("status", self.status, INVOICE_STATUSES)
        )

        try:
            self.client.validate(cancel=cancel)
        except ClientValidationError as e:
            builder.custom("client", str(e), self.client)

        (
            builder.nested("work_items", self.work_items, cancel=cancel)
            .nested("line_items", self.line_items, cancel=cancel)
            .value_range("tax_rate", self.tax_rate, 0, 1)
            .non_negative("subtotal", self.subtotal)
            .non_negative("tax_amount", self.tax_amount)
            .non_negative("total", self.total)
            .calculation("total", self.total, self._expected_total())
            .time_required("created_at", self.created_at)
            .time_required("updated_at", self.updated_at)
            .time_order("updated_at", self.created_at, self.updated_at, "created_at", "updated_at")
            .add_if(self.version < 1, "version", "must be at least 1", self.version)
            .raise_if_errors(InvoiceValidationError)
        )

    def apply_totals(
        self, subtotal: Decimal, tax_rate: Decimal, tax_amount: Decimal, total: Decimal
    ) -> None:
        """Store totals computed outside the aggregate and bump the version."""
        self.subtotal = subtotal
        self.tax_rate = tax_rate
        self.tax_amount = tax_amount
        self.total = total
        self._mark_changed()

    def _expected_total(self) -> Decimal:
        with lenient_context():
            return self.subtotal + self.tax_amount

    # --- Versioning ---

    @contextmanager
    def batch(self) -> Iterator["Invoice"]:
        """Apply several mutations as one version bump.

        Mutations inside the block skip their own bump. When the outermost
        block exits and anything changed, the version is bumped once, also
        when the block raised after some mutations were applied.
        """
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._batch_changed:
                self._batch_changed = False
                self._bump_version()

    def _mark_changed(self) -> None:
        if self._batch_depth:
            self._batch_changed = True
        else:
            self._bump_version()

    def _bump_version(self) -> None:
        self.version += 1
        self.updated_at = datetime.now(UTC)

    def _require_draft(self, error_type: type[StateError]) -> None:
        if self.status != InvoiceStatus.DRAFT:
            raise with_status(error_type, self.status)


def _index_of(items: list, item_id: str) -> Optional[int]:
    for index, item in enumerate(items):
        if item.id == item_id:
            return index
    return None
