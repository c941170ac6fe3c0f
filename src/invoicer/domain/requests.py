"""Request and filter value objects consumed by the invoice service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from invoicer.domain.entities import INVOICE_STATUSES, WorkItem
from invoicer.domain.errors import RequestValidationError
from invoicer.domain.invoice import INVOICE_NUMBER_MESSAGE, INVOICE_NUMBER_PATTERN
from invoicer.domain.validation import ValidationBuilder
from invoicer.utils.cancellation import CancellationToken, check_cancelled


@dataclass
class CreateInvoiceRequest:
    """Input for creating a draft invoice."""

    number: str
    client_id: str
    date: date
    due_date: date
    description: str = ""
    tax_rate: Decimal = Decimal("0")
    work_items: list[WorkItem] = field(default_factory=list)
    usdc_address: Optional[str] = None
    bsv_address: Optional[str] = None

    def validate(self, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        (
            ValidationBuilder()
            .required("number", self.number)
            .pattern("number", self.number, INVOICE_NUMBER_PATTERN, INVOICE_NUMBER_MESSAGE)
            .required("client_id", self.client_id)
            .time_required("date", self.date)
            .time_required("due_date", self.due_date)
            .time_order("due_date", self.date, self.due_date, "invoice date", "due date")
            .value_range("tax_rate", self.tax_rate, 0, 1)
            .nested("work_items", self.work_items, cancel=cancel)
            .raise_if_errors_with_message(
                "create invoice request validation failed", RequestValidationError
            )
        )


@dataclass
class UpdateInvoiceRequest:
    """Partial update of an invoice header. Fields left as None are unchanged."""

    id: str
    number: Optional[str] = None
    date: Optional[date] = None
    due_date: Optional[date] = None
    status: Optional[str] = None
    description: Optional[str] = None
    usdc_address: Optional[str] = None
    bsv_address: Optional[str] = None

    def validate(self, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        builder = ValidationBuilder().required("id", self.id)
        if self.number is not None:
            builder.add_if(not self.number.strip(), "number", "cannot be empty", self.number)
            builder.pattern("number", self.number, INVOICE_NUMBER_PATTERN, INVOICE_NUMBER_MESSAGE)
        if self.status is not None:
            builder.add_if(
                self.status not in INVOICE_STATUSES,
                "status",
                f"must be one of: {', '.join(INVOICE_STATUSES)}",
                self.status,
            )
        builder.time_order(
            "due_date", self.date, self.due_date, "invoice date", "due date"
        ).raise_if_errors_with_message(
            "update invoice request validation failed", RequestValidationError
        )


@dataclass
class InvoiceFilter:
    """Criteria for listing invoices. Unset criteria match everything."""

    status: Optional[str] = None
    client_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    due_date_from: Optional[date] = None
    due_date_to: Optional[date] = None
    amount_min: Optional[Decimal] = None
    amount_max: Optional[Decimal] = None
    limit: int = 0
    offset: int = 0

    def validate(self, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        builder = (
            ValidationBuilder()
            .valid_option("status", self.status, INVOICE_STATUSES)
            .date_range("date_range", self.date_from, self.date_to, "date_from", "date_to")
            .date_range(
                "due_date_range",
                self.due_date_from,
                self.due_date_to,
                "due_date_from",
                "due_date_to",
            )
            .amount_range("amount_range", self.amount_min, self.amount_max)
            .add_if(self.limit < 0, "limit", "must be non-negative", self.limit)
            .add_if(self.offset < 0, "offset", "must be non-negative", self.offset)
        )
        if self.amount_min is not None:
            builder.non_negative("amount_min", self.amount_min)
        if self.amount_max is not None:
            builder.non_negative("amount_max", self.amount_max)
        builder.raise_if_errors_with_message("filter validation failed", RequestValidationError)

    def matches(self, invoice) -> bool:
        """Return True if the invoice satisfies every set criterion."""
        if self.status and invoice.status != self.status:
            return False
        if self.client_id and invoice.client.id != self.client_id:
            return False
        if self.date_from is not None and invoice.date < self.date_from:
            return False
        if self.date_to is not None and invoice.date > self.date_to:
            return False
        if self.due_date_from is not None and invoice.due_date < self.due_date_from:
            return False
        if self.due_date_to is not None and invoice.due_date > self.due_date_to:
            return False
        if self.amount_min is not None and invoice.total < self.amount_min:
            return False
        if self.amount_max is not None and invoice.total > self.amount_max:
            return False
        return True
