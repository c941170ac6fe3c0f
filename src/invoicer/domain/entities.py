"""Domain model entities for invoicer.

Clients are immutable snapshots embedded into invoices at creation time.
Work items and line items are owned by an invoice and mutated only through
their own methods, which keep ``total`` consistent with the inputs.
"""

from dataclasses import dataclass
from datetime import date, datetime, UTC
from decimal import Decimal
from enum import StrEnum
from typing import Optional

from invoicer.domain.errors import (
    ClientValidationError,
    LineItemValidationError,
    ValidationError,
    WorkItemValidationError,
)
from invoicer.domain.validation import ValidationBuilder
from invoicer.utils.amount_parser import Number, lenient_context, round2, to_decimal
from invoicer.utils.cancellation import CancellationToken, check_cancelled

MAX_DESCRIPTION_LENGTH = 1000
MAX_FUTURE_HOURS = 24


class InvoiceStatus(StrEnum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    VOIDED = "voided"


class LineItemType(StrEnum):
    HOURLY = "hourly"
    FIXED = "fixed"
    QUANTITY = "quantity"


INVOICE_STATUSES = [status.value for status in InvoiceStatus]
LINE_ITEM_TYPES = [item_type.value for item_type in LineItemType]


def line_total(quantity: Decimal, price: Decimal) -> Decimal:
    """Return round2(quantity × price), tolerating NaN and infinite inputs."""
    with lenient_context():
        return round2(quantity * price)


def _now() -> datetime:
    return datetime.now(UTC)


def _clean_description(description: str, error_type: type[ValidationError]) -> str:
    description = description.strip()
    ValidationBuilder().required("description", description).max_length(
        "description", description, MAX_DESCRIPTION_LENGTH
    ).raise_if_errors(error_type)
    return description


@dataclass(frozen=True)
class Client:
    """Client snapshot referenced by invoices."""

    id: str
    name: str
    email: str
    phone: str = ""
    address: str = ""
    tax_id: str = ""
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        id: str,
        name: str,
        email: str,
        cancel: Optional[CancellationToken] = None,
        **details: str,
    ) -> "Client":
        """Create an active client and validate it.

        Args:
            id: Client ID
            name: Client name
            email: Contact email address
            cancel: Optional cancellation token
            **details: Optional phone, address and tax_id

        Returns:
            Validated client

        Raises:
            ClientValidationError: If any field is invalid
        """
        check_cancelled(cancel)
        now = _now()
        client = cls(id=id, name=name, email=email, created_at=now, updated_at=now, **details)
        client.validate(cancel=cancel)
        return client

    def validate(self, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        (
            ValidationBuilder()
            .required("id", self.id)
            .required("name", self.name)
            .max_length("name", self.name, 200)
            .required("email", self.email)
            .email("email", self.email)
            .length_range("phone", self.phone, 10, 20)
            .max_length("address", self.address, 500)
            .max_length("tax_id", self.tax_id, 50)
            .time_required("created_at", self.created_at)
            .time_required("updated_at", self.updated_at)
            .time_order("updated_at", self.created_at, self.updated_at, "created_at", "updated_at")
            .raise_if_errors(ClientValidationError)
        )


@dataclass
class WorkItem:
    """Hourly billable entry."""

    id: str
    date: date
    hours: Decimal
    rate: Decimal
    description: str
    total: Decimal
    created_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        id: str,
        date: date,
        hours: Number,
        rate: Number,
        description: str,
        cancel: Optional[CancellationToken] = None,
    ) -> "WorkItem":
        """Create a work item with a derived total and validate it.

        Raises:
            WorkItemValidationError: If any field is invalid
        """
        check_cancelled(cancel)
        hours, rate = to_decimal(hours), to_decimal(rate)
        item = cls(
            id=id,
            date=date,
            hours=hours,
            rate=rate,
            description=description,
            total=line_total(hours, rate),
            created_at=_now(),
        )
        item.validate(cancel=cancel)
        return item

    def validate(self, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        (
            ValidationBuilder()
            .required("id", self.id)
            .time_required("date", self.date)
            .date_not_future("date", self.date, MAX_FUTURE_HOURS)
            .number("hours", self.hours, 24, "24 hours per entry")
            .number("rate", self.rate, 10000, "$10,000 per hour")
            .required("description", self.description)
            .max_length("description", self.description, MAX_DESCRIPTION_LENGTH)
            .calculation("total", self.total, line_total(self.hours, self.rate))
            .non_negative("total", self.total)
            .time_required("created_at", self.created_at)
            .raise_if_errors(WorkItemValidationError)
        )

    def update_hours(self, hours: Number, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        hours = to_decimal(hours)
        ValidationBuilder().number("hours", hours, 24, "24 hours per entry").raise_if_errors(
            WorkItemValidationError
        )
        self.hours = hours
        self.total = line_total(self.hours, self.rate)

    def update_rate(self, rate: Number, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        rate = to_decimal(rate)
        ValidationBuilder().number("rate", rate, 10000, "$10,000 per hour").raise_if_errors(
            WorkItemValidationError
        )
        self.rate = rate
        self.total = line_total(self.hours, self.rate)

    def update_description(self, description: str, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        self.description = _clean_description(description, WorkItemValidationError)

    def formatted_total(self) -> str:
        return f"${self.total:.2f}"

    def formatted_rate(self) -> str:
        return f"${self.rate:.2f}"

    def formatted_hours(self) -> str:
        return f"{self.hours:.2f}"


@dataclass
class LineItem:
    """Non-hourly billable entry: a fixed fee, billed hours or a unit count.

    Only the fields relevant to ``type`` are set. Hourly items carry the hours
    in ``quantity`` and the rate in ``unit_price``.
    """

    id: str
    type: LineItemType
    date: date
    description: str
    total: Decimal
    created_at: Optional[datetime] = None
    end_date: Optional[date] = None
    amount: Optional[Decimal] = None
    quantity: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None

    @classmethod
    def fixed(
        cls,
        id: str,
        date: date,
        amount: Number,
        description: str,
        end_date: Optional[date] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> "LineItem":
        """Create a fixed-amount line item, such as a retainer."""
        check_cancelled(cancel)
        amount = to_decimal(amount)
        return cls._create(
            cancel,
            id=id,
            type=LineItemType.FIXED,
            date=date,
            end_date=end_date,
            description=description,
            amount=amount,
            total=round2(amount),
        )

    @classmethod
    def hourly(
        cls,
        id: str,
        date: date,
        hours: Number,
        rate: Number,
        description: str,
        end_date: Optional[date] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> "LineItem":
        """Create a line item billing hours at a rate."""
        check_cancelled(cancel)
        hours, rate = to_decimal(hours), to_decimal(rate)
        return cls._create(
            cancel,
            id=id,
            type=LineItemType.HOURLY,
            date=date,
            end_date=end_date,
            description=description,
            quantity=hours,
            unit_price=rate,
            total=line_total(hours, rate),
        )

    @classmethod
    def quantity_based(
        cls,
        id: str,
        date: date,
        quantity: Number,
        unit_price: Number,
        description: str,
        end_date: Optional[date] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> "LineItem":
        """Create a line item billing a count of units at a unit price."""
        check_cancelled(cancel)
        quantity, unit_price = to_decimal(quantity), to_decimal(unit_price)
        return cls._create(
            cancel,
            id=id,
            type=LineItemType.QUANTITY,
            date=date,
            end_date=end_date,
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            total=line_total(quantity, unit_price),
        )

    @classmethod
    def from_work_item(cls, item: WorkItem) -> "LineItem":
        """Render a work item as an hourly line item with the same ID."""
        return cls(
            id=item.id,
            type=LineItemType.HOURLY,
            date=item.date,
            description=item.description,
            quantity=item.hours,
            unit_price=item.rate,
            total=item.total,
            created_at=item.created_at,
        )

    @classmethod
    def _create(cls, cancel: Optional[CancellationToken], **fields) -> "LineItem":
        item = cls(created_at=_now(), **fields)
        item.validate(cancel=cancel)
        return item

    def validate(self, cancel: Optional[CancellationToken] = None) -> None:
        """Validate common fields plus the fields required by the item type.

        Raises:
            LineItemValidationError: Listing every failed field
        """
        check_cancelled(cancel)
        builder = (
            ValidationBuilder()
            .required("id", self.id)
            .time_required("date", self.date)
            .date_not_future("date", self.date, MAX_FUTURE_HOURS)
            .required("description", self.description)
            .max_length("description", self.description, MAX_DESCRIPTION_LENGTH)
            .non_negative("total", self.total)
            .time_required("created_at", self.created_at)
            .time_order("end_date", self.date, self.end_date, "date", "end_date")
        )

        if self.type == LineItemType.HOURLY:
            self._validate_product(builder, (24, "24 hours per entry"), (10000, "$10,000 per hour"))
            builder.add_if(
                self.amount is not None, "amount", "should not be set for hourly line items", self.amount
            )
        elif self.type == LineItemType.QUANTITY:
            self._validate_product(builder, (10000, "10,000 units"), (100000, "$100,000 per unit"))
            builder.add_if(
                self.amount is not None, "amount", "should not be set for quantity line items", self.amount
            )
        elif self.type == LineItemType.FIXED:
            if self.amount is None:
                builder.custom("amount", "is required for fixed line items")
            else:
                builder.number("amount", self.amount, 1000000, "$1,000,000").calculation(
                    "total", self.total, round2(self.amount)
                )
            builder.add_if(
                self.quantity is not None or self.unit_price is not None,
                "quantity/unit_price",
                "should not be set for fixed line items",
            )
        else:
            builder.valid_option("type", str(self.type), LINE_ITEM_TYPES)

        builder.raise_if_errors(LineItemValidationError)

    def _validate_product(
        self,
        builder: ValidationBuilder,
        quantity_limit: tuple[int, str],
        price_limit: tuple[int, str],
    ) -> None:
        if self.quantity is None:
            builder.custom("quantity", f"is required for {self.type} line items")
        else:
            builder.number("quantity", self.quantity, *quantity_limit)
        if self.unit_price is None:
            builder.custom("unit_price", f"is required for {self.type} line items")
        else:
            builder.number("unit_price", self.unit_price, *price_limit)
        if self.quantity is not None and self.unit_price is not None:
            builder.calculation("total", self.total, line_total(self.quantity, self.unit_price))

    def recalculate_total(self, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        if self.type == LineItemType.FIXED:
            if self.amount is not None:
                self.total = round2(self.amount)
        elif self.type in (LineItemType.HOURLY, LineItemType.QUANTITY):
            if self.quantity is not None and self.unit_price is not None:
                self.total = line_total(self.quantity, self.unit_price)
        else:
            raise LineItemValidationError(f"unsupported line item type: {self.type}")

    def update_description(self, description: str, cancel: Optional[CancellationToken] = None) -> None:
        check_cancelled(cancel)
        self.description = _clean_description(description, LineItemValidationError)

    def formatted_total(self) -> str:
        return f"${self.total:.2f}"

    def details(self) -> str:
        """Human-readable summary of how the total was derived."""
        if self.type == LineItemType.FIXED:
            return "Fixed amount"
        if self.quantity is None or self.unit_price is None:
            return ""
        if self.type == LineItemType.HOURLY:
            return f"{self.quantity:.2f} hours @ ${self.unit_price:.2f}/hr"
        return f"{self.quantity:.2f} × ${self.unit_price:.2f}"
