"""Invoice calculation engine.

Computes subtotal, tax and total for an invoice under a rounding policy.
Work item totals are recomputed from hours and rate rather than read from
the stored field. Line items contribute their stored total. Only work items
count toward hours.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, UTC
from decimal import Decimal
import time
from types import MappingProxyType
from typing import Iterable, Optional

import structlog

from invoicer.domain.entities import LineItemType
from invoicer.domain.errors import InvalidCalculationOptionsError, PreconditionError
from invoicer.domain.invoice import Invoice
from invoicer.domain.validation import ValidationBuilder
from invoicer.utils.amount_parser import (
    ROUNDING_MODES,
    Number,
    lenient_context,
    quantize_amount,
    round2,
    to_decimal,
)
from invoicer.utils.cancellation import CancellationToken, check_cancelled

DEFAULT_CURRENCY = "USD"
DEFAULT_TAX_TYPE = "VAT"
MAX_DECIMAL_PLACES = 10

CURRENCY_SYMBOLS = MappingProxyType(
    {
        "USD": "$",
        "EUR": "€",
        "GBP": "£",
        "CAD": "C$",
        "AUD": "A$",
        "JPY": "¥",
        "CHF": "CHF",
        "SEK": "kr",
        "NOK": "kr",
        "DKK": "kr",
    }
)

ZERO = Decimal("0.00")


def currency_symbol(currency: str) -> str:
    """Return the display symbol for a currency code, or the code itself."""
    return CURRENCY_SYMBOLS.get(currency, currency)


@dataclass(frozen=True)
class CalculationOptions:
    """How totals are computed and rounded."""

    tax_rate: Decimal = Decimal("0")
    currency: str = DEFAULT_CURRENCY
    decimal_places: int = 2
    rounding_mode: str = "round"
    include_breakdown: bool = False
    tax_type: str = DEFAULT_TAX_TYPE


def round_amount(amount: Decimal, options: Optional[CalculationOptions]) -> Decimal:
    """Round under the options' policy.

    Missing options or negative decimal places mean two places, half away
    from zero. Unknown rounding modes also round half away from zero.
    """
    if options is None or options.decimal_places < 0:
        return round2(amount)
    return quantize_amount(amount, options.decimal_places, options.rounding_mode)


@dataclass(frozen=True)
class ItemCalculation:
    """How one work item or line item contributed to the subtotal."""

    id: str
    item_type: str
    date: date
    description: str
    quantity: Decimal
    unit_price: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class TaxCalculation:
    taxable_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    tax_type: str


@dataclass(frozen=True)
class CurrencyDetails:
    currency: str
    symbol: str
    decimal_places: int
    rounding_mode: str


@dataclass(frozen=True)
class CalculationBreakdown:
    item_totals: list[ItemCalculation]
    tax_calculation: TaxCalculation
    rounding_adjustment: Decimal
    currency_details: CurrencyDetails


@dataclass(frozen=True)
class CalculationResult:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    tax_rate: Decimal
    work_item_count: int
    total_hours: Decimal
    average_hourly_rate: Decimal
    calculated_at: datetime
    breakdown: Optional[CalculationBreakdown] = None


@dataclass(frozen=True)
class CalculationSummary:
    """Aggregated totals across several invoices."""

    invoice_count: int = 0
    total_subtotal: Decimal = ZERO
    total_tax: Decimal = ZERO
    total_amount: Decimal = ZERO
    total_hours: Decimal = ZERO
    average_rate: Decimal = ZERO
    average_invoice_amount: Decimal = ZERO
    calculated_at: Optional[datetime] = field(default=None, compare=False)


class InvoiceCalculator:
    """Service for computing invoice totals."""

    def __init__(self, logger=None, default_currency: str = DEFAULT_CURRENCY):
        """Initialize calculator.

        Args:
            logger: Optional structlog logger
            default_currency: Currency used by recalculate_invoice
        """
        self.logger = logger or structlog.get_logger(__name__)
        self.default_currency = default_currency

    def calculate_invoice_totals(
        self,
        invoice: Invoice,
        options: Optional[CalculationOptions] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> CalculationResult:
        """Calculate subtotal, tax and total for an invoice.

        Args:
            invoice: Invoice to calculate
            options: Rounding and tax options (defaults: no tax, USD, two places)
            cancel: Optional cancellation token

        Returns:
            Calculation result, with a breakdown if requested

        Raises:
            PreconditionError: If invoice is None or an item has negative inputs
            OperationCancelled: If the token fires between items
        """
        check_cancelled(cancel)
        if invoice is None:
            raise PreconditionError("invoice cannot be None")
        if options is None:
            options = CalculationOptions()

        start = time.perf_counter()
        self.logger.debug(
            "calculating invoice totals",
            invoice_id=invoice.id,
            work_items=len(invoice.work_items),
            line_items=len(invoice.line_items),
        )

        items: list[ItemCalculation] = []
        subtotal = Decimal(0)
        total_hours = Decimal(0)
        with lenient_context():
            for item in invoice.work_items:
                check_cancelled(cancel)
                item_total = self.calculate_work_item_total(item.hours, item.rate)
                subtotal += item_total
                total_hours += item.hours
                items.append(
                    ItemCalculation(
                        id=item.id,
                        item_type="work_item",
                        date=item.date,
                        description=item.description,
                        quantity=item.hours,
                        unit_price=item.rate,
                        subtotal=item_total,
                    )
                )
            for line in invoice.line_items:
                check_cancelled(cancel)
                subtotal += line.total
                items.append(_line_item_calculation(line))

            tax_rate = to_decimal(options.tax_rate)
            tax_amount = round_amount(subtotal * tax_rate, options) if tax_rate > 0 else ZERO
            total = round_amount(subtotal + tax_amount, options)
            subtotal = round_amount(subtotal, options)
            average_rate = (
                round_amount(subtotal / total_hours, options) if total_hours > 0 else ZERO
            )

            breakdown = None
            if options.include_breakdown:
                breakdown = CalculationBreakdown(
                    item_totals=items,
                    tax_calculation=TaxCalculation(
                        taxable_amount=subtotal,
                        tax_rate=tax_rate,
                        tax_amount=tax_amount,
                        tax_type=options.tax_type,
                    ),
                    rounding_adjustment=total - (subtotal + tax_amount),
                    currency_details=CurrencyDetails(
                        currency=options.currency,
                        symbol=currency_symbol(options.currency),
                        decimal_places=options.decimal_places,
                        rounding_mode=options.rounding_mode,
                    ),
                )

        result = CalculationResult(
            subtotal=subtotal,
            tax_amount=tax_amount,
            total=total,
            tax_rate=tax_rate,
            work_item_count=len(invoice.work_items) + len(invoice.line_items),
            total_hours=total_hours,
            average_hourly_rate=average_rate,
            calculated_at=datetime.now(UTC),
            breakdown=breakdown,
        )

        self.logger.info(
            "invoice totals calculated",
            invoice_id=invoice.id,
            subtotal=str(subtotal),
            tax=str(tax_amount),
            total=str(total),
            calc_time_ms=round((time.perf_counter() - start) * 1000, 3),
        )
        return result

    def calculate_work_item_total(
        self, hours: Number, rate: Number, cancel: Optional[CancellationToken] = None
    ) -> Decimal:
        """Return round2(hours × rate).

        Raises:
            PreconditionError: If hours or rate is negative
        """
        check_cancelled(cancel)
        hours, rate = to_decimal(hours), to_decimal(rate)
        with lenient_context():
            if hours < 0:
                raise PreconditionError(f"hours cannot be negative: {hours}")
            if rate < 0:
                raise PreconditionError(f"rate cannot be negative: {rate}")
            return round2(hours * rate)

    def validate_calculation(
        self,
        invoice: Invoice,
        options: Optional[CalculationOptions],
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        """Check options and inputs before calculating for normal use.

        Stricter than calculate_invoice_totals, which tolerates a tax rate
        above 1.

        Raises:
            PreconditionError: If invoice or options is None
            InvalidCalculationOptionsError: Listing every problem found
        """
        check_cancelled(cancel)
        if invoice is None:
            raise PreconditionError("invoice cannot be None")
        if options is None:
            raise PreconditionError("calculation options cannot be None")

        builder = (
            ValidationBuilder()
            .value_range("tax_rate", options.tax_rate, 0, 1)
            .add_if(
                not 0 <= options.decimal_places <= MAX_DECIMAL_PLACES,
                "decimal_places",
                f"must be between 0 and {MAX_DECIMAL_PLACES}",
                options.decimal_places,
            )
            .add_if(
                options.rounding_mode not in ROUNDING_MODES,
                "rounding_mode",
                f"must be one of: {', '.join(ROUNDING_MODES)}",
                options.rounding_mode,
            )
        )
        for index, item in enumerate(invoice.work_items):
            check_cancelled(cancel)
            builder.non_negative(f"work_items[{index}].hours", item.hours).non_negative(
                f"work_items[{index}].rate", item.rate
            )
        builder.raise_if_errors(InvalidCalculationOptionsError)

        self.logger.debug("calculation validation passed", invoice_id=invoice.id)

    def recalculate_invoice(
        self, invoice: Invoice, tax_rate: Number, cancel: Optional[CancellationToken] = None
    ) -> CalculationResult:
        """Recalculate an invoice at two decimals and store the totals on it.

        Bumps the invoice version and updated_at.
        """
        check_cancelled(cancel)
        if invoice is None:
            raise PreconditionError("invoice cannot be None")
        tax_rate = to_decimal(tax_rate)
        self.logger.debug("recalculating invoice", invoice_id=invoice.id, tax_rate=str(tax_rate))

        options = CalculationOptions(tax_rate=tax_rate, currency=self.default_currency)
        result = self.calculate_invoice_totals(invoice, options, cancel=cancel)
        invoice.apply_totals(result.subtotal, tax_rate, result.tax_amount, result.total)

        self.logger.info("invoice recalculated", invoice_id=invoice.id, total=str(invoice.total))
        return result

    def get_calculation_summary(
        self, invoices: Iterable[Invoice], cancel: Optional[CancellationToken] = None
    ) -> CalculationSummary:
        """Aggregate stored totals and work item hours across invoices."""
        check_cancelled(cancel)
        invoices = list(invoices)
        if not invoices:
            return CalculationSummary()

        self.logger.debug("calculating summary", invoice_count=len(invoices))
        total_subtotal = total_tax = total_amount = total_hours = Decimal(0)
        with lenient_context():
            for invoice in invoices:
                check_cancelled(cancel)
                total_subtotal += invoice.subtotal
                total_tax += invoice.tax_amount
                total_amount += invoice.total
                for item in invoice.work_items:
                    total_hours += item.hours

            summary = CalculationSummary(
                invoice_count=len(invoices),
                total_subtotal=round2(total_subtotal),
                total_tax=round2(total_tax),
                total_amount=round2(total_amount),
                total_hours=round2(total_hours),
                average_rate=round2(total_subtotal / total_hours) if total_hours > 0 else ZERO,
                average_invoice_amount=round2(total_amount / len(invoices)),
                calculated_at=datetime.now(UTC),
            )

        self.logger.info(
            "calculation summary completed",
            invoices=len(invoices),
            total=str(summary.total_amount),
        )
        return summary


def _line_item_calculation(line) -> ItemCalculation:
    if line.type == LineItemType.FIXED:
        quantity, unit_price = Decimal(1), line.amount
    else:
        quantity, unit_price = line.quantity, line.unit_price
    return ItemCalculation(
        id=line.id,
        item_type=str(line.type),
        date=line.date,
        description=line.description,
        quantity=quantity,
        unit_price=unit_price,
        subtotal=line.total,
    )
