"""Tests for the invoice calculator."""

import itertools

import pytest
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from invoicer.domain.calculator import (
    CalculationOptions,
    CalculationSummary,
    InvoiceCalculator,
    currency_symbol,
    round_amount,
)
from invoicer.domain.entities import WorkItem
from invoicer.domain.errors import InvalidCalculationOptionsError, PreconditionError
from invoicer.utils.cancellation import CancellationToken, OperationCancelled


class CancelAfterChecks(CancellationToken):
    """Token that fires once it has been checked a given number of times."""

    def __init__(self, allowed: int):
        super().__init__()
        self.allowed = allowed
        self.checks = 0

    def raise_if_cancelled(self) -> None:
        self.checks += 1
        if self.checks > self.allowed:
            self.cancel()
        super().raise_if_cancelled()


@pytest.fixture
def calculator():
    """Create a calculator with the default logger."""
    return InvoiceCalculator()


@pytest.fixture
def billed_invoice(draft_invoice):
    """Draft invoice with 18.5 hours at 125 (2312.50)."""
    draft_invoice.add_work_item(
        WorkItem.create(
            id="wi-1", date=date(2024, 1, 15), hours="18.5", rate="125", description="Build"
        )
    )
    return draft_invoice


class TestWorkItemTotal:
    """Tests for calculate_work_item_total."""

    def test_rounds_to_cents(self, calculator):
        """Test 1.5 × 33.33 = 50.00."""
        assert calculator.calculate_work_item_total(Decimal("1.5"), Decimal("33.33")) == Decimal("50.00")
        assert calculator.calculate_work_item_total(1.5, 33.33) == Decimal("50.00")

    def test_zero_is_allowed(self, calculator):
        """Test that zero inputs give a zero total."""
        assert calculator.calculate_work_item_total(0, 100) == Decimal("0.00")

    @pytest.mark.parametrize(
        "hours,rate",
        list(
            itertools.product(
                ["0.25", "1", "1.5", "2.333", "7.75", "24"],
                ["0.01", "0.015", "33.33", "99.99", "125", "10000"],
            )
        ),
    )
    def test_total_is_half_up_cents(self, calculator, hours, rate):
        """Test that every total is the product rounded half up to cents."""
        hours, rate = Decimal(hours), Decimal(rate)
        expected = (hours * rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

        total = calculator.calculate_work_item_total(hours, rate)
        assert total == expected
        assert total.as_tuple().exponent == -2
        assert abs(total - hours * rate) <= Decimal("0.005")

        item = WorkItem.create(
            id="wi-1", date=date(2024, 1, 15), hours=hours, rate=rate, description="Build"
        )
        assert item.total == total

    @pytest.mark.parametrize("hours,rate", [(-1, 100), (1, -100)])
    def test_negative_inputs(self, calculator, hours, rate):
        """Test that negative hours or rates are rejected."""
        with pytest.raises(PreconditionError, match="cannot be negative"):
            calculator.calculate_work_item_total(hours, rate)


class TestInvoiceTotals:
    """Tests for calculate_invoice_totals."""

    def test_single_work_item(self, calculator, draft_invoice, work_item):
        """Test totals of one work item without tax."""
        draft_invoice.add_work_item(work_item)
        result = calculator.calculate_invoice_totals(draft_invoice)

        assert result.subtotal == Decimal("50.00")
        assert result.tax_amount == Decimal("0.00")
        assert result.total == Decimal("50.00")
        assert result.work_item_count == 1
        assert result.total_hours == Decimal("1.5")
        assert result.average_hourly_rate == Decimal("33.33")
        assert result.breakdown is None

    def test_tax(self, calculator, billed_invoice):
        """Test 2312.50 at 10% tax."""
        result = calculator.calculate_invoice_totals(
            billed_invoice, CalculationOptions(tax_rate=Decimal("0.1"))
        )
        assert result.subtotal == Decimal("2312.50")
        assert result.tax_amount == Decimal("231.25")
        assert result.total == Decimal("2543.75")
        assert result.average_hourly_rate == Decimal("125.00")

    def test_mixed_line_items(self, calculator, mixed_invoice):
        """Test fixed, quantity and hourly line items with 10% tax."""
        result = calculator.calculate_invoice_totals(
            mixed_invoice, CalculationOptions(tax_rate=Decimal("0.1"))
        )
        assert result.subtotal == Decimal("6500.00")
        assert result.tax_amount == Decimal("650.00")
        assert result.total == Decimal("7150.00")
        assert result.work_item_count == 3
        assert result.total_hours == Decimal("0")
        assert result.average_hourly_rate == Decimal("0.00")

    @pytest.mark.parametrize("tax_rate", [Decimal("0"), Decimal("-0.1")])
    def test_non_positive_tax_rate_means_no_tax(self, calculator, billed_invoice, tax_rate):
        """Test that zero or negative tax rates produce zero tax."""
        result = calculator.calculate_invoice_totals(billed_invoice, CalculationOptions(tax_rate=tax_rate))
        assert result.tax_amount == Decimal("0.00")
        assert result.total == result.subtotal

    def test_tax_is_monotonic(self, calculator, billed_invoice):
        """Test that a higher rate never yields less tax."""
        taxes = [
            calculator.calculate_invoice_totals(
                billed_invoice, CalculationOptions(tax_rate=Decimal(rate))
            ).tax_amount
            for rate in ("0.01", "0.05", "0.1", "0.2", "0.5")
        ]
        assert taxes == sorted(taxes)

    def test_ignores_stored_work_item_total(self, calculator, draft_invoice, work_item):
        """Test that work item totals are recomputed from hours and rate."""
        draft_invoice.add_work_item(work_item)
        work_item.total = Decimal("999.99")
        result = calculator.calculate_invoice_totals(draft_invoice)
        assert result.subtotal == Decimal("50.00")

    @pytest.mark.parametrize(
        "mode,expected", [("round", Decimal("10.6")), ("floor", Decimal("10.5")), ("ceil", Decimal("10.6"))]
    )
    def test_rounding_modes(self, calculator, draft_invoice, mode, expected):
        """Test rounding to one place under each mode."""
        draft_invoice.add_work_item(
            WorkItem.create(
                id="wi-1", date=date(2024, 1, 15), hours=1, rate="10.55", description="Work"
            )
        )
        options = CalculationOptions(decimal_places=1, rounding_mode=mode)
        result = calculator.calculate_invoice_totals(draft_invoice, options)
        assert result.subtotal == expected

    def test_breakdown(self, calculator, mixed_invoice, work_item):
        """Test the optional breakdown lists items in order with currency details."""
        mixed_invoice.add_work_item(work_item)
        options = CalculationOptions(
            tax_rate=Decimal("0.2"), currency="EUR", include_breakdown=True, tax_type="GST"
        )
        result = calculator.calculate_invoice_totals(mixed_invoice, options)
        breakdown = result.breakdown

        assert [item.id for item in breakdown.item_totals] == ["wi-1", "li-1", "li-2", "li-3"]
        assert [item.item_type for item in breakdown.item_totals] == [
            "work_item",
            "fixed",
            "quantity",
            "hourly",
        ]
        assert breakdown.item_totals[1].quantity == Decimal("1")
        assert breakdown.item_totals[1].unit_price == Decimal("5000")
        assert breakdown.tax_calculation.taxable_amount == Decimal("6550.00")
        assert breakdown.tax_calculation.tax_amount == Decimal("1310.00")
        assert breakdown.tax_calculation.tax_type == "GST"
        assert breakdown.rounding_adjustment == Decimal("0")
        assert breakdown.currency_details.symbol == "€"
        assert result.total_hours == Decimal("1.5")

    def test_none_invoice(self, calculator):
        """Test that a missing invoice is a precondition failure."""
        with pytest.raises(PreconditionError):
            calculator.calculate_invoice_totals(None)

    def test_cancelled(self, calculator, billed_invoice):
        """Test that a cancelled token stops the calculation."""
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelled):
            calculator.calculate_invoice_totals(billed_invoice, cancel=token)

    def test_cancelled_between_items(self, calculator, billed_invoice):
        """Test that a token firing after the first item stops before the second."""
        billed_invoice.add_work_item(
            WorkItem.create(
                id="wi-2", date=date(2024, 1, 16), hours="2", rate="125", description="Test"
            )
        )
        # one check on entry, one before each item
        token = CancelAfterChecks(2)
        with pytest.raises(OperationCancelled):
            calculator.calculate_invoice_totals(billed_invoice, cancel=token)
        assert token.checks == 3


class TestValidateCalculation:
    """Tests for validate_calculation."""

    def test_valid(self, calculator, billed_invoice):
        """Test that sensible options pass."""
        calculator.validate_calculation(billed_invoice, CalculationOptions(tax_rate=Decimal("0.2")))

    def test_lists_every_problem(self, calculator, billed_invoice):
        """Test that all option problems are reported together."""
        options = CalculationOptions(tax_rate=Decimal("1.5"), decimal_places=11, rounding_mode="bankers")
        with pytest.raises(InvalidCalculationOptionsError) as exc_info:
            calculator.validate_calculation(billed_invoice, options)
        assert exc_info.value.fields == ["tax_rate", "decimal_places", "rounding_mode"]
        assert "must be one of: round, floor, ceil" in str(exc_info.value)

    def test_negative_work_item_inputs(self, calculator, billed_invoice):
        """Test that negative hours are reported by index."""
        billed_invoice.work_items[0].hours = Decimal("-1")
        with pytest.raises(InvalidCalculationOptionsError) as exc_info:
            calculator.validate_calculation(billed_invoice, CalculationOptions())
        assert exc_info.value.fields == ["work_items[0].hours"]

    def test_missing_arguments(self, calculator, billed_invoice):
        """Test that None arguments are precondition failures, not option errors."""
        with pytest.raises(PreconditionError) as exc_info:
            calculator.validate_calculation(billed_invoice, None)
        assert not isinstance(exc_info.value, InvalidCalculationOptionsError)
        with pytest.raises(PreconditionError):
            calculator.validate_calculation(None, CalculationOptions())


class TestRecalculateAndSummary:
    """Tests for recalculate_invoice and get_calculation_summary."""

    def test_recalculate_invoice(self, calculator, billed_invoice):
        """Test that recalculation stores totals and bumps the version."""
        version = billed_invoice.version
        result = calculator.recalculate_invoice(billed_invoice, Decimal("0.1"))

        assert result.total == Decimal("2543.75")
        assert billed_invoice.tax_rate == Decimal("0.1")
        assert billed_invoice.tax_amount == Decimal("231.25")
        assert billed_invoice.total == Decimal("2543.75")
        assert billed_invoice.version == version + 1
        billed_invoice.validate()

    def test_empty_summary(self, calculator):
        """Test that no invoices give an all-zero summary."""
        summary = calculator.get_calculation_summary([])
        assert summary == CalculationSummary()
        assert summary.total_amount == Decimal("0.00")

    def test_summary(self, calculator, billed_invoice, mixed_invoice):
        """Test aggregation of stored totals and work item hours."""
        summary = calculator.get_calculation_summary([billed_invoice, mixed_invoice])

        assert summary.invoice_count == 2
        assert summary.total_subtotal == Decimal("8812.50")
        assert summary.total_tax == Decimal("650.00")
        assert summary.total_amount == Decimal("9462.50")
        assert summary.total_hours == Decimal("18.50")
        assert summary.average_rate == Decimal("476.35")
        assert summary.average_invoice_amount == Decimal("4731.25")
        assert summary.calculated_at is not None

    def test_summary_cancelled_between_invoices(self, calculator, billed_invoice, mixed_invoice):
        """Test that a token firing after the first invoice stops the summary."""
        token = CancelAfterChecks(2)
        with pytest.raises(OperationCancelled):
            calculator.get_calculation_summary([billed_invoice, mixed_invoice], cancel=token)
        assert token.checks == 3


class TestHelpers:
    """Tests for module-level helpers."""

    @pytest.mark.parametrize(
        "code,symbol",
        [("USD", "$"), ("EUR", "€"), ("GBP", "£"), ("JPY", "¥"), ("SEK", "kr"), ("XYZ", "XYZ")],
    )
    def test_currency_symbol(self, code, symbol):
        """Test currency symbol lookup with fallback to the code."""
        assert currency_symbol(code) == symbol

    def test_round_amount_defaults(self):
        """Test that missing options or negative places round to cents."""
        assert round_amount(Decimal("1.005"), None) == Decimal("1.01")
        assert round_amount(Decimal("1.005"), CalculationOptions(decimal_places=-1)) == Decimal("1.01")
        assert round_amount(Decimal("1.5"), CalculationOptions(decimal_places=0)) == Decimal("2")
