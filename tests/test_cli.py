"""Tests for the invoicer CLI commands."""

import json
import pytest
from datetime import date
from decimal import Decimal

from invoicer.cli.invoice_files import format_money
from invoicer.cli.main import cli
from invoicer.database.mappers import invoice_to_record


@pytest.fixture(autouse=True)
def cli_environment(clean_env, restore_logging):
    """Run every CLI test with default settings and restored logging."""
    yield


@pytest.fixture
def overdue_candidate(draft_invoice, work_item):
    """Sent invoice INV-2024-001 with one work item, due 2024-02-14."""
    draft_invoice.add_work_item(work_item)
    draft_invoice.update_status("sent")
    return draft_invoice


def test_calculate(cli_runner, write_invoice, mixed_invoice):
    """Test calculating totals with a tax rate option."""
    path = write_invoice(mixed_invoice)
    result = cli_runner.invoke(cli, ["calculate", path, "--tax-rate", "0.1"])

    assert result.exit_code == 0
    assert "Invoice INV-2024-002 (draft)" in result.output
    assert "Client: Acme Corp" in result.output
    assert "Items: 3" in result.output
    assert "Subtotal: $6,500.00" in result.output
    assert "Tax (VAT 10%): $650.00" in result.output
    assert "Total: $7,150.00" in result.output
    assert "Average rate" not in result.output


def test_calculate_uses_environment_defaults(cli_runner, write_invoice, mixed_invoice):
    """Test that INVOICER_* variables set the calculation defaults."""
    path = write_invoice(mixed_invoice)
    result = cli_runner.invoke(
        cli,
        ["calculate", path],
        env={"INVOICER_TAX_RATE": "0.2", "INVOICER_CURRENCY": "gbp", "INVOICER_TAX_TYPE": "GST"},
    )

    assert result.exit_code == 0
    assert "Tax (GST 20%): £1,300.00" in result.output
    assert "Total: £7,800.00" in result.output


def test_calculate_breakdown(cli_runner, write_invoice, overdue_candidate):
    """Test the per-item breakdown and hourly average."""
    path = write_invoice(overdue_candidate)
    result = cli_runner.invoke(cli, ["calculate", path, "--breakdown", "--currency", "eur"])

    assert result.exit_code == 0
    assert "Code review" in result.output
    assert "work_item" in result.output
    assert "= €50.00" in result.output
    assert "Hours: 1.50" in result.output
    assert "Average rate: €33.33/hr" in result.output


def test_calculate_rounding_options(cli_runner, write_invoice, overdue_candidate):
    """Test rounding to one place with floor."""
    path = write_invoice(overdue_candidate)
    result = cli_runner.invoke(
        cli, ["calculate", path, "--decimal-places", "1", "--rounding", "floor", "--tax-rate", "0.1"]
    )

    assert result.exit_code == 0
    assert "Subtotal: $50.0" in result.output
    assert "Total: $55.0" in result.output


def test_calculate_rejects_invalid_tax_rate(cli_runner, write_invoice, mixed_invoice):
    """Test that options failing validation abort the calculation."""
    path = write_invoice(mixed_invoice)
    result = cli_runner.invoke(cli, ["calculate", path, "--tax-rate", "1.5"])

    assert result.exit_code == 1
    assert "Error: invalid calculation options: tax_rate: must be between 0 and 1" in result.output
    assert "Total:" not in result.output


def test_calculate_unparseable_tax_rate(cli_runner, write_invoice, mixed_invoice):
    """Test that a tax rate that is not a number is reported."""
    path = write_invoice(mixed_invoice)
    result = cli_runner.invoke(cli, ["calculate", path, "--tax-rate", "ten"])

    assert result.exit_code == 1
    assert "Error: Could not parse amount" in result.output


def test_calculate_invalid_json(cli_runner, tmp_path):
    """Test that a malformed invoice file is reported."""
    path = tmp_path / "broken.json"
    path.write_text("{", encoding="utf-8")
    result = cli_runner.invoke(cli, ["calculate", str(path)])

    assert result.exit_code == 1
    assert "is not valid JSON" in result.output


def test_validate_null_client(cli_runner, tmp_path, draft_invoice):
    """Test that a record with a null client is reported instead of crashing."""
    record = invoice_to_record(draft_invoice)
    record["client"] = None
    path = tmp_path / "null_client.json"
    path.write_text(json.dumps(record), encoding="utf-8")
    result = cli_runner.invoke(cli, ["validate", str(path)])

    assert result.exit_code == 1
    assert "has a malformed invoice record" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_validate_zero_timestamp(cli_runner, tmp_path, draft_invoice):
    """Test that a 0001-01-01 creation time is reported as missing."""
    record = invoice_to_record(draft_invoice)
    record["created_at"] = "0001-01-01T00:00:00Z"
    path = tmp_path / "zero_time.json"
    path.write_text(json.dumps(record), encoding="utf-8")
    result = cli_runner.invoke(cli, ["validate", str(path)])

    assert result.exit_code == 1
    assert "  - created_at: is required" in result.output
    assert "is valid" not in result.output


def test_validate_valid_invoice(cli_runner, write_invoice, mixed_invoice):
    """Test validating a correct invoice."""
    result = cli_runner.invoke(cli, ["validate", write_invoice(mixed_invoice)])

    assert result.exit_code == 0
    assert "Invoice INV-2024-002 is valid." in result.output


def test_validate_lists_every_failed_field(cli_runner, write_invoice, draft_invoice):
    """Test that each failed field is reported on its own line."""
    draft_invoice.number = "inv 1"
    draft_invoice.due_date = date(2024, 1, 1)
    result = cli_runner.invoke(cli, ["validate", write_invoice(draft_invoice)])

    assert result.exit_code == 1
    assert "Error: invoice validation failed" in result.output
    assert "  - number: must contain only uppercase letters, numbers, and hyphens" in result.output
    assert "  - due_date: must be on or after invoice date" in result.output
    assert "is valid" not in result.output


def test_validate_checks_calculation_settings(cli_runner, write_invoice, draft_invoice):
    """Test that invalid calculation settings fail validation."""
    result = cli_runner.invoke(
        cli, ["validate", write_invoice(draft_invoice)], env={"INVOICER_ROUNDING_MODE": "bankers"}
    )

    assert result.exit_code == 1
    assert "Error: invalid calculation options" in result.output
    assert "  - rounding_mode: must be one of: round, floor, ceil" in result.output


def test_invalid_settings_abort_every_command(cli_runner, write_invoice, draft_invoice):
    """Test that unparseable settings are reported before the command runs."""
    result = cli_runner.invoke(
        cli, ["validate", write_invoice(draft_invoice)], env={"INVOICER_DECIMAL_PLACES": "two"}
    )

    assert result.exit_code == 1
    assert "Error: INVOICER_DECIMAL_PLACES must be an integer, got 'two'" in result.output


def test_status_not_yet_due(cli_runner, write_invoice, draft_invoice):
    """Test status output before the due date."""
    result = cli_runner.invoke(cli, ["status", write_invoice(draft_invoice), "--as-of", "2024-02-01"])

    assert result.exit_code == 0
    assert "Status: draft" in result.output
    assert "Date: 2024-01-15 (17 days old)" in result.output
    assert "Due: 2024-02-14 (in 13 days)" in result.output
    assert "Total: $0.00" in result.output
    assert "Overdue: no" in result.output


def test_status_overdue(cli_runner, write_invoice, overdue_candidate):
    """Test status output for a sent invoice past its due date."""
    result = cli_runner.invoke(
        cli, ["status", write_invoice(overdue_candidate), "--as-of", "2024-03-01"]
    )

    assert result.exit_code == 0
    assert "Status: sent" in result.output
    assert "Due: 2024-02-14 (16 days ago)" in result.output
    assert "Overdue: yes" in result.output


def test_status_invalid_date(cli_runner, write_invoice, draft_invoice):
    """Test that an unparseable reference date is reported."""
    result = cli_runner.invoke(cli, ["status", write_invoice(draft_invoice), "--as-of", "someday"])

    assert result.exit_code == 1
    assert "Error: Could not parse date" in result.output


def test_summary(cli_runner, write_invoice, mixed_invoice, overdue_candidate):
    """Test summarizing several invoices and marking overdue ones."""
    paths = [
        write_invoice(mixed_invoice, "mixed.json"),
        write_invoice(overdue_candidate, "sent.json"),
    ]
    result = cli_runner.invoke(cli, ["summary", *paths, "--as-of", "2024-03-01"])

    assert result.exit_code == 0
    assert "Invoices: 2" in result.output
    assert "Subtotal: $6,550.00" in result.output
    assert "Tax: $650.00" in result.output
    assert "Total: $7,200.00" in result.output
    assert "Hours: 1.50" in result.output
    assert "Average invoice: $3,600.00" in result.output
    assert "Draft: 1  Sent: 0  Overdue: 1  Paid: 0  Voided: 0" in result.output
    assert "Outstanding: $50.00" in result.output
    assert "Now overdue: INV-2024-001 (due 2024-02-14)" in result.output


def test_summary_without_as_of(cli_runner, write_invoice, overdue_candidate):
    """Test that invoices keep their status without a reference date."""
    result = cli_runner.invoke(cli, ["summary", write_invoice(overdue_candidate)])

    assert result.exit_code == 0
    assert "Draft: 0  Sent: 1  Overdue: 0" in result.output
    assert "Now overdue" not in result.output


def test_summary_duplicate_ids(cli_runner, write_invoice, draft_invoice):
    """Test that two files holding the same invoice are rejected."""
    paths = [write_invoice(draft_invoice, "a.json"), write_invoice(draft_invoice, "b.json")]
    result = cli_runner.invoke(cli, ["summary", *paths])

    assert result.exit_code == 1
    assert "Error: invoice with ID 'inv-1' already exists" in result.output


def test_summary_requires_files(cli_runner):
    """Test that summary needs at least one file."""
    result = cli_runner.invoke(cli, ["summary"])
    assert result.exit_code == 2


def test_help_lists_commands(cli_runner):
    """Test that the group help lists every command."""
    result = cli_runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("calculate", "validate", "summary", "status"):
        assert command in result.output


@pytest.mark.parametrize(
    "amount,expected",
    [
        (Decimal("1234.50"), "$1,234.50"),
        (Decimal("-20.00"), "-$20.00"),
        (Decimal("0.00"), "$0.00"),
    ],
)
def test_format_money(amount, expected):
    """Test money formatting with thousands separators and signs."""
    assert format_money(amount) == expected
