"""Invoice calculation command."""

from dataclasses import replace

import click
from invoicer.cli.error_handling import handle_domain_error
from invoicer.cli.invoice_files import format_money, load_invoice_or_exit
from invoicer.domain.calculator import InvoiceCalculator, currency_symbol
from invoicer.domain.errors import DomainError
from invoicer.utils.amount_parser import parse_amount


@click.command("calculate")
@click.argument("invoice_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--tax-rate", help="Tax rate as a fraction, e.g. 0.1 (default: INVOICER_TAX_RATE)")
@click.option("--decimal-places", type=int, help="Decimal places to round to")
@click.option(
    "--rounding",
    type=click.Choice(["round", "floor", "ceil"]),
    help="Rounding mode",
)
@click.option("--currency", help="Currency code, e.g. USD")
@click.option("--tax-type", help="Tax label, e.g. VAT")
@click.option("--breakdown", is_flag=True, help="Show per-item calculations")
@click.pass_context
def calculate(
    ctx,
    invoice_file: str,
    tax_rate: str | None,
    decimal_places: int | None,
    rounding: str | None,
    currency: str | None,
    tax_type: str | None,
    breakdown: bool,
):
    """Calculate subtotal, tax and total for an invoice file."""
    settings = ctx.obj["settings"]
    invoice = load_invoice_or_exit(ctx, invoice_file)

    options = settings.calculation_options(include_breakdown=breakdown)
    overrides = {
        "decimal_places": decimal_places,
        "rounding_mode": rounding,
        "currency": currency.upper() if currency else None,
        "tax_type": tax_type,
    }
    if tax_rate is not None:
        try:
            overrides["tax_rate"] = parse_amount(tax_rate)
        except ValueError as e:
            handle_domain_error(ctx, e)
    options = replace(options, **{k: v for k, v in overrides.items() if v is not None})

    calculator = InvoiceCalculator(default_currency=options.currency)
    try:
        calculator.validate_calculation(invoice, options)
        result = calculator.calculate_invoice_totals(invoice, options)
    except DomainError as e:
        handle_domain_error(ctx, e)

    symbol = currency_symbol(options.currency)
    click.echo(f"Invoice {invoice.number} ({invoice.status})")
    click.echo(f"Client: {invoice.client.name}")
    click.echo(f"Items: {result.work_item_count}")
    click.echo(f"Hours: {result.total_hours:.2f}")

    if result.breakdown is not None:
        click.echo("")
        for item in result.breakdown.item_totals:
            click.echo(
                f"  {item.date}  {item.item_type:<10} {item.description[:40]:<40} "
                f"{item.quantity} × {format_money(item.unit_price, symbol)} = "
                f"{format_money(item.subtotal, symbol)}"
            )
        click.echo("")

    percent = (result.tax_rate * 100).normalize()
    click.echo(f"Subtotal: {format_money(result.subtotal, symbol)}")
    click.echo(f"Tax ({options.tax_type} {percent:f}%): {format_money(result.tax_amount, symbol)}")
    click.echo(f"Total: {format_money(result.total, symbol)}")
    if result.average_hourly_rate:
        click.echo(f"Average rate: {format_money(result.average_hourly_rate, symbol)}/hr")


def register_commands(cli):
    """Register calculate command with main CLI."""
    cli.add_command(calculate)
