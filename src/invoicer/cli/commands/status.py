"""Invoice status command."""

from datetime import date

import click
from invoicer.cli.error_handling import handle_domain_error
from invoicer.cli.invoice_files import format_money, load_invoice_or_exit
from invoicer.domain.calculator import currency_symbol
from invoicer.utils.date_parser import parse_date


@click.command("status")
@click.argument("invoice_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--as-of", help="Reference date (e.g., 2024-03-01, today, 'in 30 days')")
@click.pass_context
def status(ctx, invoice_file: str, as_of: str | None):
    """Show the payment status of an invoice file."""
    settings = ctx.obj["settings"]
    invoice = load_invoice_or_exit(ctx, invoice_file)

    today = date.today()
    if as_of:
        try:
            today = parse_date(as_of)
        except ValueError as e:
            handle_domain_error(ctx, e)

    click.echo(f"Invoice: {invoice.number}")
    click.echo(f"Client: {invoice.client.name}")
    click.echo(f"Status: {invoice.status}")
    click.echo(f"Date: {invoice.date} ({invoice.age_in_days(today)} days old)")

    days = invoice.days_until_due(today)
    if days > 0:
        due = f"in {days} days"
    elif days == 0:
        due = "today"
    else:
        due = f"{-days} days ago"
    click.echo(f"Due: {invoice.due_date} ({due})")
    click.echo(f"Total: {format_money(invoice.total, currency_symbol(settings.currency))}")
    click.echo(f"Overdue: {'yes' if invoice.is_overdue(today) else 'no'}")


def register_commands(cli):
    """Register status command with main CLI."""
    cli.add_command(status)
