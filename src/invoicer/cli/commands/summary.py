"""Summary command."""

import click
from invoicer.cli.error_handling import handle_domain_error
from invoicer.cli.invoice_files import format_money, load_invoice_or_exit
from invoicer.database.factories import create_memory_storage
from invoicer.domain.calculator import InvoiceCalculator, currency_symbol
from invoicer.domain.errors import DomainError
from invoicer.domain.invoice_service import InvoiceService
from invoicer.utils.date_parser import parse_date
from invoicer.utils.ids import UUIDGenerator


@click.command("summary")
@click.argument("invoice_files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--as-of",
    help="Mark sent invoices past due on this date as overdue before summarizing",
)
@click.pass_context
def summary(ctx, invoice_files: tuple[str, ...], as_of: str | None):
    """Summarize totals and payment status across invoice files."""
    settings = ctx.obj["settings"]
    symbol = currency_symbol(settings.currency)

    storage = create_memory_storage()
    service = InvoiceService(storage, storage, UUIDGenerator())
    try:
        for path in invoice_files:
            storage.create_invoice(load_invoice_or_exit(ctx, path))

        overdue = []
        if as_of:
            try:
                today = parse_date(as_of)
            except ValueError as e:
                handle_domain_error(ctx, e)
            overdue = service.mark_overdue_invoices(today)

        invoices = service.list_invoices()
        totals = InvoiceCalculator().get_calculation_summary(invoices)
        stats = service.get_invoice_statistics()
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Invoices: {totals.invoice_count}")
    click.echo(f"Subtotal: {format_money(totals.total_subtotal, symbol)}")
    click.echo(f"Tax: {format_money(totals.total_tax, symbol)}")
    click.echo(f"Total: {format_money(totals.total_amount, symbol)}")
    click.echo(f"Hours: {totals.total_hours:.2f}")
    click.echo(f"Average rate: {format_money(totals.average_rate, symbol)}/hr")
    click.echo(f"Average invoice: {format_money(totals.average_invoice_amount, symbol)}")
    click.echo("")
    click.echo(
        f"Draft: {stats.draft_count}  Sent: {stats.sent_count}  Overdue: {stats.overdue_count}  "
        f"Paid: {stats.paid_count}  Voided: {stats.voided_count}"
    )
    click.echo(f"Paid amount: {format_money(stats.paid_amount, symbol)}")
    click.echo(f"Outstanding: {format_money(stats.outstanding_amount, symbol)}")

    for invoice in overdue:
        click.echo(f"Now overdue: {invoice.number} (due {invoice.due_date})")


def register_commands(cli):
    """Register summary command with main CLI."""
    cli.add_command(summary)
