"""Invoice validation command."""

import click
from invoicer.cli.error_handling import handle_domain_error, handle_validation_error
from invoicer.cli.invoice_files import load_invoice_or_exit
from invoicer.domain.calculator import InvoiceCalculator
from invoicer.domain.errors import InvalidCalculationOptionsError, PreconditionError, ValidationError


@click.command("validate")
@click.argument("invoice_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def validate(ctx, invoice_file: str):
    """Validate an invoice file.

    Checks the invoice header, client and every item, then the calculation
    settings taken from the environment. Every failed field is listed.
    """
    settings = ctx.obj["settings"]
    invoice = load_invoice_or_exit(ctx, invoice_file)

    try:
        invoice.validate()
    except ValidationError as e:
        handle_validation_error(ctx, e)

    try:
        InvoiceCalculator().validate_calculation(invoice, settings.calculation_options())
    except InvalidCalculationOptionsError as e:
        handle_validation_error(ctx, e)
    except PreconditionError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Invoice {invoice.number} is valid.")


def register_commands(cli):
    """Register validate command with main CLI."""
    cli.add_command(validate)
