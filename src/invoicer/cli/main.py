"""Main CLI entry point."""

import click

from invoicer.cli.error_handling import handle_domain_error
from invoicer.config import configure_logging, load_settings

# Import and register all commands at module level
from invoicer.cli.commands import (
    calculate,
    status,
    summary,
    validate,
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging on stderr")
@click.option("--log-json", is_flag=True, help="Write logs as JSON lines")
@click.pass_context
def cli(ctx, verbose: bool, log_json: bool):
    """Invoicer - Invoice validation and calculation tool.

    Reads invoices stored as JSON records and validates them, calculates
    their totals and reports their payment status. Calculation defaults are
    taken from INVOICER_* environment variables.
    """
    ctx.ensure_object(dict)
    configure_logging(verbose=verbose, log_json=log_json)

    # Settings are only needed when running a command (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            ctx.obj["settings"] = load_settings()
        except ValueError as e:
            handle_domain_error(ctx, e)


# Register all commands
calculate.register_commands(cli)
validate.register_commands(cli)
summary.register_commands(cli)
status.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
