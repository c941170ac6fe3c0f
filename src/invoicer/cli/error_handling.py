"""CLI error handling helpers."""

import click

from invoicer.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def handle_validation_error(ctx: click.Context, error: DomainError) -> None:
    """Render every failed field on its own line and exit with failure."""
    click.echo(f"Error: {error.default_message}", err=True)
    for field_error in error.field_errors:
        click.echo(f"  - {field_error}", err=True)
    ctx.exit(1)
