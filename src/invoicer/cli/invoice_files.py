"""CLI helpers for reading and displaying invoices."""

from __future__ import annotations

from decimal import Decimal

import click

from invoicer.database.factories import load_invoice_file
from invoicer.domain.invoice import Invoice
from invoicer.utils.amount_parser import lenient_context


def load_invoice_or_exit(ctx: click.Context, path: str) -> Invoice:
    """Read an invoice JSON file, or exit with a CLI error.

    This keeps error messaging and exit behavior consistent across commands.
    """
    try:
        return load_invoice_file(path)
    except (OSError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)


def format_money(amount: Decimal, symbol: str = "$") -> str:
    """Format an already rounded amount with its currency symbol."""
    with lenient_context():
        negative = amount < 0
    if negative:
        return f"-{symbol}{-amount:,}"
    return f"{symbol}{amount:,}"
