"""Utility functions for invoicer."""

from invoicer.utils.date_parser import parse_date, parse_datetime, parse_iso_date
from invoicer.utils.amount_parser import parse_amount, to_decimal, quantize_amount, round2

__all__ = [
    "parse_date",
    "parse_datetime",
    "parse_iso_date",
    "parse_amount",
    "to_decimal",
    "quantize_amount",
    "round2",
]
