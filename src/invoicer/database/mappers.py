"""Mapper functions to convert between domain objects and storage records.

A record is a JSON-ready dict: Decimals become strings, dates and datetimes
become ISO 8601 strings, and work items and line items keep their order.
Reading a record never validates it; unknown statuses and item types are
kept as plain strings so that ``validate()`` can report them.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, Optional

from invoicer.domain import entities as domain
from invoicer.domain.entities import line_total
from invoicer.domain.invoice import Invoice
from invoicer.utils.amount_parser import to_decimal
from invoicer.utils.date_parser import parse_datetime, parse_iso_date

Record = dict[str, Any]


def client_to_record(client: domain.Client) -> Record:
    """Convert Client entity to a storage record."""
    return {
        "id": client.id,
        "name": client.name,
        "email": client.email,
        "phone": client.phone,
        "address": client.address,
        "tax_id": client.tax_id,
        "active": client.active,
        "created_at": _datetime_str(client.created_at),
        "updated_at": _datetime_str(client.updated_at),
    }


def client_from_record(record: Record) -> domain.Client:
    """Convert a storage record to a Client entity."""
    return domain.Client(
        id=record["id"],
        name=record["name"],
        email=record.get("email", ""),
        phone=record.get("phone", ""),
        address=record.get("address", ""),
        tax_id=record.get("tax_id", ""),
        active=record.get("active", True),
        created_at=_datetime(record.get("created_at")),
        updated_at=_datetime(record.get("updated_at")),
    )


def work_item_to_record(item: domain.WorkItem) -> Record:
    """Convert WorkItem entity to a storage record."""
    return {
        "id": item.id,
        "date": _date_str(item.date),
        "hours": str(item.hours),
        "rate": str(item.rate),
        "description": item.description,
        "total": str(item.total),
        "created_at": _datetime_str(item.created_at),
    }


def work_item_from_record(record: Record) -> domain.WorkItem:
    """Convert a storage record to a WorkItem entity.

    A missing total is derived from hours and rate.
    """
    hours = to_decimal(record["hours"])
    rate = to_decimal(record["rate"])
    total = record.get("total")
    return domain.WorkItem(
        id=record.get("id", ""),
        date=_date(record.get("date")),
        hours=hours,
        rate=rate,
        description=record.get("description", ""),
        total=line_total(hours, rate) if total is None else to_decimal(total),
        created_at=_datetime(record.get("created_at")),
    )


def line_item_to_record(item: domain.LineItem) -> Record:
    """Convert LineItem entity to a storage record. Unset fields are omitted."""
    record: Record = {
        "id": item.id,
        "type": str(item.type),
        "date": _date_str(item.date),
        "description": item.description,
        "total": str(item.total),
        "created_at": _datetime_str(item.created_at),
    }
    if item.end_date is not None:
        record["end_date"] = _date_str(item.end_date)
    for name in ("amount", "quantity", "unit_price"):
        value = getattr(item, name)
        if value is not None:
            record[name] = str(value)
    return record


def line_item_from_record(record: Record) -> domain.LineItem:
    """Convert a storage record to a LineItem entity.

    A missing total is derived from the type-specific fields.
    """
    item = domain.LineItem(
        id=record.get("id", ""),
        type=_enum(domain.LineItemType, record.get("type", "")),
        date=_date(record.get("date")),
        end_date=_date(record.get("end_date")),
        description=record.get("description", ""),
        amount=_optional_decimal(record.get("amount")),
        quantity=_optional_decimal(record.get("quantity")),
        unit_price=_optional_decimal(record.get("unit_price")),
        total=to_decimal(record.get("total", 0)),
        created_at=_datetime(record.get("created_at")),
    )
    if record.get("total") is None and item.type in domain.LINE_ITEM_TYPES:
        item.recalculate_total()
    return item


def invoice_to_record(invoice: Invoice) -> Record:
    """Convert Invoice aggregate to a storage record."""
    record: Record = {
        "id": invoice.id,
        "number": invoice.number,
        "date": _date_str(invoice.date),
        "due_date": _date_str(invoice.due_date),
        "client": client_to_record(invoice.client),
        "status": str(invoice.status),
        "description": invoice.description,
        "work_items": [work_item_to_record(item) for item in invoice.work_items],
        "line_items": [line_item_to_record(item) for item in invoice.line_items],
        "subtotal": str(invoice.subtotal),
        "tax_rate": str(invoice.tax_rate),
        "tax_amount": str(invoice.tax_amount),
        "total": str(invoice.total),
        "created_at": _datetime_str(invoice.created_at),
        "updated_at": _datetime_str(invoice.updated_at),
        "version": invoice.version,
    }
    if invoice.usdc_address_override is not None:
        record["usdc_address_override"] = invoice.usdc_address_override
    if invoice.bsv_address_override is not None:
        record["bsv_address_override"] = invoice.bsv_address_override
    return record


def invoice_from_record(record: Record) -> Invoice:
    """Convert a storage record to an Invoice aggregate.

    Records without stored totals get them recalculated from their items.
    """
    invoice = Invoice(
        id=record.get("id", ""),
        number=record.get("number", ""),
        date=_date(record.get("date")),
        due_date=_date(record.get("due_date")),
        client=client_from_record(record["client"]),
        status=_enum(domain.InvoiceStatus, record.get("status", domain.InvoiceStatus.DRAFT)),
        description=record.get("description", ""),
        work_items=[work_item_from_record(item) for item in record.get("work_items") or []],
        line_items=[line_item_from_record(item) for item in record.get("line_items") or []],
        tax_rate=to_decimal(record.get("tax_rate", 0)),
        usdc_address_override=record.get("usdc_address_override"),
        bsv_address_override=record.get("bsv_address_override"),
        created_at=_datetime(record.get("created_at")),
        updated_at=_datetime(record.get("updated_at")),
        version=int(record.get("version", 1)),
    )
    if "total" in record:
        invoice.subtotal = to_decimal(record.get("subtotal", 0))
        invoice.tax_amount = to_decimal(record.get("tax_amount", 0))
        invoice.total = to_decimal(record["total"])
    else:
        invoice.recalculate_totals()
    return invoice


def _enum(enum_type: type[StrEnum], value: str):
    try:
        return enum_type(value)
    except ValueError:
        return value


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else to_decimal(value)


def _date(value: Optional[str]) -> Optional[date]:
    return None if not value else parse_iso_date(value)


def _datetime(value: Optional[str]) -> Optional[datetime]:
    return None if not value else parse_datetime(value)


def _date_str(value: Optional[date]) -> Optional[str]:
    return None if value is None else value.isoformat()


def _datetime_str(value: Optional[datetime]) -> Optional[str]:
    return None if value is None else value.isoformat()
