"""Shared pytest fixtures for invoicer tests."""

import json
import logging
from datetime import date
from decimal import Decimal

import pytest

from invoicer.config.settings import ENV_PREFIX
from invoicer.database.factories import create_memory_storage
from invoicer.database.mappers import invoice_to_record
from invoicer.domain.entities import Client, LineItem, WorkItem
from invoicer.domain.invoice import Invoice
from invoicer.domain.invoice_service import InvoiceService
from invoicer.domain.requests import CreateInvoiceRequest
from invoicer.utils.ids import UUIDGenerator


@pytest.fixture
def storage():
    """Create an empty in-memory storage."""
    return create_memory_storage()


@pytest.fixture
def invoice_service(storage):
    """Create an InvoiceService backed by the in-memory storage."""
    return InvoiceService(storage, storage, UUIDGenerator())


@pytest.fixture
def client():
    """Create an active client (not stored)."""
    return Client.create(id="client-1", name="Acme Corp", email="billing@acme.example")


@pytest.fixture
def sample_client(storage, client):
    """Store the sample client and return it."""
    storage.create_client(client)
    return client


@pytest.fixture
def work_item():
    """1.5 hours at 33.33 per hour."""
    return WorkItem.create(
        id="wi-1",
        date=date(2024, 1, 15),
        hours=Decimal("1.5"),
        rate=Decimal("33.33"),
        description="Code review",
    )


@pytest.fixture
def draft_invoice(client):
    """Create an empty draft invoice."""
    return Invoice.create(
        id="inv-1",
        number="INV-2024-001",
        date=date(2024, 1, 15),
        due_date=date(2024, 2, 14),
        client=client,
    )


@pytest.fixture
def mixed_invoice(client):
    """Draft invoice with a fixed, a quantity and an hourly line item (6500.00)."""
    invoice = Invoice.create(
        id="inv-mixed",
        number="INV-2024-002",
        date=date(2024, 1, 31),
        due_date=date(2024, 3, 1),
        client=client,
        tax_rate=Decimal("0.1"),
    )
    invoice.add_line_item(
        LineItem.fixed(
            id="li-1", date=date(2024, 1, 1), amount=5000, description="Monthly retainer"
        )
    )
    invoice.add_line_item(
        LineItem.quantity_based(
            id="li-2",
            date=date(2024, 1, 10),
            quantity=10,
            unit_price=100,
            description="SSL certificates",
        )
    )
    invoice.add_line_item(
        LineItem.hourly(
            id="li-3", date=date(2024, 1, 20), hours=5, rate=100, description="Consulting"
        )
    )
    return invoice


@pytest.fixture
def make_request():
    """Return a factory for CreateInvoiceRequest with sensible defaults."""

    def _make(number="INV-2024-001", client_id="client-1", **overrides):
        fields = {
            "number": number,
            "client_id": client_id,
            "date": date(2024, 1, 15),
            "due_date": date(2024, 2, 14),
        }
        fields.update(overrides)
        return CreateInvoiceRequest(**fields)

    return _make


@pytest.fixture
def write_invoice(tmp_path):
    """Return a function that writes an invoice as a JSON record and returns its path."""

    def _write(invoice, name="invoice.json"):
        path = tmp_path / name
        path.write_text(json.dumps(invoice_to_record(invoice)), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def clean_env(monkeypatch):
    """Remove INVOICER_* variables so settings use their defaults."""
    for name in ("CURRENCY", "TAX_RATE", "DECIMAL_PLACES", "ROUNDING_MODE", "TAX_TYPE"):
        monkeypatch.delenv(ENV_PREFIX + name, raising=False)


@pytest.fixture
def restore_logging():
    """Restore root and invoicer logger state after the test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    invoicer_logger = logging.getLogger("invoicer")
    invoicer_level = invoicer_logger.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    invoicer_logger.setLevel(invoicer_level)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
