"""Factory functions for storage instances and invoice files."""

import json
from pathlib import Path
from typing import Iterable, Optional, Union

from invoicer.database.mappers import client_from_record, invoice_from_record
from invoicer.database.memory import InMemoryStorage
from invoicer.domain.invoice import Invoice


def create_memory_storage(
    client_records: Optional[Iterable[dict]] = None,
    invoice_records: Optional[Iterable[dict]] = None,
) -> InMemoryStorage:
    """Create an in-memory storage, optionally seeded with records.

    Args:
        client_records: Client records to store first
        invoice_records: Invoice records to store after the clients

    Returns:
        InMemoryStorage usable as both invoice and client storage
    """
    storage = InMemoryStorage()
    for record in client_records or ():
        storage.create_client(client_from_record(record))
    for record in invoice_records or ():
        storage.create_invoice(invoice_from_record(record))
    return storage


def load_invoice_file(path: Union[str, Path]) -> Invoice:
    """Read an invoice record from a JSON file.

    The invoice is not validated; call ``validate()`` on the result.

    Raises:
        ValueError: If the file is not JSON, lacks required fields or holds
            fields of the wrong shape
    """
    path = Path(path)
    try:
        record = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{path} is not valid JSON: {e}") from e

    if not isinstance(record, dict):
        raise ValueError(f"{path} must contain a JSON object")
    try:
        return invoice_from_record(record)
    except KeyError as e:
        raise ValueError(f"{path} is missing required field {e}") from e
    except (TypeError, AttributeError) as e:
        raise ValueError(f"{path} has a malformed invoice record: {e}") from e
