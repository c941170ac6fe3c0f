"""Identifier generation."""

import uuid
from abc import ABC, abstractmethod
from typing import Optional

from invoicer.utils.cancellation import CancellationToken, check_cancelled


class IDGenerator(ABC):
    """Source of unique identifiers for invoices, clients and items."""

    @abstractmethod
    def generate_invoice_id(self, cancel: Optional[CancellationToken] = None) -> str:
        """Return a new invoice ID."""
        pass

    @abstractmethod
    def generate_client_id(self, cancel: Optional[CancellationToken] = None) -> str:
        """Return a new client ID."""
        pass

    @abstractmethod
    def generate_work_item_id(self, cancel: Optional[CancellationToken] = None) -> str:
        """Return a new work item (or line item) ID."""
        pass


class UUIDGenerator(IDGenerator):
    """Generates random UUID4 identifiers."""

    def generate_invoice_id(self, cancel: Optional[CancellationToken] = None) -> str:
        check_cancelled(cancel)
        return str(uuid.uuid4())

    def generate_client_id(self, cancel: Optional[CancellationToken] = None) -> str:
        check_cancelled(cancel)
        return str(uuid.uuid4())

    def generate_work_item_id(self, cancel: Optional[CancellationToken] = None) -> str:
        check_cancelled(cancel)
        return str(uuid.uuid4())
