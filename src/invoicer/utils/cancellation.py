"""Cooperative cancellation for domain operations."""

from threading import Event
from typing import Optional


class OperationCancelled(Exception):
    """Raised when the caller's cancellation token has fired."""


class CancellationToken:
    """Cancellation signal shared between a caller and the operations it runs."""

    def __init__(self):
        self._event = Event()

    def cancel(self) -> None:
        """Signal cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("operation cancelled")


def check_cancelled(cancel: Optional[CancellationToken]) -> None:
    """Raise OperationCancelled if a token was given and has fired."""
    if cancel is not None:
        cancel.raise_if_cancelled()
