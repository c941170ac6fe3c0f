"""Shared domain error messages and error types."""

from typing import Any, Sequence


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling. Errors produced by the
    validation builder also carry the individual field failures.
    """

    default_message = "domain error"

    def __init__(self, message: str = "", field_errors: Sequence[Any] = ()):
        super().__init__(message or self.default_message)
        self.field_errors = tuple(field_errors)

    @property
    def fields(self) -> list[str]:
        """Names of the failed fields, in the order they were reported."""
        return [error.field for error in self.field_errors]


# --- Validation failures ---


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""

    default_message = "validation failed"


class InvoiceValidationError(ValidationError):
    default_message = "invoice validation failed"


class WorkItemValidationError(ValidationError):
    default_message = "work item validation failed"


class LineItemValidationError(ValidationError):
    default_message = "line item validation failed"


class ClientValidationError(ValidationError):
    default_message = "client validation failed"


class RequestValidationError(ValidationError):
    default_message = "request validation failed"


# --- State violations ---


class StateError(DomainError):
    """Operation not allowed in the invoice's current status."""

    default_message = "operation not allowed in current state"


class CannotAddWorkItemToNonDraftError(StateError):
    """Raised for work item and line item additions alike."""

    default_message = "can only add work items to draft invoices"


class CannotRemoveWorkItemFromNonDraftError(StateError):
    default_message = "can only remove work items from draft invoices"


class CannotSendNonDraftInvoiceError(StateError):
    default_message = "can only send draft invoices"


class CannotSendEmptyInvoiceError(StateError):
    default_message = "cannot send invoice with no work items"


class CannotMarkNonSentAsPaidError(StateError):
    default_message = "can only mark sent or overdue invoices as paid"


class CannotDeletePaidInvoiceError(StateError):
    default_message = "cannot delete paid invoice"


class InvalidStatusError(StateError):
    default_message = "invalid status"


class CannotVoidPaidInvoiceError(InvalidStatusError):
    default_message = "cannot void a paid invoice"


class ClientInactiveError(StateError):
    default_message = "client is inactive"


# --- Missing entities ---


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""

    default_message = "not found"


class WorkItemNotFoundError(NotFoundError):
    default_message = "work item not found"


class LineItemNotFoundError(NotFoundError):
    default_message = "line item not found"


class InvoiceNotFoundError(NotFoundError):
    default_message = "invoice not found"


class InvoiceNumberNotFoundError(NotFoundError):
    default_message = "invoice number not found"


class ClientNotFoundError(NotFoundError):
    default_message = "client not found"


# --- Conflicts ---


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""

    default_message = "conflict"


class InvoiceNumberExistsError(ConflictError):
    default_message = "invoice number already exists"


class DuplicateRecordError(ConflictError):
    default_message = "record already exists"


class VersionConflictError(ConflictError):
    """Stored version differs from the version the caller read."""

    default_message = "version mismatch"

    def __init__(self, resource: str, record_id: str, expected: int, actual: int):
        super().__init__(
            f"{resource} with ID '{record_id}' version mismatch: "
            f"expected {expected}, got {actual}"
        )
        self.resource = resource
        self.record_id = record_id
        self.expected_version = expected
        self.actual_version = actual


# --- Preconditions ---


class PreconditionError(DomainError):
    """Missing or malformed arguments: empty IDs, None values, bad options."""

    default_message = "precondition failed"


class InvalidCalculationOptionsError(PreconditionError):
    default_message = "invalid calculation options"


def with_status(error_type: type[StateError], status: str) -> StateError:
    """Return a state error naming the invoice's current status."""
    return error_type(f"{error_type.default_message}, current status: {status}")


def with_subject(error_type: type[DomainError], subject: str) -> DomainError:
    """Return an error whose message ends with the offending ID or number."""
    return error_type(f"{error_type.default_message}: {subject}")


def invoice_not_found(invoice_id: str) -> InvoiceNotFoundError:
    """Return error for a missing invoice."""
    return InvoiceNotFoundError(f"invoice with ID '{invoice_id}' not found")


def client_not_found(client_id: str) -> ClientNotFoundError:
    """Return error for a missing client."""
    return ClientNotFoundError(f"client with ID '{client_id}' not found")
