"""Fluent validation rule builder.

Entities assemble their validation as one flat chain of rules. Every rule
runs, nothing short-circuits, and the builder reports all failures at once
so callers (the CLI, importers) can show every problem with a record rather
than the first one.

Numeric rules compare under a decimal context that does not trap
InvalidOperation, so any comparison involving NaN is simply false. NaN and
infinities are therefore caught only by ``valid_number``.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, UTC
from decimal import Decimal
import re
from typing import Any, Iterable, Optional, Pattern, Sequence, Union

from invoicer.domain.errors import DomainError, ValidationError
from invoicer.utils.amount_parser import Number, lenient_context, to_decimal
from invoicer.utils.cancellation import CancellationToken
from invoicer.utils.date_parser import to_datetime

CALCULATION_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class FieldError:
    """A single failed rule."""

    field: str
    message: str
    value: Any = None

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


def is_valid_email(value: str) -> bool:
    """Check the structural email rule.

    Exactly one "@", no leading or trailing "@" or ".", no consecutive dots.
    """
    if value.count("@") != 1:
        return False
    if value[0] in "@." or value[-1] in "@.":
        return False
    return ".." not in value


class ValidationBuilder:
    """Accumulates named-field rule failures."""

    def __init__(self):
        self._errors: list[FieldError] = []

    @property
    def errors(self) -> tuple[FieldError, ...]:
        return tuple(self._errors)

    def has_errors(self) -> bool:
        """Return True if any rule has failed since construction."""
        return bool(self._errors)

    def _add(self, field: str, message: str, value: Any = None) -> "ValidationBuilder":
        self._errors.append(FieldError(field=field, message=message, value=value))
        return self

    # --- Strings ---

    def required(self, field: str, value: Any) -> "ValidationBuilder":
        """Fail if the value is None, blank, or otherwise empty/zero."""
        if value is None:
            return self._add(field, "is required", value)
        if isinstance(value, str):
            if not value.strip():
                self._add(field, "is required", value)
            return self
        if not value:
            self._add(field, "is required", value)
        return self

    def max_length(self, field: str, value: Optional[str], max_len: int) -> "ValidationBuilder":
        if value and len(value) > max_len:
            self._add(field, f"cannot exceed {max_len} characters", len(value))
        return self

    def min_length(self, field: str, value: Optional[str], min_len: int) -> "ValidationBuilder":
        if value and len(value.strip()) < min_len:
            self._add(field, f"must be at least {min_len} characters", len(value))
        return self

    def length_range(
        self, field: str, value: Optional[str], min_len: int, max_len: int
    ) -> "ValidationBuilder":
        if value and not min_len <= len(value) <= max_len:
            self._add(
                field,
                f"must be between {min_len} and {max_len} characters",
                len(value),
            )
        return self

    def email(self, field: str, value: Optional[str]) -> "ValidationBuilder":
        """Fail on a malformed address. An empty value passes."""
        if value and not is_valid_email(value):
            self._add(field, "must be a valid email address", value)
        return self

    def pattern(
        self,
        field: str,
        value: Optional[str],
        regex: Union[str, Pattern[str]],
        message: str,
    ) -> "ValidationBuilder":
        """Fail if a non-empty value does not fully match the regex."""
        if value and re.fullmatch(regex, value) is None:
            self._add(field, message, value)
        return self

    def valid_option(
        self, field: str, value: Optional[str], options: Sequence[str]
    ) -> "ValidationBuilder":
        if value and value not in options:
            self._add(field, f"must be one of: {', '.join(options)}", value)
        return self

    # --- Numbers ---

    def non_negative(self, field: str, value: Number) -> "ValidationBuilder":
        with lenient_context():
            if to_decimal(value) < 0:
                self._add(field, "must be non-negative", value)
        return self

    def positive(self, field: str, value: Number) -> "ValidationBuilder":
        with lenient_context():
            if to_decimal(value) <= 0:
                self._add(field, "must be greater than 0", value)
        return self

    def valid_number(self, field: str, value: Number) -> "ValidationBuilder":
        """Fail if the value is NaN or infinite."""
        if not to_decimal(value).is_finite():
            self._add(field, "must be a valid number", value)
        return self

    def max_value(
        self, field: str, value: Number, limit: Number, unit: str
    ) -> "ValidationBuilder":
        with lenient_context():
            if to_decimal(value) > to_decimal(limit):
                self._add(field, f"cannot exceed {unit}", value)
        return self

    def value_range(
        self, field: str, value: Number, low: Number, high: Number
    ) -> "ValidationBuilder":
        """Fail if the value lies outside [low, high]. NaN passes."""
        with lenient_context():
            value_dec = to_decimal(value)
            if value_dec < to_decimal(low) or value_dec > to_decimal(high):
                self._add(field, f"must be between {low} and {high}", value)
        return self

    def amount_range(
        self, field: str, minimum: Optional[Number], maximum: Optional[Number]
    ) -> "ValidationBuilder":
        """Fail if both bounds are set and the minimum exceeds the maximum."""
        if minimum is None or maximum is None:
            return self
        with lenient_context():
            low, high = to_decimal(minimum), to_decimal(maximum)
            if low > high:
                self._add(
                    field,
                    "amount_min must be less than or equal to amount_max",
                    f"{low:.2f} - {high:.2f}",
                )
        return self

    def number(self, field: str, value: Number, limit: Number, unit: str) -> "ValidationBuilder":
        """Valid, positive and at most ``limit``."""
        return self.valid_number(field, value).positive(field, value).max_value(
            field, value, limit, unit
        )

    def calculation(self, field: str, actual: Number, expected: Number) -> "ValidationBuilder":
        """Fail if a stored result drifts more than a cent from its inputs."""
        with lenient_context():
            expected_value = to_decimal(expected)
            if abs(to_decimal(actual) - expected_value) > CALCULATION_TOLERANCE:
                self._add(field, f"incorrect calculation, expected {expected_value:.2f}", actual)
        return self

    # --- Dates and times ---

    def time_required(self, field: str, value: Optional[Union[date, datetime]]) -> "ValidationBuilder":
        """Fail if the value is None or the zero time 0001-01-01."""
        if value is None or _is_zero_time(value):
            self._add(field, "is required", value)
        return self

    def time_order(
        self,
        field: str,
        first: Optional[Union[date, datetime]],
        second: Optional[Union[date, datetime]],
        first_name: str,
        second_name: str,
    ) -> "ValidationBuilder":
        """Fail if ``second`` is strictly before ``first``."""
        if first is not None and second is not None and _before(second, first):
            self._add(
                field,
                f"must be on or after {first_name}",
                f"{second_name}: {second}, {first_name}: {first}",
            )
        return self

    def date_range(
        self,
        field: str,
        start: Optional[Union[date, datetime]],
        end: Optional[Union[date, datetime]],
        start_name: str,
        end_name: str,
    ) -> "ValidationBuilder":
        if start is not None and end is not None and _before(end, start):
            self._add(field, f"{start_name} must be before {end_name}", f"{start} - {end}")
        return self

    def date_not_future(
        self,
        field: str,
        value: Optional[Union[date, datetime]],
        allowed_future_hours: int,
        now: Optional[datetime] = None,
    ) -> "ValidationBuilder":
        if value is None:
            return self
        limit = (now or datetime.now(UTC)) + timedelta(hours=allowed_future_hours)
        if to_datetime(value) > limit:
            self._add(
                field,
                f"cannot be more than {allowed_future_hours} hours in the future",
                value,
            )
        return self

    # --- Conditional and nested rules ---

    def add_if(self, condition: bool, field: str, message: str, value: Any = None) -> "ValidationBuilder":
        if condition:
            self._add(field, message, value)
        return self

    def custom(self, field: str, message: str, value: Any = None) -> "ValidationBuilder":
        return self._add(field, message, value)

    def nested(
        self,
        field: str,
        entities: Iterable[Any],
        cancel: Optional[CancellationToken] = None,
    ) -> "ValidationBuilder":
        """Validate each entity, recording failures as ``field[index]``."""
        for index, entity in enumerate(entities):
            try:
                entity.validate(cancel=cancel)
            except ValidationError as e:
                self._add(f"{field}[{index}]", str(e), entity)
        return self

    # --- Results ---

    def _joined(self) -> str:
        return "; ".join(str(error) for error in self._errors)

    def build(self, error_type: type[DomainError] = ValidationError) -> Optional[DomainError]:
        """Return None when clean, otherwise one error listing every failure."""
        if not self._errors:
            return None
        return error_type(f"{error_type.default_message}: {self._joined()}", self._errors)

    def build_with_message(
        self, message: str, error_type: type[ValidationError] = ValidationError
    ) -> Optional[ValidationError]:
        """Like build, with a custom top-level message."""
        if not self._errors:
            return None
        return error_type(f"{message}: {self._joined()}", self._errors)

    def raise_if_errors(self, error_type: type[DomainError] = ValidationError) -> None:
        error = self.build(error_type)
        if error is not None:
            raise error

    def raise_if_errors_with_message(
        self, message: str, error_type: type[ValidationError] = ValidationError
    ) -> None:
        error = self.build_with_message(message, error_type)
        if error is not None:
            raise error


def _is_zero_time(value: Union[date, datetime]) -> bool:
    if isinstance(value, datetime):
        return value.date() == date.min and value.time() == time.min
    return value == date.min


def _before(a: Union[date, datetime], b: Union[date, datetime]) -> bool:
    if isinstance(a, datetime) or isinstance(b, datetime):
        return to_datetime(a) < to_datetime(b)
    return a < b
