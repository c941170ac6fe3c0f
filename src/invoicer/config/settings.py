"""Settings read from INVOICER_* environment variables."""

from dataclasses import dataclass
from decimal import Decimal
import os
from typing import Mapping, Optional

from invoicer.domain.calculator import DEFAULT_CURRENCY, DEFAULT_TAX_TYPE, CalculationOptions
from invoicer.utils.amount_parser import parse_amount

ENV_PREFIX = "INVOICER_"


@dataclass(frozen=True)
class Settings:
    """Calculation defaults. Unset variables fall back to these values."""

    currency: str = DEFAULT_CURRENCY
    tax_rate: Decimal = Decimal("0")
    decimal_places: int = 2
    rounding_mode: str = "round"
    tax_type: str = DEFAULT_TAX_TYPE

    def calculation_options(self, include_breakdown: bool = False) -> CalculationOptions:
        """Build calculation options from these settings."""
        return CalculationOptions(
            tax_rate=self.tax_rate,
            currency=self.currency,
            decimal_places=self.decimal_places,
            rounding_mode=self.rounding_mode,
            include_breakdown=include_breakdown,
            tax_type=self.tax_type,
        )


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load settings from the environment.

    Reads INVOICER_CURRENCY, INVOICER_TAX_RATE, INVOICER_DECIMAL_PLACES,
    INVOICER_ROUNDING_MODE and INVOICER_TAX_TYPE. Values are only parsed
    here; calculation options are validated where they are used.

    Args:
        environ: Mapping to read instead of os.environ

    Raises:
        ValueError: If a numeric variable cannot be parsed
    """
    if environ is None:
        environ = os.environ
    defaults = Settings()

    def get(name: str) -> Optional[str]:
        value = environ.get(ENV_PREFIX + name)
        if value is None or not value.strip():
            return None
        return value.strip()

    tax_rate = get("TAX_RATE")
    decimal_places = get("DECIMAL_PLACES")
    try:
        places = defaults.decimal_places if decimal_places is None else int(decimal_places)
    except ValueError as e:
        raise ValueError(f"{ENV_PREFIX}DECIMAL_PLACES must be an integer, got '{decimal_places}'") from e

    return Settings(
        currency=(get("CURRENCY") or defaults.currency).upper(),
        tax_rate=defaults.tax_rate if tax_rate is None else parse_amount(tax_rate),
        decimal_places=places,
        rounding_mode=(get("ROUNDING_MODE") or defaults.rounding_mode).lower(),
        tax_type=get("TAX_TYPE") or defaults.tax_type,
    )
