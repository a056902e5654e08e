"""Field validators for the collection dialog."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Optional, Union

USER_ID_PATTERN = re.compile(r"^[a-zA-Z]{2}\d{8}$", re.ASCII)
POSTCODE_PATTERN = re.compile(r"^[A-Z]{1,2}\d{1,2}[A-Z]?\s?\d[A-Z]{2}$", re.ASCII)
_DECIMAL_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$", re.ASCII)

MIN_CO2_PPM = 0.0
MAX_CO2_PPM = 10000.0

_POSTCODE_ERROR = "Invalid UK postcode format. Examples: CF991SN, W1A 1AA, EC1A 1BB"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    value: Optional[Union[str, float]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: Union[str, float]) -> "ValidationResult":
        return cls(valid=True, value=value)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(valid=False, error=error)


class FieldValidator:
    """Stateless predicates for the three dialog fields.

    Each method takes the raw response text and returns the normalized value
    on success or a user-facing error message on failure.
    """

    def validate_user_id(self, raw: str) -> ValidationResult:
        candidate = raw.strip()
        if not candidate:
            return ValidationResult.fail("User ID cannot be empty")
        if not USER_ID_PATTERN.match(candidate):
            return ValidationResult.fail(
                "Invalid User ID format. Expected: 2 letters + 8 digits (e.g., st20308217)"
            )
        return ValidationResult.ok(candidate)

    def validate_postcode(self, raw: str) -> ValidationResult:
        candidate = raw.strip().upper()
        if not candidate:
            return ValidationResult.fail("Postcode cannot be empty")

        compact = re.sub(r"\s+", "", candidate)
        if not 5 <= len(compact) <= 7:
            return ValidationResult.fail(_POSTCODE_ERROR)
        # inward code is always the last three characters
        spaced = f"{compact[:-3]} {compact[-3:]}"
        if not POSTCODE_PATTERN.match(spaced):
            return ValidationResult.fail(_POSTCODE_ERROR)
        return ValidationResult.ok(candidate)

    def validate_co2(self, raw: str) -> ValidationResult:
        candidate = raw.strip()
        if not _DECIMAL_PATTERN.match(candidate):
            return ValidationResult.fail("CO2 must be a number")
        value = float(candidate)
        if not math.isfinite(value):
            return ValidationResult.fail("CO2 must be a number")
        if value < MIN_CO2_PPM:
            return ValidationResult.fail("CO2 reading cannot be negative")
        if value > MAX_CO2_PPM:
            return ValidationResult.fail(
                f"CO2 reading too high. Maximum: {MAX_CO2_PPM:.2f} ppm"
            )
        return ValidationResult.ok(value)

