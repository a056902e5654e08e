from __future__ import annotations

import pytest

from services.validation import FieldValidator


@pytest.fixture()
def validator() -> FieldValidator:
    return FieldValidator()


@pytest.mark.parametrize("raw, expected", [("ab12345678", "ab12345678"), ("  ST20308217 ", "ST20308217")])
def test_valid_user_ids_are_trimmed(validator: FieldValidator, raw: str, expected: str) -> None:
    result = validator.validate_user_id(raw)

    assert result.valid
    assert result.value == expected


@pytest.mark.parametrize(
    "raw",
    ["12345678ab", "a123456789", "ab1234567", "ab 12345678", "ab\u0661\u0662\u0663\u0664\u0665\u0666\u0667\u0668", "ab1234567\uff18"],
)
def test_invalid_user_ids_explain_expected_format(validator: FieldValidator, raw: str) -> None:
    result = validator.validate_user_id(raw)

    assert not result.valid
    assert result.error is not None and result.error.startswith("Invalid User ID format")


def test_empty_user_id(validator: FieldValidator) -> None:
    result = validator.validate_user_id("   ")

    assert not result.valid
    assert result.error == "User ID cannot be empty"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("cf99 1sn", "CF99 1SN"),
        ("CF991SN", "CF991SN"),
        (" W1A 1AA ", "W1A 1AA"),
        ("ec1a 1bb", "EC1A 1BB"),
    ],
)
def test_valid_postcodes_are_upper_cased(validator: FieldValidator, raw: str, expected: str) -> None:
    result = validator.validate_postcode(raw)

    assert result.valid
    assert result.value == expected


@pytest.mark.parametrize("raw", ["12345", "ABC", "CF99 1SNXX", "C 1SN", "CF99 SN1", "cf\u0669\u0669 1sn", "CF99 \u0661SN"])
def test_invalid_postcodes(validator: FieldValidator, raw: str) -> None:
    result = validator.validate_postcode(raw)

    assert not result.valid
    assert result.error is not None and result.error.startswith("Invalid UK postcode format")


def test_empty_postcode(validator: FieldValidator) -> None:
    assert validator.validate_postcode("").error == "Postcode cannot be empty"


@pytest.mark.parametrize("raw, expected", [("412.5", 412.5), (" 88.902 ", 88.902), ("0", 0.0), ("10000", 10000.0)])
def test_valid_readings(validator: FieldValidator, raw: str, expected: float) -> None:
    result = validator.validate_co2(raw)

    assert result.valid
    assert result.value == expected


@pytest.mark.parametrize("raw", ["abc", "", "nan", "inf", "1e999", "1_000", "12..5", "\u0664\u0661\u0662"])
def test_unparseable_readings(validator: FieldValidator, raw: str) -> None:
    result = validator.validate_co2(raw)

    assert not result.valid
    assert result.error == "CO2 must be a number"


def test_negative_reading(validator: FieldValidator) -> None:
    assert validator.validate_co2("-0.5").error == "CO2 reading cannot be negative"


def test_reading_above_maximum(validator: FieldValidator) -> None:
    assert validator.validate_co2("10000.01").error == "CO2 reading too high. Maximum: 10000.00 ppm"
