"""Unit tests for the record value type."""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime

import pytest

from models.records import Record


def test_record_normalizes_fields() -> None:
    record = Record(user_id="  ab12345678 ", postcode=" cf99 1sn ", co2_ppm=412.5)

    assert record.user_id == "ab12345678"
    assert record.postcode == "CF99 1SN"
    assert record.co2_ppm == 412.5


def test_record_row_formats_reading_to_two_decimals() -> None:
    record = Record(
        user_id="ab12345678",
        postcode="cf99 1sn",
        co2_ppm=412.5,
        captured_at=datetime(2024, 3, 1, 9, 30, 15, 987654),
    )

    assert record.to_row() == ("2024-03-01 09:30:15", "ab12345678", "CF99 1SN", "412.50")


def test_record_timestamp_is_taken_at_construction_without_microseconds() -> None:
    before = datetime.now().replace(microsecond=0)
    record = Record(user_id="ab12345678", postcode="W1A 1AA", co2_ppm=1.0)
    after = datetime.now()

    assert record.captured_at.microsecond == 0
    assert before <= record.captured_at <= after
    assert len(record.timestamp) == len("YYYY-MM-DD HH:MM:SS")


def test_record_is_immutable() -> None:
    record = Record(user_id="ab12345678", postcode="W1A 1AA", co2_ppm=1.0)

    with pytest.raises(FrozenInstanceError):
        record.co2_ppm = 2.0  # type: ignore[misc]
