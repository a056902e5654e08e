"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
CSV_HEADER = ("timestamp", "user id", "postcode", "co2 ppm")


def _now() -> datetime:
    return datetime.now().replace(microsecond=0)


@dataclass(frozen=True, slots=True)
class Record:
    """A fully validated CO2 reading ready to be appended to the store.

    The capture timestamp is taken when the record is built, which is the
    moment the final field was accepted, and is truncated to whole seconds.
    """

    user_id: str
    postcode: str
    co2_ppm: float
    captured_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "user_id", self.user_id.strip())
        object.__setattr__(self, "postcode", self.postcode.strip().upper())
        object.__setattr__(self, "captured_at", self.captured_at.replace(microsecond=0))

    @property
    def timestamp(self) -> str:
        return self.captured_at.strftime(TIMESTAMP_FORMAT)

    def to_row(self) -> tuple[str, str, str, str]:
        return (self.timestamp, self.user_id, self.postcode, f"{self.co2_ppm:.2f}")
