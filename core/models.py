"""
Tidy data model: one row = one (indicator, country, year) observation.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple, Optional

from core.errors import InvalidInputError

# Serialization order for every export
TIDY_FIELDS: tuple[str, ...] = (
    "indicator_id",
    "indicator_name",
    "country_id",
    "country_name",
    "country_iso3",
    "year",
    "value",
    "unit",
    "obs_status",
    "decimal",
)


@dataclass(frozen=True)
class DataPoint:
    """A single observation retrieved from the World Bank API."""
    indicator_id: str
    indicator_name: str
    country_id: str          # typically ISO-2
    country_name: str
    country_iso3: str
    year: int
    value: Optional[float] = None
    unit: Optional[str] = None
    obs_status: Optional[str] = None
    decimal: Optional[int] = None

    @property
    def has_value(self) -> bool:
        return self.value is not None and math.isfinite(self.value)

    @property
    def finite_value(self) -> Optional[float]:
        """The value, or None when it is absent or NaN/±inf."""
        return self.value if self.has_value else None

    def as_record(self) -> dict:
        """Field dict in TIDY_FIELDS order, safe to hand to a serializer."""
        record = {name: getattr(self, name) for name in TIDY_FIELDS}
        record["value"] = self.finite_value
        return record


class GroupKey(NamedTuple):
    """Grouping key used in stats and plotting."""
    indicator_id: str
    country_iso3: str


@dataclass(frozen=True)
class DateSpec:
    """A single year or an inclusive year range for API queries."""
    start: int
    end: int

    def __post_init__(self):
        if self.start > self.end:
            raise InvalidInputError(
                f"invalid date range {self.start}:{self.end} (start after end)"
            )

    @classmethod
    def year(cls, year: int) -> "DateSpec":
        return cls(year, year)

    @classmethod
    def range(cls, start: int, end: int) -> "DateSpec":
        return cls(start, end)

    @classmethod
    def parse(cls, text: str) -> "DateSpec":
        """Parse `YYYY` or `YYYY:YYYY`."""
        raw = text.strip()
        try:
            if ":" in raw:
                a, b = raw.split(":", 1)
                return cls(int(a), int(b))
            return cls.year(int(raw))
        except ValueError as exc:
            if isinstance(exc, InvalidInputError):
                raise
            raise InvalidInputError(
                f"invalid date {text!r}, expected YYYY or YYYY:YYYY"
            ) from exc

    @property
    def is_single_year(self) -> bool:
        return self.start == self.end

    def to_query_param(self) -> str:
        if self.is_single_year:
            return str(self.start)
        return f"{self.start}:{self.end}"
