"""
Polars view of the tidy record set.
"""
from __future__ import annotations

from typing import Iterable

import polars as pl

from core.models import TIDY_FIELDS, DataPoint

TIDY_SCHEMA: dict[str, pl.DataType] = {
    "indicator_id": pl.Utf8,
    "indicator_name": pl.Utf8,
    "country_id": pl.Utf8,
    "country_name": pl.Utf8,
    "country_iso3": pl.Utf8,
    "year": pl.Int64,
    "value": pl.Float64,
    "unit": pl.Utf8,
    "obs_status": pl.Utf8,
    "decimal": pl.Int64,
}


def to_frame(points: Iterable[DataPoint]) -> pl.DataFrame:
    """
    Build a DataFrame with the fixed tidy schema and column order.
    Non-finite values become null.
    """
    records = [p.as_record() for p in points]
    columns = {name: [r[name] for r in records] for name in TIDY_FIELDS}
    return pl.DataFrame(columns, schema=TIDY_SCHEMA)
