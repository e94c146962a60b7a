"""
Grouped descriptive statistics per (indicator_id, country_iso3).

- `count` is the number of finite values, `missing` the number of records
  whose value is absent or NaN/±inf; together they make up the group.
- min / max / mean / median are computed over finite values only and are
  all None when a group has none.
- Output is sorted lexicographically by (indicator_id, country_iso3).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import polars as pl

from config.settings import DEFAULT_CHART_CONFIG, ChartConfig
from core.formatting import format_optional, resolve_locale
from core.frames import to_frame
from core.models import DataPoint, GroupKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Summary:
    """Summary statistics for one (indicator, country) group."""
    key: GroupKey
    count: int
    missing: int
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    median: Optional[float] = None


def grouped_summary(points: Iterable[DataPoint]) -> list[Summary]:
    """Compute grouped statistics, sorted by (indicator_id, country_iso3)."""
    df = to_frame(points)
    if df.is_empty():
        return []

    # to_frame already maps NaN/±inf to null, so null == missing
    value = pl.col("value")
    # mean and median run on values divided by the largest magnitude so sums
    # of values near the float limit cannot overflow
    peak = value.abs().max()
    scale = pl.when(peak > 0).then(peak).otherwise(1.0)
    stats_df = (
        df.group_by(["indicator_id", "country_iso3"])
        .agg(
            value.is_not_null().sum().alias("count"),
            value.is_null().sum().alias("missing"),
            value.min().alias("min"),
            value.max().alias("max"),
            ((value / scale).mean() * scale).alias("mean"),
            ((value / scale).median() * scale).alias("median"),
        )
        .sort(["indicator_id", "country_iso3"])
    )

    summaries = [
        Summary(
            key=GroupKey(row["indicator_id"], row["country_iso3"]),
            count=int(row["count"]),
            missing=int(row["missing"]),
            min=row["min"],
            max=row["max"],
            mean=row["mean"],
            median=row["median"],
        )
        for row in stats_df.iter_rows(named=True)
    ]
    logger.debug("Summarized %d records into %d groups", df.height, len(summaries))
    return summaries


def format_summary_line(
    summary: Summary, locale: str = "en", config: ChartConfig = DEFAULT_CHART_CONFIG
) -> str:
    """One human-readable line with locale-formatted statistics."""
    rule = resolve_locale(locale, config)
    return (
        f"{summary.key.country_iso3} • {summary.key.indicator_id}  "
        f"count={summary.count} missing={summary.missing}  "
        f"min={format_optional(summary.min, rule)} "
        f"max={format_optional(summary.max, rule)} "
        f"mean={format_optional(summary.mean, rule)} "
        f"median={format_optional(summary.median, rule)}"
    )
