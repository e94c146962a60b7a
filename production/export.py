"""
Export the tidy record set to CSV or JSON.

Both writers emit the ten tidy fields in a fixed order, write atomically
and map NaN/±inf to an empty cell (CSV) or null (JSON). Text cells that a
spreadsheet would evaluate as a formula are prefixed with a quote.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import polars as pl

from core.errors import UnsupportedExportFormatError
from core.files import atomic_path
from core.frames import TIDY_SCHEMA, to_frame
from core.models import DataPoint

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "json")

# Leading characters that make spreadsheets treat a cell as a formula
FORMULA_PREFIX_PATTERN = r"^[=+\-@]"


def _guard_formulas(df: pl.DataFrame) -> pl.DataFrame:
    text_columns = [name for name, dtype in TIDY_SCHEMA.items() if dtype == pl.Utf8]
    return df.with_columns([
        pl.when(pl.col(name).str.contains(FORMULA_PREFIX_PATTERN))
        .then(pl.concat_str([pl.lit("'"), pl.col(name)]))
        .otherwise(pl.col(name))
        .alias(name)
        for name in text_columns
    ])


def save_csv(points: Sequence[DataPoint], path: Union[str, Path]) -> Path:
    """Write a header row plus one row per record."""
    path = Path(path)
    df = _guard_formulas(to_frame(points))
    with atomic_path(path) as tmp:
        df.write_csv(tmp)
    logger.info("Exported %d rows to %s", df.height, path)
    return path


def save_json(points: Sequence[DataPoint], path: Union[str, Path]) -> Path:
    """Write a JSON array of objects keyed by the tidy field names."""
    path = Path(path)
    records = [p.as_record() for p in points]
    with atomic_path(path) as tmp:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2, ensure_ascii=False, allow_nan=False)
    logger.info("Exported %d records to %s", len(records), path)
    return path


def resolve_format(path: Union[str, Path], fmt: Optional[str] = None) -> str:
    """Explicit format wins; otherwise the file extension decides."""
    chosen = (fmt or Path(path).suffix.lstrip(".")).lower()
    if chosen not in EXPORT_FORMATS:
        raise UnsupportedExportFormatError(
            f"unsupported export format {chosen or '(none)'!r} (use csv or json)"
        )
    return chosen


def save(points: Sequence[DataPoint], path: Union[str, Path], fmt: Optional[str] = None) -> Path:
    if resolve_format(path, fmt) == "json":
        return save_json(points, path)
    return save_csv(points, path)
