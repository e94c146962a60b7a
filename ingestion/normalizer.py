"""
Normalizer — raw World Bank JSON entries → tidy DataPoint records.

The API is loosely typed: numbers arrive as strings, most fields are
nullable, and `per_page` flips between string and integer. Each field goes
through its own decoder so a bad value is mapped to "absent" (for data
fields) or rejected with the exact field path (for the envelope).
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from core.errors import ApiMessageError, MalformedResponseError
from core.models import DataPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageMeta:
    """Pagination metadata (position 0 of every response)."""
    page: int
    pages: int
    per_page: int
    total: int


# ─── Field Decoders ──────────────────────────────────────────────────────────

def decode_value(raw: Any) -> Optional[float]:
    """Numeric observation → finite float, or None for null/garbage/NaN/±inf."""
    if raw is None or isinstance(raw, bool):
        return None
    if not isinstance(raw, (int, float, str)):
        return None
    try:
        value = float(raw.strip() if isinstance(raw, str) else raw)
    except (ValueError, OverflowError):
        return None
    return value if math.isfinite(value) else None


def decode_text(raw: Any) -> str:
    if raw is None:
        return ""
    return str(raw)


def decode_optional_text(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    text = str(raw)
    return text if text.strip() else None


def decode_decimal(raw: Any) -> Optional[int]:
    """Decimal places: integer or integer-valued string/float, else None."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if raw.is_integer() else None
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError:
            return None
    return None


def decode_year(raw: Any) -> int:
    """`"2020"` → 2020; anything unparsable → 0 (ignored by the chart engine)."""
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return 0


def decode_code_name(raw: Any) -> tuple[str, str]:
    """`{"id": "DE", "value": "Germany"}` → ("DE", "Germany")."""
    if not isinstance(raw, dict):
        return "", ""
    return decode_text(raw.get("id")), decode_text(raw.get("value"))


def _decode_count(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool):
        raise MalformedResponseError(f"meta.{field_name} is a boolean", stage="decode")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        try:
            value = int(raw.strip())
        except ValueError as exc:
            raise MalformedResponseError(
                f"meta.{field_name} is not an integer: {raw!r}", stage="decode"
            ) from exc
    else:
        raise MalformedResponseError(
            f"meta.{field_name} has unexpected type {type(raw).__name__}", stage="decode"
        )
    if value < 0:
        raise MalformedResponseError(f"meta.{field_name} is negative: {value}", stage="decode")
    return value


# ─── Envelope ────────────────────────────────────────────────────────────────

def parse_page_meta(obj: Any) -> PageMeta:
    """Decode the metadata object; `per_page` may be a string or a number."""
    if not isinstance(obj, dict):
        raise MalformedResponseError("meta is not an object", stage="decode")
    missing = [k for k in ("page", "pages", "per_page", "total") if k not in obj]
    if missing:
        raise MalformedResponseError(
            f"meta is missing {', '.join(missing)}", stage="decode"
        )
    return PageMeta(
        page=_decode_count(obj["page"], "page"),
        pages=_decode_count(obj["pages"], "pages"),
        per_page=_decode_count(obj["per_page"], "per_page"),
        total=_decode_count(obj["total"], "total"),
    )


def split_payload(payload: Any) -> tuple[Any, list[dict]]:
    """
    Split a `[meta, [entry, ...]]` response into its two halves.

    The entries half may be missing or null (empty result). An error
    payload `[{"message": [...]}]` is raised as ApiMessageError.
    """
    if not isinstance(payload, list):
        raise MalformedResponseError(
            "unexpected response shape: not a top-level array", stage="decode"
        )
    if not payload:
        raise MalformedResponseError("unexpected response: empty array", stage="decode")

    head = payload[0]
    if isinstance(head, dict) and "message" in head:
        raise ApiMessageError(f"world bank api error: {head['message']}", stage="decode")

    if len(payload) < 2 or payload[1] is None:
        return head, []
    entries = payload[1]
    if not isinstance(entries, list):
        raise MalformedResponseError("payload[1] is not an array", stage="decode")
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise MalformedResponseError(f"payload[1][{i}] is not an object", stage="decode")
    return head, entries


# ─── Entries ─────────────────────────────────────────────────────────────────

def normalize_entry(entry: dict) -> DataPoint:
    """Map one raw API entry to a DataPoint."""
    indicator_id, indicator_name = decode_code_name(entry.get("indicator"))
    country_id, country_name = decode_code_name(entry.get("country"))
    return DataPoint(
        indicator_id=indicator_id,
        indicator_name=indicator_name,
        country_id=country_id,
        country_name=country_name,
        country_iso3=decode_text(entry.get("countryiso3code")),
        year=decode_year(entry.get("date")),
        value=decode_value(entry.get("value")),
        unit=decode_optional_text(entry.get("unit")),
        obs_status=decode_optional_text(entry.get("obs_status")),
        decimal=decode_decimal(entry.get("decimal")),
    )


def normalize(entries: Iterable[dict]) -> list[DataPoint]:
    """Normalize a sequence of raw entries, preserving order."""
    points = [normalize_entry(e) for e in entries]
    missing = sum(1 for p in points if p.value is None)
    if missing:
        logger.debug("Normalized %d entries (%d without a value)", len(points), missing)
    return points
