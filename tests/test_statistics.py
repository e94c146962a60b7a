from __future__ import annotations
import math

import pytest

from core.errors import InvalidInputError, UnknownLocaleError
from core.formatting import format_number, resolve_locale
from core.models import DataPoint, GroupKey
from processing.statistics import Summary, format_summary_line, grouped_summary


def _point(indicator: str, iso3: str, year: int, value) -> DataPoint:
    return DataPoint(indicator, f"{indicator} name", iso3[:2], iso3.title(), iso3, year, value)


def test_grouped_summary_basic_statistics():
    points = [_point("SP.POP.TOTL", "DEU", 2010 + i, v) for i, v in enumerate([4.0, 1.0, 3.0, 2.0])]
    [s] = grouped_summary(points)
    assert s.key == GroupKey("SP.POP.TOTL", "DEU")
    assert (s.count, s.missing) == (4, 0)
    assert s.min == 1.0
    assert s.max == 4.0
    assert s.mean == pytest.approx(2.5)
    assert s.median == pytest.approx(2.5)


def test_grouped_summary_is_nan_safe():
    """NaN, ±inf and None count as missing and never reach min/max/mean/median."""
    values = [1.0, float("nan"), None, float("inf"), 3.0, float("-inf")]
    points = [_point("X", "USA", 2000 + i, v) for i, v in enumerate(values)]
    [s] = grouped_summary(points)
    assert s.count == 2
    assert s.missing == 4
    assert (s.min, s.max) == (1.0, 3.0)
    assert s.mean == pytest.approx(2.0)
    assert s.median == pytest.approx(2.0)


def test_values_near_float_limit_stay_finite():
    points = [_point("X", "USA", 2000 + i, v) for i, v in enumerate([1.7e308, 1.7e308, 1.6e308, 1.5e308])]
    [s] = grouped_summary(points)
    for v in (s.min, s.max, s.mean, s.median):
        assert math.isfinite(v)
    assert s.mean == pytest.approx(1.625e308)
    assert s.median == pytest.approx(1.65e308)

    [pair] = grouped_summary(points[:2])
    assert pair.mean == pytest.approx(1.7e308)
    assert pair.median == pytest.approx(1.7e308)


def test_all_zero_group():
    [s] = grouped_summary([_point("X", "USA", 2000 + i, 0.0) for i in range(3)])
    assert (s.min, s.max, s.mean, s.median) == (0.0, 0.0, 0.0, 0.0)


def test_all_missing_group_still_reported():
    points = [_point("X", "FRA", 2000, None), _point("X", "FRA", 2001, float("nan"))]
    [s] = grouped_summary(points)
    assert (s.count, s.missing) == (0, 2)
    assert s.min is None and s.max is None and s.mean is None and s.median is None


def test_grouped_summary_sorted_by_indicator_then_country():
    points = [
        _point("B", "USA", 2000, 1.0),
        _point("A", "USA", 2000, 1.0),
        _point("B", "DEU", 2000, 1.0),
        _point("A", "DEU", 2000, 1.0),
    ]
    keys = [s.key for s in grouped_summary(points)]
    assert keys == [("A", "DEU"), ("A", "USA"), ("B", "DEU"), ("B", "USA")]


def test_grouped_summary_empty_input():
    assert grouped_summary([]) == []


# ── Formatting ────────────────────────────────────────────────────────────────

def test_format_summary_line_uses_locale_and_na():
    summary = Summary(GroupKey("SP.POP.TOTL", "DEU"), 3, 0, 1234.5, 2000000.0, 1500.25, None)
    assert format_summary_line(summary, "en") == (
        "DEU • SP.POP.TOTL  count=3 missing=0  "
        "min=1,234.5 max=2,000,000 mean=1,500.25 median=NA"
    )
    assert "min=1.234,5" in format_summary_line(summary, "de")


def test_format_number_locales():
    assert format_number(1234567.891, resolve_locale("fr")) == "1 234 567,891"
    assert format_number(-1234.5, resolve_locale("en")) == "-1,234.5"
    assert format_number(12.5, resolve_locale("en"), decimals=2, trim=False) == "12.50"
    assert format_number(-0.00001, resolve_locale("en")) == "0"


@pytest.mark.parametrize("code, expected", [("de_DE", "de"), ("EN-us", "en"), ("us", "en"), ("German", "de")])
def test_resolve_locale_aliases_and_prefixes(code, expected):
    assert resolve_locale(code).code == expected


def test_unknown_locale_is_an_input_error():
    with pytest.raises(UnknownLocaleError):
        resolve_locale("xx")
    with pytest.raises(InvalidInputError):
        resolve_locale("")
