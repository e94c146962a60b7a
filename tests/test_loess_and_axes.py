from __future__ import annotations
import math

import numpy as np
import pytest

from config.settings import DEFAULT_TITLE
from core.errors import InvalidSpanError, PlotInputError
from core.formatting import resolve_locale
from core.models import DataPoint
from visualization.axes import (
    axis_title,
    choose_axis_scale,
    derive_axis_unit,
    derive_title,
    extract_unit_from_indicator_name,
    is_percentage_like,
    left_label_area_px,
    tick_decimals,
)
from visualization.loess import loess_smooth


# ── LOESS ─────────────────────────────────────────────────────────────────────

def test_loess_monotone_input_stays_monotone_at_full_span():
    xs = list(range(2000, 2015))
    ys = [2 * i + 0.1 * i * i for i in range(len(xs))]
    smoothed = loess_smooth(xs, ys, 1.0)
    assert np.all(np.diff(smoothed) >= 0)


def test_loess_monotone_on_irregular_years_at_full_span():
    rng = np.random.default_rng(7)
    for _ in range(200):
        n = int(rng.integers(3, 25))
        xs = 1960 + np.cumsum(rng.integers(1, 8, n))
        ys = 100 + np.cumsum(rng.uniform(0.01, 5.0, n) * rng.choice([1.0, 40.0], n))
        smoothed = loess_smooth(xs, ys, 1.0)
        assert np.all(np.diff(smoothed) >= -1e-9 * np.abs(smoothed).max())


def test_loess_follows_data_closer_at_small_span():
    xs = np.arange(2000, 2020, dtype=float)
    ys = np.where(xs < 2010, 0.0, 10.0)
    tight = loess_smooth(xs, ys, 0.2)
    wide = loess_smooth(xs, ys, 1.0)
    assert np.abs(tight - ys).sum() < np.abs(wide - ys).sum()


@pytest.mark.parametrize("span", [0.2, 0.5, 1.0])
def test_loess_reproduces_straight_line(span):
    xs = np.arange(10, dtype=float)
    ys = 3.0 * xs - 4.0
    assert np.allclose(loess_smooth(xs, ys, span), ys)


@pytest.mark.parametrize("span", [0.0, -0.1, 1.01, math.nan, "wide"])
def test_loess_rejects_span_outside_unit_interval(span):
    with pytest.raises(InvalidSpanError):
        loess_smooth([1, 2, 3], [1, 2, 3], span)


def test_loess_short_and_mismatched_input():
    assert list(loess_smooth([1, 2], [5.0, 6.0], 0.5)) == [5.0, 6.0]
    with pytest.raises(PlotInputError):
        loess_smooth([1, 2, 3], [1, 2], 0.5)


def test_loess_output_aligned_with_unsorted_input():
    xs = [3.0, 1.0, 2.0, 0.0]
    ys = [6.0, 2.0, 4.0, 0.0]
    assert np.allclose(loess_smooth(xs, ys, 1.0), ys)


# ── Axis helpers ──────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "max_abs, expected",
    [(2.5e12, (1e12, "trillions")), (3e9, (1e9, "billions")), (8e7, (1e6, "millions")),
     (1000, (1e3, "thousands")), (999.9, (1.0, ""))],
)
def test_choose_axis_scale(max_abs, expected):
    assert choose_axis_scale(max_abs) == expected


def test_percentage_detection():
    assert is_percentage_like("% of GDP")
    assert is_percentage_like("Percent")
    assert is_percentage_like("per cent of total")
    assert not is_percentage_like("current US$")
    assert not is_percentage_like(None)


def test_unit_extracted_from_last_parentheses():
    assert extract_unit_from_indicator_name("GDP (current US$)") == "current US$"
    assert extract_unit_from_indicator_name("Inflation, consumer prices (annual %)") == "annual %"
    assert extract_unit_from_indicator_name("Population, total") is None
    assert extract_unit_from_indicator_name("Broken (") is None


def _dp(indicator_id: str, name: str, unit=None) -> DataPoint:
    return DataPoint(indicator_id, name, "DE", "Germany", "DEU", 2020, 1.0, unit)


def test_derive_axis_unit():
    assert derive_axis_unit([_dp("A", "A", "people"), _dp("A", "A", " people ")]) == "people"
    assert derive_axis_unit([_dp("A", "A", "people"), _dp("B", "B", "US$")]) is None
    assert derive_axis_unit([_dp("G", "GDP (current US$)")]) == "current US$"
    assert derive_axis_unit([_dp("G", "GDP (current US$)"), _dp("P", "Pop (people)")]) is None
    assert derive_axis_unit([]) is None


def test_axis_title_variants():
    assert axis_title("current US$", "billions") == "Value (current US$, billions)"
    assert axis_title(None, "millions") == "Value (millions)"
    assert axis_title(None, "") == "Value"


def test_derive_title():
    assert derive_title("My chart", ["A"]) == "My chart"
    assert derive_title(DEFAULT_TITLE, ["GDP"]) == "GDP"
    assert derive_title(DEFAULT_TITLE, ["B", "A"]) == "A, B"
    assert derive_title(None, ["A", "B", "C", "D"]) == "A + 3 more"
    assert derive_title(DEFAULT_TITLE, []) == DEFAULT_TITLE


def test_tick_precision_and_label_area():
    assert [tick_decimals(v) for v in (250, -100, 12.5, 9.99, 0)] == [0, 0, 1, 2, 2]
    en = resolve_locale("en")
    assert left_label_area_px(0, 1, en) == 48
    assert left_label_area_px(0, 1e30, en) == 140
    assert 48 <= left_label_area_px(0, 1_000_000, en) <= 140
