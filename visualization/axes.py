"""
Axis helpers: value scaling, unit detection, titles and tick labels.
"""
from __future__ import annotations

import math
from typing import Callable, Iterable, Optional, Sequence

from config.settings import DEFAULT_TITLE, LocaleRule
from core.formatting import format_number
from core.models import DataPoint
from visualization.text import estimate_text_width_px

AXIS_SCALES: tuple[tuple[float, str], ...] = (
    (1e12, "trillions"),
    (1e9, "billions"),
    (1e6, "millions"),
    (1e3, "thousands"),
)

PERCENT_WORDS = ("percent", "percentage", "per cent")

LEFT_LABEL_MIN_PX = 48
LEFT_LABEL_MAX_PX = 140
LEFT_LABEL_PAD_PX = 18


def choose_axis_scale(max_abs: float) -> tuple[float, str]:
    """Largest named scale not exceeding `max_abs`; (1, "") below a thousand."""
    for factor, word in AXIS_SCALES:
        if max_abs >= factor:
            return factor, word
    return 1.0, ""


def is_percentage_like(unit: Optional[str]) -> bool:
    if not unit:
        return False
    lowered = unit.lower()
    return "%" in lowered or any(w in lowered for w in PERCENT_WORDS)


def extract_unit_from_indicator_name(name: str) -> Optional[str]:
    """Text inside the last parenthesised group, e.g. "GDP (current US$)" → "current US$"."""
    close = name.rfind(")")
    if close < 0:
        return None
    open_ = name.rfind("(", 0, close)
    if open_ < 0:
        return None
    inner = name[open_ + 1:close].strip()
    return inner or None


def derive_axis_unit(points: Sequence[DataPoint]) -> Optional[str]:
    """
    The y-axis unit: the single distinct non-empty `unit` across the points,
    else for a single-indicator plot the parenthetical of its name.
    """
    units = {p.unit.strip() for p in points if p.unit and p.unit.strip()}
    if len(units) == 1:
        return units.pop()
    if len(units) > 1:
        return None
    indicator_ids = {p.indicator_id for p in points}
    if len(indicator_ids) == 1 and points:
        return extract_unit_from_indicator_name(points[0].indicator_name)
    return None


def axis_title(unit: Optional[str], scale_word: str) -> str:
    if unit and scale_word:
        return f"Value ({unit}, {scale_word})"
    if unit:
        return f"Value ({unit})"
    if scale_word:
        return f"Value ({scale_word})"
    return "Value"


def derive_title(title: Optional[str], indicator_names: Iterable[str]) -> str:
    """
    Keep an explicit title. For the default one, name the indicators:
    one name, up to three joined, or the first plus a count.
    """
    if title and title != DEFAULT_TITLE:
        return title
    names = sorted({n for n in indicator_names if n})
    if not names:
        return title or DEFAULT_TITLE
    if len(names) <= 3:
        return ", ".join(names)
    return f"{names[0]} + {len(names) - 1} more"


def tick_decimals(value: float) -> int:
    magnitude = abs(value)
    if magnitude >= 100:
        return 0
    if magnitude >= 10:
        return 1
    return 2


def tick_formatter(rule: LocaleRule) -> Callable[[float, int], str]:
    """A matplotlib FuncFormatter callback using the locale's separators."""
    def _format(value: float, _pos: int = 0) -> str:
        return format_number(value, rule, decimals=tick_decimals(value), trim=False)
    return _format


def left_label_area_px(lo: float, hi: float, rule: LocaleRule, font_px: float = 12, ticks: int = 10) -> int:
    """Width reserved for y tick labels, measured on evenly spaced samples."""
    if not (math.isfinite(lo) and math.isfinite(hi)):
        return LEFT_LABEL_MIN_PX
    fmt = tick_formatter(rule)
    widest = 0
    for i in range(ticks + 1):
        value = lo + (hi - lo) * i / ticks
        widest = max(widest, estimate_text_width_px(fmt(value), font_px))
    return max(LEFT_LABEL_MIN_PX, min(LEFT_LABEL_MAX_PX, widest + LEFT_LABEL_PAD_PX))
