"""
Locale-aware number formatting shared by chart ticks and the stats printout.
"""
from __future__ import annotations

import math
from typing import Optional

from config.settings import DEFAULT_CHART_CONFIG, ChartConfig, LocaleRule
from core.errors import UnknownLocaleError


def resolve_locale(code: str, config: ChartConfig = DEFAULT_CHART_CONFIG) -> LocaleRule:
    """
    Find the formatting rule for a locale code.

    Codes are case-insensitive; `de_DE` / `de-AT` fall back to their
    language prefix. Unknown codes raise UnknownLocaleError.
    """
    tag = (code or "").strip().lower().replace("-", "_")
    tag = config.aliases.get(tag, tag)
    if tag in config.locales:
        return config.locales[tag]
    lang = tag.split("_", 1)[0]
    lang = config.aliases.get(lang, lang)
    if lang in config.locales:
        return config.locales[lang]
    known = ", ".join(sorted(config.locales))
    raise UnknownLocaleError(f"unknown locale {code!r} (known: {known})")


def format_number(value: float, rule: LocaleRule, decimals: int = 4, trim: bool = True) -> str:
    """
    Format with the locale's thousands and decimal separators.

    `trim` drops trailing fractional zeros (and the separator when nothing
    is left), e.g. 1234.5 → "1,234.5" (en) / "1.234,5" (de).
    """
    if not math.isfinite(value):
        return "NA"
    text = f"{abs(value):.{decimals}f}"
    int_part, _, frac = text.partition(".")
    if trim:
        frac = frac.rstrip("0")
    grouped = f"{int(int_part):,}".replace(",", rule.thousands_sep)
    is_zero = int(int_part) == 0 and not frac.strip("0")
    sign = "-" if value < 0 and not is_zero else ""
    if frac:
        return f"{sign}{grouped}{rule.decimal_sep}{frac}"
    return f"{sign}{grouped}"


def format_optional(value: Optional[float], rule: LocaleRule) -> str:
    """Absent or non-finite → "NA"."""
    if value is None:
        return "NA"
    return format_number(value, rule)
