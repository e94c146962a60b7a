"""
Series styling: palette assignment and country-consistent styles.

In country-consistent mode every country gets a base colour picked by a
hash of its ISO3 code alone, and each indicator varies the brightness,
marker and dash of that colour. Hashes use blake2b so styles
are identical across runs and processes.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Iterable, Sequence

import matplotlib.colors as mcolors

MARKERS: tuple[str, ...] = ("o", "s", "^", "D", "P", "X")   # circle square triangle diamond cross x
DASHES: tuple[str, ...] = ("-", "--", ":", "-.")             # solid dash dot dash-dot


@dataclass(frozen=True, order=True)
class SeriesKey:
    """Identity of one plotted series."""
    country_iso3: str
    indicator_id: str


@dataclass(frozen=True)
class SeriesStyle:
    color: str              # hex
    base_color: str         # country colour before brightness variation
    marker: str = "o"
    linestyle: str = "-"

    @property
    def base_hue(self) -> float:
        """Hue of the base colour in degrees [0, 360)."""
        return hue_of(self.base_color)


def stable_hash(text: str) -> int:
    digest = hashlib.blake2b(text.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big")


def hue_of(color: str) -> float:
    h, _, _ = mcolors.rgb_to_hsv(mcolors.to_rgb(color))
    return float(h) * 360.0


def adjust_brightness(color: str, factor: float) -> str:
    """Scale each RGB channel by `factor`, clamping to the valid range."""
    r, g, b = (round(c * 255) for c in mcolors.to_rgb(color))
    scaled = [min(255, max(0, int(c * factor))) for c in (r, g, b)]
    return "#{:02X}{:02X}{:02X}".format(*scaled)


def country_color(country_iso3: str, palette: Sequence[str]) -> str:
    return palette[stable_hash(country_iso3) % len(palette)]


def assign_default_styles(keys: Sequence[SeriesKey], palette: Sequence[str]) -> dict[SeriesKey, SeriesStyle]:
    """Cycle the palette over the series in display order."""
    styles = {}
    for i, key in enumerate(keys):
        color = palette[i % len(palette)]
        styles[key] = SeriesStyle(color=color, base_color=color)
    return styles


def assign_country_styles(keys: Iterable[SeriesKey], palette: Sequence[str]) -> dict[SeriesKey, SeriesStyle]:
    """
    Country-consistent styles.

    The base colour depends on the country code only, so a country keeps
    its hue in every chart whatever other countries or indicators it shows.
    """
    keys = list(keys)
    base = {c: country_color(c, palette) for c in {k.country_iso3 for k in keys}}

    styles = {}
    for key in keys:
        h = stable_hash(key.indicator_id)
        factor = 0.7 + 0.6 * ((h % 100) / 100.0)
        styles[key] = SeriesStyle(
            color=adjust_brightness(base[key.country_iso3], factor),
            base_color=base[key.country_iso3],
            marker=MARKERS[h % len(MARKERS)],
            linestyle=DASHES[(h >> 16) % len(DASHES)],
        )
    return styles
