"""
Chart rendering for World Bank indicator series.

One series per (country, indicator), drawn as line, scatter, line+points,
area, stacked area, grouped bars or a LOESS curve. The backend follows the
file extension (.svg/.pdf/.eps vector, .png/.jpg/.jpeg raster) and the
file is written atomically.

Layout is done in pixels: the legend panel (right column or top/bottom
band) is reserved first, the remaining region holds title, y labels and
the axes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

import numpy as np

from config.settings import (
    DEFAULT_CHART_CONFIG,
    DEFAULT_HEIGHT,
    DEFAULT_LOESS_SPAN,
    DEFAULT_TITLE,
    DEFAULT_WIDTH,
    MIN_CANVAS_PX,
    ChartConfig,
    LocaleRule,
)
from core.errors import EmptyPlotError, PlotInputError, UnsupportedFormatError
from core.files import atomic_path
from core.formatting import resolve_locale
from core.models import DataPoint
from visualization.axes import (
    axis_title,
    choose_axis_scale,
    derive_axis_unit,
    derive_title,
    is_percentage_like,
    left_label_area_px,
    tick_formatter,
)
from visualization.legend import LegendItem, draw_legend, place_band, place_column
from visualization.loess import loess_smooth, validate_span
from visualization.styles import SeriesKey, SeriesStyle, assign_country_styles, assign_default_styles

logger = logging.getLogger(__name__)


class PlotKind(str, Enum):
    LINE = "line"
    SCATTER = "scatter"
    LINE_POINTS = "line-points"
    AREA = "area"
    STACKED_AREA = "stacked-area"
    GROUPED_BAR = "grouped-bar"
    LOESS = "loess"

    @classmethod
    def parse(cls, value: Union[str, "PlotKind"]) -> "PlotKind":
        try:
            return cls(value)
        except ValueError:
            known = ", ".join(k.value for k in cls)
            raise PlotInputError(f"unknown plot kind {value!r} (known: {known})") from None


class LegendMode(str, Enum):
    INSIDE = "inside"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"

    @classmethod
    def parse(cls, value: Union[str, "LegendMode"]) -> "LegendMode":
        try:
            return cls(value)
        except ValueError:
            known = ", ".join(m.value for m in cls)
            raise PlotInputError(f"unknown legend mode {value!r} (known: {known})") from None


DEFAULT_LEGEND_MODE = LegendMode.BOTTOM

VECTOR_FORMATS = {".svg": "svg", ".pdf": "pdf", ".eps": "eps"}
RASTER_FORMATS = {".png": "png", ".jpg": "jpeg", ".jpeg": "jpeg"}

# Layout (px)
MARGIN = 16
TITLE_PX = 44
X_AXIS_PX = 48
Y_TITLE_PX = 24
RIGHT_PAD = 24
RIGHT_LEGEND_SHARE = 0.15
MIN_AXES_PX = 10

# Font sizes (px)
TITLE_FONT_PX = 20
AXIS_FONT_PX = 14
TICK_FONT_PX = 12

GROUP_WIDTH = 0.8
AREA_ALPHA = 0.2
STACK_ALPHA = 0.35
LOESS_SUFFIX = " (LOESS)"


# ─── Series Assembly ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Series:
    key: SeriesKey
    country_name: str
    indicator_name: str
    label: str
    years: tuple[int, ...]
    values: tuple[float, ...]


def series_label(country: str, indicator: str, one_indicator: bool, one_country: bool) -> str:
    if one_indicator:
        return country
    if one_country:
        return indicator
    return f"{country} — {indicator}"


def build_series(points: Iterable[DataPoint]) -> list[Series]:
    """
    Group plottable points into series, years ascending.

    Points without a finite value or with an unknown year (0) are skipped.
    Series are ordered by country name, then indicator name.
    """
    groups: dict[SeriesKey, list[DataPoint]] = {}
    for p in points:
        if not p.has_value or p.year == 0:
            continue
        groups.setdefault(SeriesKey(p.country_iso3, p.indicator_id), []).append(p)

    one_indicator = len({k.indicator_id for k in groups}) == 1
    one_country = len({k.country_iso3 for k in groups}) == 1

    series = []
    for key, pts in groups.items():
        pts.sort(key=lambda p: p.year)
        country = pts[0].country_name or key.country_iso3
        indicator = pts[0].indicator_name or key.indicator_id
        series.append(Series(
            key=key,
            country_name=country,
            indicator_name=indicator,
            label=series_label(country, indicator, one_indicator, one_country),
            years=tuple(p.year for p in pts),
            values=tuple(float(p.value) for p in pts),
        ))
    series.sort(key=lambda s: (s.country_name, s.indicator_name, s.key))
    return series


def series_styles(
    series: Sequence[Series], country_consistent: bool = False, config: ChartConfig = DEFAULT_CHART_CONFIG
) -> dict[SeriesKey, SeriesStyle]:
    keys = [s.key for s in series]
    if country_consistent:
        return assign_country_styles(keys, config.palette)
    return assign_default_styles(keys, config.palette)


def stack_series(series: Sequence[Series], years: Sequence[int]) -> tuple[list[tuple[np.ndarray, np.ndarray]], dict[str, int]]:
    """
    Cumulative (lower, upper) bands on the shared year grid.

    Missing years count as 0 and negative values are clamped to 0 so the
    layers never cross. Returns the bands and, per series label, how many
    values were clamped.
    """
    grid = {year: i for i, year in enumerate(years)}
    cumulative = np.zeros(len(years))
    bands = []
    clamped: dict[str, int] = {}
    for s in series:
        layer = np.zeros(len(years))
        for year, value in zip(s.years, s.values):
            if value < 0:
                clamped[s.label] = clamped.get(s.label, 0) + 1
            layer[grid[year]] += max(value, 0.0)
        lower = cumulative
        cumulative = cumulative + layer
        bands.append((lower, cumulative))
    return bands, clamped


def bar_offsets(n: int, group_width: float = GROUP_WIDTH) -> tuple[list[float], float]:
    """Left-edge offsets from the year for `n` side-by-side bars, and the bar width."""
    if n <= 0:
        return [], 0.0
    width = group_width / n
    return [-group_width / 2 + i * width for i in range(n)], width


# ─── Option Validation ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class PlotSetup:
    path: Path
    fmt: str
    width: int
    height: int
    rule: LocaleRule
    legend_mode: LegendMode
    kind: PlotKind
    loess_span: float


def output_format(path: Path) -> str:
    suffix = Path(path).suffix.lower()
    if suffix in VECTOR_FORMATS:
        return VECTOR_FORMATS[suffix]
    if suffix in RASTER_FORMATS:
        return RASTER_FORMATS[suffix]
    known = ", ".join(sorted([*VECTOR_FORMATS, *RASTER_FORMATS]))
    raise UnsupportedFormatError(f"unsupported chart format {suffix or '(none)'!r} (use {known})")


def prepare_plot(
    path: Union[str, Path],
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    locale: str = "en",
    legend_mode: Union[str, LegendMode] = DEFAULT_LEGEND_MODE,
    plot_kind: Union[str, PlotKind] = PlotKind.LINE,
    loess_span: float = DEFAULT_LOESS_SPAN,
    config: ChartConfig = DEFAULT_CHART_CONFIG,
) -> PlotSetup:
    """Validate every chart option without touching data or disk."""
    path = Path(path)
    fmt = output_format(path)
    if int(width) < MIN_CANVAS_PX or int(height) < MIN_CANVAS_PX:
        raise PlotInputError(
            f"canvas {width}x{height} too small (minimum {MIN_CANVAS_PX}x{MIN_CANVAS_PX})"
        )
    return PlotSetup(
        path=path,
        fmt=fmt,
        width=int(width),
        height=int(height),
        rule=resolve_locale(locale, config),
        legend_mode=LegendMode.parse(legend_mode),
        kind=PlotKind.parse(plot_kind),
        loess_span=validate_span(loess_span),
    )


# ─── Public API ──────────────────────────────────────────────────────────────

def plot(
    points: Sequence[DataPoint],
    path: Union[str, Path],
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    locale: str = "en",
    legend_mode: Union[str, LegendMode] = DEFAULT_LEGEND_MODE,
    title: Optional[str] = DEFAULT_TITLE,
    plot_kind: Union[str, PlotKind] = PlotKind.LINE,
    loess_span: float = DEFAULT_LOESS_SPAN,
    country_styles: bool = False,
    config: ChartConfig = DEFAULT_CHART_CONFIG,
) -> Path:
    """
    Render `points` to `path` and return the path.

    Raises UnsupportedFormatError, UnknownLocaleError, PlotInputError /
    InvalidSpanError for bad options and EmptyPlotError when nothing is
    plottable. No file is left behind on error.
    """
    setup = prepare_plot(path, width, height, locale, legend_mode, plot_kind, loess_span, config)
    points = list(points)
    if not points:
        raise EmptyPlotError("no data to plot")
    series = build_series(points)
    if not series:
        raise EmptyPlotError("no finite values to plot")

    plotted = [p for p in points if p.has_value]
    chart_title = derive_title(title, (s.indicator_name for s in series))
    styles = series_styles(series, country_styles, config)

    with atomic_path(setup.path) as tmp:
        _render(tmp, setup, series, plotted, chart_title, styles, country_styles, config)

    logger.info(
        "Chart written: %s (%s, %d series, legend=%s)",
        setup.path, setup.kind.value, len(series), setup.legend_mode.value,
    )
    return setup.path


def plot_lines(points: Sequence[DataPoint], path: Union[str, Path], **kwargs) -> Path:
    """Line chart with default options."""
    return plot(points, path, plot_kind=PlotKind.LINE, **kwargs)


def plot_lines_locale(points: Sequence[DataPoint], path: Union[str, Path], locale: str, **kwargs) -> Path:
    """Line chart with locale-formatted tick labels."""
    return plot(points, path, locale=locale, plot_kind=PlotKind.LINE, **kwargs)


# ─── Rendering ───────────────────────────────────────────────────────────────

def _rc_params(config: ChartConfig) -> dict:
    return {
        "font.family": "sans-serif",
        "font.sans-serif": [config.font_family],
        "svg.fonttype": "path",
        "svg.hashsalt": "wbi",
        "pdf.fonttype": 42,
        "ps.fonttype": 42,
        "axes.unicode_minus": False,
    }


def _metadata(fmt: str) -> Optional[dict]:
    # No timestamps, so identical input renders identical vector files
    if fmt == "svg":
        return {"Date": None}
    if fmt == "pdf":
        return {"CreationDate": None}
    return None


def _px_to_pt(px: float, dpi: float) -> float:
    return px * 72.0 / dpi


def _value_extent(series: Sequence[Series], kind: PlotKind, span: float) -> tuple[list[np.ndarray], list[float]]:
    """Y values per series as drawn, plus the values that define the y range."""
    drawn = []
    for s in series:
        ys = np.asarray(s.values, dtype=float)
        if kind is PlotKind.LOESS:
            ys = loess_smooth(s.years, ys, span)
        drawn.append(ys)
    extent = [float(v) for ys in drawn for v in ys]
    if kind in (PlotKind.GROUPED_BAR, PlotKind.AREA, PlotKind.STACKED_AREA):
        extent.append(0.0)
    return drawn, extent


def _render(
    target: Path,
    setup: PlotSetup,
    series: Sequence[Series],
    plotted: Sequence[DataPoint],
    title: str,
    styles: dict[SeriesKey, SeriesStyle],
    glyphs: bool,
    config: ChartConfig,
) -> None:
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    from matplotlib.ticker import FuncFormatter, MaxNLocator

    W, H, dpi = setup.width, setup.height, config.dpi
    kind = setup.kind

    years = sorted({y for s in series for y in s.years})
    drawn, extent = _value_extent(series, kind, setup.loess_span)
    bands: list[tuple[np.ndarray, np.ndarray]] = []
    if kind is PlotKind.STACKED_AREA:
        bands, clamped = stack_series(series, years)
        for label, count in clamped.items():
            logger.warning("Stacked area: clamped %d negative value(s) of %s to zero", count, label)
        extent = [0.0, *(float(v) for v in bands[-1][1])]

    unit = derive_axis_unit(plotted)
    max_abs = max((abs(v) for v in extent), default=0.0)
    if is_percentage_like(unit):
        scale, scale_word = 1.0, ""
    else:
        scale, scale_word = choose_axis_scale(max_abs)

    labels = [s.label + (LOESS_SUFFIX if kind is PlotKind.LOESS else "") for s in series]
    items = [
        LegendItem(label, styles[s.key].color, styles[s.key].marker, styles[s.key].linestyle)
        for s, label in zip(series, labels)
    ]

    # ── layout in pixels ──
    lo = min(extent) / scale
    hi = max(extent) / scale
    plot_left = MARGIN + Y_TITLE_PX + left_label_area_px(lo, hi, setup.rule, TICK_FONT_PX)
    region_top, region_bottom, region_right = 0, H, W
    legend_rect = None
    layout = None
    mode = setup.legend_mode
    if mode is LegendMode.RIGHT:
        legend_w = W - int(W * (1 - RIGHT_LEGEND_SHARE))
        region_right = W - legend_w
        legend_rect = (region_right, 0, legend_w, H)
        layout = place_column(items, legend_w, H)
    elif mode in (LegendMode.TOP, LegendMode.BOTTOM):
        layout = place_band(items, plot_left, W, max_height=H // 2)
        band = layout.height
        if mode is LegendMode.TOP:
            region_top = band
            legend_rect = (0, 0, W, band)
        else:
            region_bottom = H - band
            legend_rect = (0, H - band, W, band)

    left = plot_left
    right = max(region_right - RIGHT_PAD, left + MIN_AXES_PX)
    top = region_top + MARGIN + TITLE_PX
    bottom = max(region_bottom - MARGIN - X_AXIS_PX, top + MIN_AXES_PX)

    with plt.rc_context(_rc_params(config)):
        fig = plt.figure(figsize=(W / dpi, H / dpi), dpi=dpi, facecolor="white")
        try:
            ax = fig.add_axes([left / W, 1 - bottom / H, (right - left) / W, (bottom - top) / H])

            if kind is PlotKind.STACKED_AREA:
                xs = np.asarray(years, dtype=float)
                for s, label, (lower, upper) in zip(series, labels, bands):
                    color = styles[s.key].color
                    ax.fill_between(xs, lower / scale, upper / scale, color=color, alpha=STACK_ALPHA,
                                    linewidth=0, label=label)
                    ax.plot(xs, upper / scale, color=color, linewidth=1)
            elif kind is PlotKind.GROUPED_BAR:
                offsets, bar_w = bar_offsets(len(series))
                for s, label, ys, offset in zip(series, labels, drawn, offsets):
                    xs = np.asarray(s.years, dtype=float) + offset
                    ax.bar(xs, ys / scale, width=bar_w, align="edge", color=styles[s.key].color, label=label)
            else:
                for s, label, ys in zip(series, labels, drawn):
                    _draw_series(ax, kind, np.asarray(s.years, dtype=float), ys / scale, styles[s.key], label)

            # ── axes ──
            x_min, x_max = years[0], years[-1]
            if kind is PlotKind.GROUPED_BAR:
                ax.set_xlim(x_min - 0.5, x_max + 0.5)
            elif x_min == x_max:
                ax.set_xlim(x_min - 1, x_max + 1)
            else:
                ax.set_xlim(x_min, x_max)
            ax.xaxis.set_major_locator(MaxNLocator(integer=True, nbins=10))
            ax.xaxis.set_major_formatter(FuncFormatter(lambda v, _pos: str(int(round(v)))))
            ax.yaxis.set_major_locator(MaxNLocator(nbins=10))
            ax.yaxis.set_major_formatter(FuncFormatter(tick_formatter(setup.rule)))

            tick_pt = _px_to_pt(TICK_FONT_PX, dpi)
            axis_pt = _px_to_pt(AXIS_FONT_PX, dpi)
            ax.tick_params(labelsize=tick_pt)
            ax.set_xlabel("Year", fontsize=axis_pt)
            ax.set_ylabel(axis_title(unit, scale_word), fontsize=axis_pt)
            ax.set_title(title, fontsize=_px_to_pt(TITLE_FONT_PX, dpi), pad=12)
            ax.grid(color="#D9D9D9", linewidth=0.6)
            ax.set_axisbelow(True)
            ax.spines["top"].set_visible(False)
            ax.spines["right"].set_visible(False)

            # ── legend ──
            if mode is LegendMode.INSIDE:
                ax.legend(loc="upper left", fontsize=tick_pt, frameon=True,
                          framealpha=0.85, edgecolor="black")
            elif legend_rect is not None and layout is not None:
                x, y, w, h = legend_rect
                legend_ax = fig.add_axes([x / W, 1 - (y + h) / H, w / W, h / H])
                draw_legend(legend_ax, layout, w, h, dpi, glyphs=glyphs and mode is LegendMode.RIGHT)

            fig.savefig(target, format=setup.fmt, dpi=dpi, facecolor="white", metadata=_metadata(setup.fmt))
        finally:
            plt.close(fig)


def _draw_series(ax, kind: PlotKind, xs: np.ndarray, ys: np.ndarray, style: SeriesStyle, label: str) -> None:
    if kind is PlotKind.SCATTER:
        ax.scatter(xs, ys, s=30, marker=style.marker, color=style.color, label=label)
    elif kind is PlotKind.LINE_POINTS:
        ax.plot(xs, ys, color=style.color, linestyle=style.linestyle, linewidth=2,
                marker=style.marker, markersize=5, label=label)
    elif kind is PlotKind.AREA:
        baseline = min(0.0, float(ys.min()))
        ax.fill_between(xs, ys, baseline, color=style.color, alpha=AREA_ALPHA, linewidth=0)
        ax.plot(xs, ys, color=style.color, linestyle=style.linestyle, linewidth=1.5, label=label)
    elif kind is PlotKind.LOESS:
        ax.plot(xs, ys, color=style.color, linestyle=style.linestyle, linewidth=3, label=label)
    else:
        ax.plot(xs, ys, color=style.color, linestyle=style.linestyle, linewidth=2, label=label)
