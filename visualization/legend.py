"""
Legend layout for the panels drawn outside the plot area.

Layout is computed in pixels first (pure functions, so the band height can
be reserved before the axes are placed) and then drawn onto a dedicated
matplotlib axes whose data coordinates are panel pixels, origin top-left.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from visualization.text import estimate_text_width_px, truncate_to_width, wrap_text_to_width

FONT_PX = 14
LINE_H = FONT_PX + 2
ROW_GAP = 4
PAD_SMALL = 6
PAD_BAND = 8
MARKER_RADIUS = 4
MARKER_TO_TEXT_GAP = 12
TRAILING_GAP = 12
GLYPH_W = 16
ITEM_CAP_RATIO = 0.35
MIN_ITEM_CAP = 140
MIN_TEXT_W = 40
MIN_COL_W = 60
MIN_BAND_H = 40

BLOCK_OVERHEAD = MARKER_TO_TEXT_GAP + MARKER_RADIUS + TRAILING_GAP


@dataclass(frozen=True)
class LegendItem:
    label: str
    color: str
    marker: str = "o"
    linestyle: str = "-"


@dataclass
class PlacedItem:
    item: LegendItem
    text_x: float
    y_top: float
    lines: list[str]

    @property
    def y_center(self) -> float:
        return self.y_top + max(1, len(self.lines)) * LINE_H / 2


@dataclass
class LegendLayout:
    height: int
    placed: list[PlacedItem] = field(default_factory=list)
    hidden: int = 0     # items that did not fit


def _widest(lines: Sequence[str]) -> int:
    return max((estimate_text_width_px(line, FONT_PX) for line in lines), default=0)


def _block_width(label: str, cap: float) -> int:
    lines = wrap_text_to_width(label, FONT_PX, max(cap, MIN_TEXT_W))
    return BLOCK_OVERHEAD + _widest(lines)


# ─── Top / Bottom Bands ──────────────────────────────────────────────────────

def _pack_rows(labels: Sequence[str], start_x: float, usable: float, cap: float) -> list[list[int]]:
    rows: list[list[int]] = []
    current: list[int] = []
    x = start_x
    for idx, label in enumerate(labels):
        remaining = max(usable - x, MIN_TEXT_W)
        width = _block_width(label, min(remaining - BLOCK_OVERHEAD, cap))
        if x + width > usable and current:
            rows.append(current)
            current = []
            x = start_x
            width = _block_width(label, min(usable - start_x - BLOCK_OVERHEAD, cap))
        current.append(idx)
        x += width
    if current:
        rows.append(current)
    return rows


def layout_band(labels: Sequence[str], start_x: float, total_w: float) -> tuple[list[list[int]], list[float], list[float], int]:
    """
    Pack labels into rows of columns starting at `start_x`.

    Returns (rows, column text x positions, column text widths, band height).
    Each label is capped at 35% of the usable width (at least 140 px) and
    wrapped inside its column.
    """
    usable = total_w - PAD_SMALL
    cap = max(int((usable - start_x) * ITEM_CAP_RATIO), MIN_ITEM_CAP)
    rows = _pack_rows(labels, start_x, usable, cap)

    n_cols = max((len(r) for r in rows), default=1)
    col_w = [MIN_COL_W] * n_cols
    for row in rows:
        for ci, idx in enumerate(row):
            col_w[ci] = max(col_w[ci], _block_width(labels[idx], cap))
    if start_x + sum(col_w) > usable:
        uniform = max((usable - start_x) // n_cols, MIN_COL_W)
        col_w = [uniform] * n_cols

    col_x = []
    x = start_x
    for w in col_w:
        col_x.append(x + MARKER_RADIUS + MARKER_TO_TEXT_GAP)
        x += w
    col_text_w = [max(w - BLOCK_OVERHEAD, MIN_TEXT_W) for w in col_w]

    height = PAD_BAND
    for r, row in enumerate(rows):
        line_counts = [
            len(wrap_text_to_width(labels[idx], FONT_PX, col_text_w[ci]))
            for ci, idx in enumerate(row)
        ]
        height += max(LINE_H, max(line_counts) * LINE_H)
        if r < len(rows) - 1:
            height += ROW_GAP
    height += PAD_BAND
    return rows, col_x, col_text_w, max(int(height), MIN_BAND_H)


def band_height(labels: Sequence[str], start_x: float, total_w: float) -> int:
    """Height a top/bottom legend band needs, never below 40 px."""
    return layout_band(labels, start_x, total_w)[3]


def place_band(
    items: Sequence[LegendItem], start_x: float, total_w: float, max_height: int | None = None
) -> LegendLayout:
    """
    Place items row by row. With `max_height` the band is capped at that
    height; rows that would end below it are dropped and summarised as
    "+N more" in the last slot that still fits.
    """
    labels = [i.label for i in items]
    rows, col_x, col_text_w, height = layout_band(labels, start_x, total_w)
    if max_height is not None and height > max_height:
        height = max(int(max_height), PAD_BAND * 2 + LINE_H)
    bottom = height - PAD_BAND

    placed: list[PlacedItem] = []
    text_w: list[float] = []
    y = PAD_BAND
    for row in rows:
        row_h = max(
            LINE_H,
            max(len(wrap_text_to_width(labels[idx], FONT_PX, col_text_w[ci])) for ci, idx in enumerate(row)) * LINE_H,
        )
        if y + row_h > bottom:
            x, w = col_x[0], col_text_w[0]
            if placed and y + LINE_H > bottom:
                last = placed.pop()
                x, y, w = last.text_x, last.y_top, text_w.pop()
            hidden = len(items) - len(placed)
            more = truncate_to_width(f"+{hidden} more", FONT_PX, w)
            placed.append(PlacedItem(LegendItem(more, "none", marker=""), x, y, [more]))
            return LegendLayout(height=height, placed=placed, hidden=hidden)
        for ci, idx in enumerate(row):
            placed.append(PlacedItem(items[idx], col_x[ci], y, wrap_text_to_width(labels[idx], FONT_PX, col_text_w[ci])))
            text_w.append(col_text_w[ci])
        y += row_h + ROW_GAP
    return LegendLayout(height=height, placed=placed)


# ─── Right Column ────────────────────────────────────────────────────────────

def place_column(items: Sequence[LegendItem], width: float, height: float) -> LegendLayout:
    """
    Stack items vertically in a column `width` px wide. Items that would
    overflow the panel are dropped and summarised as "+N more".
    """
    text_x = PAD_SMALL + GLYPH_W + 8 + MARKER_TO_TEXT_GAP
    text_w = max(width - text_x - PAD_SMALL, MIN_TEXT_W)
    bottom = height - PAD_SMALL
    placed = []
    y = PAD_SMALL + 6
    for n, item in enumerate(items):
        lines = wrap_text_to_width(item.label, FONT_PX, text_w)
        block_h = max(1, len(lines)) * LINE_H
        if y + block_h > bottom:
            hidden = len(items) - n
            if placed and y + LINE_H > bottom:
                y = placed.pop().y_top
                hidden += 1
            more = truncate_to_width(f"+{hidden} more", FONT_PX, text_w)
            placed.append(PlacedItem(LegendItem(more, "none", marker=""), text_x, y, [more]))
            return LegendLayout(height=int(height), placed=placed, hidden=hidden)
        placed.append(PlacedItem(item, text_x, y, lines))
        y += block_h + ROW_GAP
    return LegendLayout(height=int(height), placed=placed)


# ─── Drawing ─────────────────────────────────────────────────────────────────

def draw_legend(ax, layout: LegendLayout, width: float, height: float, dpi: float, glyphs: bool = False) -> None:
    """
    Render a placed legend on `ax`, which is set up so that one data unit is
    one pixel of the panel. With `glyphs`, a short line sample in the
    series' dash style precedes the marker.
    """
    ax.set_xlim(0, width)
    ax.set_ylim(height, 0)
    ax.set_axis_off()
    font_pt = FONT_PX * 72.0 / dpi
    marker_pt = 2 * MARKER_RADIUS * 72.0 / dpi

    for placed in layout.placed:
        item = placed.item
        cy = placed.y_center
        marker_x = placed.text_x - MARKER_TO_TEXT_GAP
        if item.marker:
            if glyphs:
                ax.plot(
                    [marker_x - GLYPH_W, marker_x], [cy, cy],
                    color=item.color, linestyle=item.linestyle, linewidth=1.5, clip_on=False,
                )
            ax.plot(
                [marker_x], [cy], marker=item.marker if glyphs else "o",
                markersize=marker_pt, color=item.color, linestyle="none", clip_on=False,
            )
        for i, line in enumerate(placed.lines):
            ax.text(
                placed.text_x, placed.y_top + (i + 0.5) * LINE_H, line,
                ha="left", va="center", fontsize=font_pt, color="black", clip_on=False,
            )
