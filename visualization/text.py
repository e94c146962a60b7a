"""
Font-independent text measurement for legend layout.

Width is estimated as characters × font size × 0.60, which is close enough
for DejaVu Sans to pack legend rows without asking the renderer.
"""
from __future__ import annotations

import math

CHAR_WIDTH_RATIO = 0.60
ELLIPSIS = "…"


def estimate_text_width_px(text: str, font_px: float) -> int:
    # round off float noise before ceil
    return int(math.ceil(round(len(text) * font_px * CHAR_WIDTH_RATIO, 6)))


def truncate_to_width(text: str, font_px: float, max_px: float) -> str:
    """Cut `text` so it fits in `max_px`, ending with an ellipsis when cut."""
    if estimate_text_width_px(text, font_px) <= max_px:
        return text
    out = ""
    for ch in text:
        if estimate_text_width_px(out + ch, font_px) > max_px:
            break
        out += ch
    if not out:
        return ""
    if estimate_text_width_px(out + ELLIPSIS, font_px) <= max_px:
        return out + ELLIPSIS
    if len(out) > 1:
        return out[:-1] + ELLIPSIS
    return out


def wrap_text_to_width(text: str, font_px: float, max_px: float) -> list[str]:
    """
    Greedy word wrap. Words wider than a full line are hard-broken and the
    last piece carries over onto the next line.
    """
    lines: list[str] = []
    current = ""

    def fits(candidate: str) -> bool:
        return estimate_text_width_px(candidate, font_px) <= max_px

    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if fits(candidate):
            current = candidate
            continue
        if current:
            lines.append(current)
            current = ""
        if fits(word):
            current = word
            continue
        # hard break
        piece = ""
        for ch in word:
            if fits(piece + ch) or not piece:
                piece += ch
            else:
                lines.append(piece)
                piece = ch
        current = piece

    if current or not lines:
        lines.append(current)
    return lines
