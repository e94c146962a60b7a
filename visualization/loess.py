"""
Locally weighted linear regression (LOESS) with tricube weights.

For every x, the k = max(2, ceil(span * n)) nearest points are weighted by
(1 - (d / d_max)^3)^3 and a weighted straight line is fitted; the fitted
value at x is the smoothed value. Degenerate neighbourhoods (all x equal)
fall back to the weighted mean.

When the neighbourhood is the whole series (k == n) the bandwidth is
unbounded: every point gets full weight and each fit is the same
least-squares line, so increasing data gives a non-decreasing curve
however the x values are spaced.
"""
from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from core.errors import InvalidSpanError, PlotInputError


def validate_span(span: float) -> float:
    try:
        value = float(span)
    except (TypeError, ValueError) as exc:
        raise InvalidSpanError(f"LOESS span must be a number, got {span!r}") from exc
    if not math.isfinite(value) or value <= 0.0 or value > 1.0:
        raise InvalidSpanError(f"LOESS span must be in (0, 1], got {span!r}")
    return value


def tricube(u: np.ndarray) -> np.ndarray:
    u = np.clip(np.abs(u), 0.0, 1.0)
    return (1.0 - u ** 3) ** 3


def loess_smooth(xs: Sequence[float], ys: Sequence[float], span: float) -> np.ndarray:
    """Smoothed values aligned with the input order."""
    span = validate_span(span)
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    if x.shape != y.shape:
        raise PlotInputError(f"LOESS needs equal-length inputs, got {x.size} and {y.size}")
    n = x.size
    if n < 3:
        return y.copy()

    k = min(n, max(2, math.ceil(span * n)))
    if k == n:
        w = np.ones(n)
        return np.array([_weighted_linear_at(x, y, w, x0) for x0 in x])

    fitted = np.empty(n)
    for i in range(n):
        dist = np.abs(x - x[i])
        nearest = np.argsort(dist, kind="stable")[:k]
        d = dist[nearest]
        d_max = d.max()
        if d_max > 0:
            w = tricube(d / d_max)
        else:
            w = np.ones(k)
        if w.sum() <= 0:
            w = np.ones(k)
        fitted[i] = _weighted_linear_at(x[nearest], y[nearest], w, x[i])
    return fitted


def _weighted_linear_at(x: np.ndarray, y: np.ndarray, w: np.ndarray, x0: float) -> float:
    sw = w.sum()
    x_mean = float((w * x).sum() / sw)
    y_mean = float((w * y).sum() / sw)
    sxx = float((w * (x - x_mean) ** 2).sum())
    if sxx <= 1e-12:
        return y_mean
    slope = float((w * (x - x_mean) * (y - y_mean)).sum()) / sxx
    return y_mean + slope * (x0 - x_mean)
