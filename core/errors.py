"""
Error taxonomy shared by the fetch, chart and export layers.

Every failure carries enough context (stage, indicators, countries, page,
url) to be diagnosed from its message alone.
"""
from __future__ import annotations

from typing import Optional, Sequence


class WbiError(Exception):
    """Base for every error raised by this package."""


class InvalidInputError(WbiError, ValueError):
    """Caller-supplied input is unusable; raised before any I/O."""


# ─── Fetch ───────────────────────────────────────────────────────────────────

class FetchError(WbiError):
    """A fetch against the World Bank API failed."""

    def __init__(
        self,
        message: str,
        *,
        stage: str = "fetch",
        indicators: Sequence[str] = (),
        countries: Sequence[str] = (),
        page: Optional[int] = None,
        url: Optional[str] = None,
    ):
        self.message = message
        self.stage = stage
        self.indicators = tuple(indicators)
        self.countries = tuple(countries)
        self.page = page
        self.url = url
        super().__init__(self._render())

    def _render(self) -> str:
        parts = [f"stage={self.stage}"]
        if self.indicators:
            parts.append("indicators=" + ";".join(self.indicators))
        if self.countries:
            parts.append("countries=" + ";".join(self.countries))
        if self.page is not None:
            parts.append(f"page={self.page}")
        if self.url:
            parts.append(f"url={self.url}")
        return f"{self.message} [{' '.join(parts)}]"


class FetchInputError(FetchError, InvalidInputError):
    """Empty country/indicator set or an inverted date range."""


class NetworkError(FetchError):
    """Connection failure or timeout that persisted through every retry."""


class HttpStatusError(FetchError):
    """The API answered with a non-success HTTP status."""

    def __init__(self, message: str, *, status: int, **context):
        self.status = status
        super().__init__(message, **context)


class MalformedResponseError(FetchError):
    """The response body does not have the expected JSON shape."""


class ApiMessageError(MalformedResponseError):
    """The API returned its `[{"message": ...}]` error payload."""


class PageCapExceededError(FetchError):
    """Pagination metadata claims more pages than the configured cap."""

    def __init__(self, message: str, *, cap: int, **context):
        self.cap = cap
        super().__init__(message, **context)


# ─── Plot ────────────────────────────────────────────────────────────────────

class PlotError(WbiError):
    """Chart rendering failed; no output file is left behind."""


class EmptyPlotError(PlotError):
    """Nothing finite to plot."""


class PlotInputError(PlotError, InvalidInputError):
    """Invalid chart parameter such as canvas size."""


class InvalidSpanError(PlotInputError):
    """LOESS span outside (0, 1]."""


class UnsupportedFormatError(PlotError, InvalidInputError):
    """Output extension maps to no known backend."""


class UnknownLocaleError(PlotError, InvalidInputError):
    """Locale code has no formatting rule."""


# ─── Export ──────────────────────────────────────────────────────────────────

class ExportError(WbiError):
    """Writing the tidy record set to disk failed."""


class UnsupportedExportFormatError(ExportError, InvalidInputError):
    """Export format is neither csv nor json."""
