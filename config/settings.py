"""
World Bank Indicators — Configuration

API endpoints, pagination/retry limits, plot defaults, the series palette
and the number-formatting rules per locale.
"""
from __future__ import annotations
from dataclasses import dataclass, field
import logging
import os

LOG_LEVEL = os.environ.get("WBI_LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)

VERSION = "0.3.0"

# ─── API ─────────────────────────────────────────────────────────────────────

WB_BASE_URL = os.environ.get("WBI_BASE_URL", "https://api.worldbank.org/v2")
USER_AGENT = f"wbi-py/{VERSION}"

PER_PAGE = 1000
MAX_PAGES = int(os.environ.get("WBI_MAX_PAGES", "1000"))

REQUEST_TIMEOUT = float(os.environ.get("WBI_TIMEOUT", "30"))
CONNECT_TIMEOUT = 10.0
MAX_REDIRECTS = 5

# Delay before each retry; len + 1 attempts in total
RETRY_DELAYS: tuple[float, ...] = (0.1, 0.3, 0.7)

# Rate limiting is the only 4xx worth retrying
RETRYABLE_4XX = frozenset({429})

# Separator the API expects between country / indicator codes
CODE_SEPARATOR = ";"

DEFAULT_START_YEAR = 2000
DEFAULT_END_YEAR = 2020


@dataclass(frozen=True)
class Settings:
    """Snapshot of the fetch configuration handed to the client."""
    base_url: str = WB_BASE_URL
    per_page: int = PER_PAGE
    max_pages: int = MAX_PAGES
    timeout: float = REQUEST_TIMEOUT
    connect_timeout: float = CONNECT_TIMEOUT
    max_redirects: int = MAX_REDIRECTS
    retry_delays: tuple[float, ...] = RETRY_DELAYS
    user_agent: str = USER_AGENT


def load_settings(**overrides) -> Settings:
    """Build a Settings from the module defaults plus keyword overrides."""
    return Settings(**overrides)


# ─── Plot Defaults ───────────────────────────────────────────────────────────

DEFAULT_WIDTH = 1000
DEFAULT_HEIGHT = 600
MIN_CANVAS_PX = 100
DEFAULT_TITLE = "World Bank Indicator(s)"
DEFAULT_LOESS_SPAN = 0.3
DEFAULT_DPI = 100

# Bundled with matplotlib, so rendering never depends on host fonts
FONT_FAMILY = "DejaVu Sans"

# Microsoft Office (2013+) chart series palette
OFFICE_PALETTE: tuple[str, ...] = (
    "#4472C4",  # blue
    "#ED7D31",  # orange
    "#A5A5A5",  # gray
    "#FFC000",  # gold
    "#5B9BD5",  # light blue
    "#70AD47",  # green
    "#264478",  # dark blue
    "#9E480E",  # dark orange
    "#636363",  # dark gray
    "#997300",  # brownish gold
)


# ─── Locales ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LocaleRule:
    """Number formatting conventions for one locale."""
    code: str
    thousands_sep: str
    decimal_sep: str


LOCALE_RULES: dict[str, LocaleRule] = {
    "en": LocaleRule("en", ",", "."),
    "de": LocaleRule("de", ".", ","),
    "fr": LocaleRule("fr", " ", ","),
    "es": LocaleRule("es", ".", ","),
    "it": LocaleRule("it", ".", ","),
    "pt": LocaleRule("pt", ".", ","),
    "nl": LocaleRule("nl", ".", ","),
}

LOCALE_ALIASES: dict[str, str] = {
    "us": "en",
    "german": "de",
}


@dataclass(frozen=True)
class ChartConfig:
    """Read-only rendering configuration passed into the chart engine."""
    palette: tuple[str, ...] = OFFICE_PALETTE
    locales: dict[str, LocaleRule] = field(default_factory=lambda: dict(LOCALE_RULES))
    aliases: dict[str, str] = field(default_factory=lambda: dict(LOCALE_ALIASES))
    font_family: str = FONT_FAMILY
    dpi: int = DEFAULT_DPI


DEFAULT_CHART_CONFIG = ChartConfig()
