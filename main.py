"""
World Bank Indicators — Main Entry Point

Fetches indicator series for a set of countries, then optionally:
1. Prints grouped summary statistics (locale-formatted)
2. Exports the tidy records to CSV or JSON
3. Renders a chart (line, scatter, area, stacked area, bars, LOESS)

Usage:
    # Population for Germany and the US, 2010-2020, saved as CSV
    python main.py get -c DEU,USA -i SP.POP.TOTL -d 2010:2020 --out pop.csv

    # Two indicators, stats in German number format, chart with legend on top
    python main.py get -c DEU;FRA -i NY.GDP.MKTP.CD;SP.POP.TOTL \\
        --stats --locale de --plot gdp.svg --legend top --country-styles

Exit codes: 0 success, 2 invalid input, 1 any other failure.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import re
import sys
from pathlib import Path
from typing import Optional, Sequence

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from config.settings import (
    DEFAULT_END_YEAR,
    DEFAULT_HEIGHT,
    DEFAULT_LOESS_SPAN,
    DEFAULT_START_YEAR,
    DEFAULT_TITLE,
    DEFAULT_WIDTH,
)
from core.errors import InvalidInputError, WbiError
from core.frames import to_frame
from core.models import DateSpec
from ingestion.fetchers.world_bank import WorldBankClient
from ingestion.pipeline import IngestionPipeline, PipelineRequest, PlotOptions
from processing.statistics import format_summary_line
from visualization.chart import LegendMode, PlotKind

logger = logging.getLogger("main")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_INPUT = 2

PREVIEW_ROWS = 10


def parse_codes(text: str) -> list[str]:
    """Split a comma or semicolon separated code list, dropping blanks."""
    return [c.strip() for c in re.split(r"[,;]", text) if c.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="World Bank Indicators client")
    sub = parser.add_subparsers(dest="command", required=True)

    get = sub.add_parser("get", help="Fetch indicator data, then save / plot / summarize")
    get.add_argument("-c", "--countries", required=True, help="Country codes, e.g. DEU,USA")
    get.add_argument("-i", "--indicators", required=True, help="Indicator ids, e.g. SP.POP.TOTL")
    get.add_argument(
        "-d", "--date", default=f"{DEFAULT_START_YEAR}:{DEFAULT_END_YEAR}",
        help="Year or range YYYY:YYYY (default %(default)s)",
    )
    get.add_argument("--source", type=int, default=None, help="Source id (2 = WDI)")
    get.add_argument("--out", type=Path, default=None, help="Export path (.csv or .json)")
    get.add_argument("--format", choices=["csv", "json"], default=None, help="Export format override")
    get.add_argument("--plot", type=Path, default=None, help="Chart path (.svg .png .pdf .eps .jpg)")
    get.add_argument("--width", type=int, default=DEFAULT_WIDTH)
    get.add_argument("--height", type=int, default=DEFAULT_HEIGHT)
    get.add_argument("--title", default=DEFAULT_TITLE)
    get.add_argument("--kind", choices=[k.value for k in PlotKind], default=PlotKind.LINE.value)
    get.add_argument("--loess-span", type=float, default=DEFAULT_LOESS_SPAN)
    get.add_argument(
        "--legend", choices=[m.value for m in LegendMode], default=LegendMode.RIGHT.value,
    )
    get.add_argument("--country-styles", action="store_true", help="Consistent colour per country")
    get.add_argument("--stats", action="store_true", help="Print grouped summary statistics")
    get.add_argument("--locale", default="en", help="Number format for stats and ticks")
    get.add_argument("--concurrency", type=int, default=1, help="Parallel per-indicator fetches")
    get.add_argument("-v", "--verbose", action="store_true")
    return parser


def build_request(args: argparse.Namespace) -> PipelineRequest:
    return PipelineRequest(
        countries=tuple(parse_codes(args.countries)),
        indicators=tuple(parse_codes(args.indicators)),
        date=DateSpec.parse(args.date),
        source=args.source,
        stats=args.stats,
        export_path=args.out,
        export_format=args.format,
        plot_path=args.plot,
        plot_options=PlotOptions(
            width=args.width,
            height=args.height,
            locale=args.locale,
            legend_mode=LegendMode(args.legend),
            title=args.title,
            kind=PlotKind(args.kind),
            loess_span=args.loess_span,
            country_styles=args.country_styles,
        ),
    )


async def run_get(args: argparse.Namespace) -> int:
    request = build_request(args)
    pipeline = IngestionPipeline(WorldBankClient(concurrency=args.concurrency))
    result = await pipeline.run(request)

    if request.stats:
        for summary in result.summaries:
            print(format_summary_line(summary, args.locale))

    if result.export_path:
        logger.info("  Export: %s", result.export_path)
    if result.chart_path:
        logger.info("  Chart:  %s", result.chart_path)

    if not (request.stats or result.export_path or result.chart_path):
        print(to_frame(result.points).head(PREVIEW_ROWS))
    return EXIT_OK


async def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        return await run_get(args)
    except InvalidInputError as exc:
        logger.error("Invalid input: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except WbiError as exc:
        logger.error("FAILED: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
