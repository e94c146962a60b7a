"""
Ingestion pipeline: fetch → summarize → chart → export.

One request runs the phases in order against a single fetch client. The
pipeline can be awaited directly, or submitted to a worker thread so a
host (CLI, GUI, notebook) keeps its own thread responsive and receives
a Future with the outcome.

Domain failures never escape `submit_pipeline`: they are captured as the
typed WbiError in `PipelineResult.error`.
"""
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from config.settings import (
    DEFAULT_CHART_CONFIG,
    DEFAULT_HEIGHT,
    DEFAULT_LOESS_SPAN,
    DEFAULT_TITLE,
    DEFAULT_WIDTH,
    ChartConfig,
)
from core.errors import WbiError
from core.models import DataPoint, DateSpec
from ingestion.fetchers.base import BaseFetcher
from ingestion.fetchers.world_bank import WorldBankClient
from processing.statistics import Summary, grouped_summary
from production.export import resolve_format, save
from visualization.chart import DEFAULT_LEGEND_MODE, LegendMode, PlotKind, plot, prepare_plot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlotOptions:
    """Chart options carried by a request."""
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    locale: str = "en"
    legend_mode: LegendMode = DEFAULT_LEGEND_MODE
    title: Optional[str] = DEFAULT_TITLE
    kind: PlotKind = PlotKind.LINE
    loess_span: float = DEFAULT_LOESS_SPAN
    country_styles: bool = False


@dataclass(frozen=True)
class PipelineRequest:
    countries: tuple[str, ...]
    indicators: tuple[str, ...]
    date: Optional[DateSpec] = None
    source: Optional[int] = None
    stats: bool = False
    export_path: Optional[Path] = None
    export_format: Optional[str] = None
    plot_path: Optional[Path] = None
    plot_options: PlotOptions = field(default_factory=PlotOptions)


@dataclass
class PipelineResult:
    points: list[DataPoint] = field(default_factory=list)
    summaries: list[Summary] = field(default_factory=list)
    export_path: Optional[Path] = None
    chart_path: Optional[Path] = None
    error: Optional[WbiError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class IngestionPipeline:
    """
    Runs one request end to end.

    Usage:
        pipeline = IngestionPipeline()
        result = await pipeline.run(request)

        # From synchronous code, off the calling thread:
        future = submit_pipeline(request)
        result = future.result()
    """

    def __init__(
        self,
        fetcher: Optional[BaseFetcher] = None,
        chart_config: ChartConfig = DEFAULT_CHART_CONFIG,
    ):
        self._fetcher = fetcher or WorldBankClient()
        self._chart_config = chart_config

    def _validate(self, request: PipelineRequest) -> None:
        """Reject bad output options before any network I/O."""
        if request.export_path is not None:
            resolve_format(request.export_path, request.export_format)
        if request.plot_path is not None:
            opts = request.plot_options
            prepare_plot(
                request.plot_path,
                width=opts.width,
                height=opts.height,
                locale=opts.locale,
                legend_mode=opts.legend_mode,
                plot_kind=opts.kind,
                loess_span=opts.loess_span,
                config=self._chart_config,
            )

    async def run(self, request: PipelineRequest) -> PipelineResult:
        """Execute every requested phase; domain errors propagate."""
        self._validate(request)
        result = PipelineResult()

        logger.info("=" * 70)
        logger.info(
            "PIPELINE START: %d countries × %d indicators (%s)",
            len(request.countries), len(request.indicators),
            request.date.to_query_param() if request.date else "all years",
        )
        start_ts = datetime.now(timezone.utc)

        result.points = await self._fetcher.fetch(
            request.countries, request.indicators, date=request.date, source=request.source,
        )
        elapsed = (datetime.now(timezone.utc) - start_ts).total_seconds()
        logger.info("Fetch phase complete: %d records in %.1f seconds", len(result.points), elapsed)

        if request.stats:
            result.summaries = grouped_summary(result.points)

        if request.export_path is not None:
            result.export_path = save(result.points, request.export_path, request.export_format)

        if request.plot_path is not None:
            opts = request.plot_options
            result.chart_path = plot(
                result.points,
                request.plot_path,
                width=opts.width,
                height=opts.height,
                locale=opts.locale,
                legend_mode=opts.legend_mode,
                title=opts.title,
                plot_kind=opts.kind,
                loess_span=opts.loess_span,
                country_styles=opts.country_styles,
                config=self._chart_config,
            )

        logger.info("PIPELINE COMPLETE: %d records", len(result.points))
        logger.info("=" * 70)
        return result

    async def run_safe(self, request: PipelineRequest) -> PipelineResult:
        """Like run(), but a WbiError is returned in the result."""
        try:
            return await self.run(request)
        except WbiError as exc:
            logger.error("Pipeline failed: %s", exc)
            return PipelineResult(error=exc)


def submit_pipeline(
    request: PipelineRequest,
    pipeline: Optional[IngestionPipeline] = None,
    executor: Optional[ThreadPoolExecutor] = None,
) -> Future:
    """
    Run the pipeline on a worker thread and return a Future[PipelineResult].

    With no executor a single-use one is created and shut down once the
    task finishes. Unexpected (non-domain) exceptions surface through the
    Future as usual.
    """
    pipeline = pipeline or IngestionPipeline()
    owned = executor is None
    if owned:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="wbi-pipeline")
    # the coroutine is created on the worker, so a cancelled future leaves none behind
    future = executor.submit(lambda: asyncio.run(pipeline.run_safe(request)))
    if owned:
        executor.shutdown(wait=False)
    return future
