"""
Base fetcher interface for indicator data providers.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Iterable, Optional
import logging

from core.models import DataPoint, DateSpec

logger = logging.getLogger(__name__)


class BaseFetcher(ABC):
    """Abstract base for indicator fetchers."""

    provider_name: str = "base"

    @abstractmethod
    async def fetch(
        self,
        countries: Iterable[str],
        indicators: Iterable[str],
        date: Optional[DateSpec] = None,
        source: Optional[int] = None,
    ) -> list[DataPoint]:
        """
        Fetch every observation for the given countries × indicators.
        Returns tidy DataPoints in request order; raises FetchError.
        """
        ...

    @abstractmethod
    async def fetch_indicator_units(self, indicators: Iterable[str]) -> dict[str, str]:
        """Map indicator id → unit string for indicators that declare one."""
        ...
