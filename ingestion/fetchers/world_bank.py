"""
World Bank Indicators API (v2) fetcher.

Endpoint: https://api.worldbank.org/v2/country/{codes}/indicator/{codes}
Docs: https://datahelpdesk.worldbank.org/knowledgebase/articles/889392

Notes:
- Responses are `[meta, [entry, ...]]`; pagination is followed until the
  reported page count, bounded by a hard cap.
- The API rejects multi-indicator requests without a `source` id. In that
  case each indicator is fetched on its own and the results concatenated in
  the order the indicators were given.
- Transient failures (network, timeouts, 5xx, 429) are retried on a fixed
  delay schedule; everything else fails on the first attempt.
- Records without a unit are back-filled from the indicator metadata
  endpoint; if that lookup fails the units simply stay empty.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional
from urllib.parse import quote

import httpx

from config.settings import CODE_SEPARATOR, RETRYABLE_4XX, Settings, load_settings
from core.errors import (
    FetchError,
    FetchInputError,
    HttpStatusError,
    InvalidInputError,
    MalformedResponseError,
    NetworkError,
    PageCapExceededError,
)
from core.models import DataPoint, DateSpec
from ingestion.fetchers.base import BaseFetcher
from ingestion.normalizer import (
    decode_optional_text,
    decode_text,
    normalize,
    parse_page_meta,
    split_payload,
)

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


def encode_codes(codes: Iterable[str]) -> str:
    """Percent-encode each code (keeping `-`, `_`, `.`) and join with `;`."""
    return CODE_SEPARATOR.join(quote(c.strip(), safe="-_.") for c in codes)


def _clean_codes(codes: Iterable[str], kind: str) -> list[str]:
    """Strip, reject blanks, drop duplicates (first occurrence wins)."""
    if isinstance(codes, str):
        codes = [codes]
    cleaned: list[str] = []
    for code in codes:
        if not isinstance(code, str) or not code.strip():
            raise FetchInputError(f"blank or non-string {kind} code: {code!r}", stage="validate")
        code = code.strip()
        if code not in cleaned:
            cleaned.append(code)
    if not cleaned:
        raise FetchInputError(f"at least one {kind} code required", stage="validate")
    return cleaned


def _needs_unit(point: DataPoint) -> bool:
    return point.unit is None or not point.unit.strip()


def _is_transient_status(status: int) -> bool:
    return status >= 500 or status in RETRYABLE_4XX


class WorldBankClient(BaseFetcher):
    """Fetches tidy indicator observations from the World Bank API."""

    provider_name = "world_bank"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFn = asyncio.sleep,
        concurrency: int = 1,
    ):
        if concurrency < 1:
            raise InvalidInputError(f"concurrency must be >= 1, got {concurrency}")
        self._settings = settings or load_settings()
        self._transport = transport
        self._sleep = sleep
        self._concurrency = concurrency

    @property
    def settings(self) -> Settings:
        return self._settings

    def _http(self) -> httpx.AsyncClient:
        s = self._settings
        return httpx.AsyncClient(
            timeout=httpx.Timeout(s.timeout, connect=s.connect_timeout),
            follow_redirects=True,
            max_redirects=s.max_redirects,
            headers={"User-Agent": s.user_agent},
            transport=self._transport,
        )

    # ─── Public API ──────────────────────────────────────────────────────────

    async def fetch(
        self,
        countries: Iterable[str],
        indicators: Iterable[str],
        date: Optional[DateSpec] = None,
        source: Optional[int] = None,
    ) -> list[DataPoint]:
        """
        Fetch observations for countries × indicators.

        Args:
            countries:  ISO-2/ISO-3 or aggregate codes ("DEU", "US", "EUU").
            indicators: Indicator ids ("SP.POP.TOTL").
            date:       Optional single year or inclusive range.
            source:     Optional source id (2 = WDI). Without it, multiple
                        indicators are fetched one at a time.

        Returns:
            DataPoints in API order, per indicator in the order requested.
        """
        country_list = _clean_codes(countries, "country")
        indicator_list = _clean_codes(indicators, "indicator")
        if isinstance(date, int) and not isinstance(date, bool):
            date = DateSpec.year(date)
        if date is not None and not isinstance(date, DateSpec):
            raise FetchInputError(f"date must be a DateSpec, got {date!r}", stage="validate")
        if source is not None and (isinstance(source, bool) or not isinstance(source, int)):
            raise FetchInputError(f"source must be an integer id, got {source!r}", stage="validate")

        async with self._http() as client:
            if len(indicator_list) > 1 and source is None:
                points = await self._fetch_each_indicator(
                    client, country_list, indicator_list, date
                )
            else:
                points = await self._fetch_pages(
                    client, country_list, indicator_list, date, source
                )

            if any(_needs_unit(p) for p in points):
                points = await self._enrich_units(client, points)

        logger.info(
            "World Bank: %s/%s → %d observations",
            CODE_SEPARATOR.join(country_list),
            CODE_SEPARATOR.join(indicator_list),
            len(points),
        )
        return points

    def fetch_blocking(
        self,
        countries: Iterable[str],
        indicators: Iterable[str],
        date: Optional[DateSpec] = None,
        source: Optional[int] = None,
    ) -> list[DataPoint]:
        """Synchronous wrapper around fetch() for callers without a loop."""
        return asyncio.run(self.fetch(countries, indicators, date, source))

    async def fetch_indicator_units(self, indicators: Iterable[str]) -> dict[str, str]:
        """
        Look up units for the given indicators in one batched request.

        Indicators without a (non-blank) unit are absent from the result.
        """
        if isinstance(indicators, str):
            indicators = [indicators]
        indicator_list = list(indicators)
        if not indicator_list:
            return {}
        indicator_list = _clean_codes(indicator_list, "indicator")
        async with self._http() as client:
            return await self._indicator_units(client, indicator_list)

    # ─── Fan-out ─────────────────────────────────────────────────────────────

    async def _fetch_each_indicator(
        self,
        client: httpx.AsyncClient,
        countries: list[str],
        indicators: list[str],
        date: Optional[DateSpec],
    ) -> list[DataPoint]:
        """One paginated fetch per indicator, reassembled in input order."""
        logger.debug(
            "No source id for %d indicators — fetching each separately", len(indicators)
        )
        if self._concurrency == 1:
            chunks = []
            for indicator in indicators:
                chunks.append(
                    await self._fetch_pages(client, countries, [indicator], date, None)
                )
        else:
            sem = asyncio.Semaphore(self._concurrency)

            async def _one(indicator: str) -> list[DataPoint]:
                async with sem:
                    return await self._fetch_pages(client, countries, [indicator], date, None)

            tasks = [asyncio.create_task(_one(i)) for i in indicators]
            try:
                chunks = await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        return [p for chunk in chunks for p in chunk]

    # ─── Pagination ──────────────────────────────────────────────────────────

    async def _fetch_pages(
        self,
        client: httpx.AsyncClient,
        countries: list[str],
        indicators: list[str],
        date: Optional[DateSpec],
        source: Optional[int],
    ) -> list[DataPoint]:
        s = self._settings
        url = (
            f"{s.base_url}/country/{encode_codes(countries)}"
            f"/indicator/{encode_codes(indicators)}"
        )
        params: dict[str, Any] = {"format": "json", "per_page": s.per_page}
        if date is not None:
            params["date"] = date.to_query_param()
        if source is not None:
            params["source"] = source
        context = {"indicators": indicators, "countries": countries, "url": url}

        out: list[DataPoint] = []
        page = 1
        while True:
            payload = await self._get_json(
                client, url, {**params, "page": page}, stage="data", page=page,
                indicators=indicators, countries=countries,
            )
            try:
                head, entries = split_payload(payload)
                meta = parse_page_meta(head)
            except MalformedResponseError as exc:
                raise type(exc)(exc.message, stage="decode", page=page, **context) from exc

            if meta.pages > s.max_pages:
                raise PageCapExceededError(
                    f"response reports {meta.pages} pages, cap is {s.max_pages}",
                    cap=s.max_pages, stage="paginate", page=page, **context,
                )

            out.extend(normalize(entries))
            logger.debug(
                "World Bank page %d/%d for %s: %d entries",
                page, meta.pages, CODE_SEPARATOR.join(indicators), len(entries),
            )
            if page >= meta.pages:
                break
            page += 1

        return out

    # ─── Units ───────────────────────────────────────────────────────────────

    async def _indicator_units(
        self, client: httpx.AsyncClient, indicators: list[str]
    ) -> dict[str, str]:
        url = f"{self._settings.base_url}/indicator/{encode_codes(indicators)}"
        payload = await self._get_json(
            client, url, {"format": "json", "per_page": self._settings.per_page},
            stage="units", indicators=indicators,
        )
        try:
            _, entries = split_payload(payload)
        except MalformedResponseError as exc:
            raise type(exc)(exc.message, stage="units", indicators=indicators, url=url) from exc

        units: dict[str, str] = {}
        for meta in entries:
            indicator_id = decode_text(meta.get("id"))
            unit = decode_optional_text(meta.get("unit"))
            if indicator_id and unit:
                units[indicator_id] = unit
        return units

    async def _enrich_units(
        self, client: httpx.AsyncClient, points: list[DataPoint]
    ) -> list[DataPoint]:
        """Back-fill missing units; a failed lookup leaves them empty."""
        missing_ids = list(dict.fromkeys(p.indicator_id for p in points if _needs_unit(p)))
        missing_ids = [i for i in missing_ids if i]
        if not missing_ids:
            return points
        try:
            units = await self._indicator_units(client, missing_ids)
        except FetchError as exc:
            logger.warning(
                "Unit enrichment failed for %s, keeping units empty: %s",
                CODE_SEPARATOR.join(missing_ids), exc,
            )
            return points

        return [
            dataclasses.replace(p, unit=units[p.indicator_id])
            if _needs_unit(p) and p.indicator_id in units
            else p
            for p in points
        ]

    # ─── HTTP ────────────────────────────────────────────────────────────────

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: dict[str, Any],
        *,
        stage: str,
        page: Optional[int] = None,
        indicators: Iterable[str] = (),
        countries: Iterable[str] = (),
    ) -> Any:
        """GET with bounded retries on transient failures; returns decoded JSON."""
        context = {
            "stage": stage,
            "page": page,
            "url": url,
            "indicators": tuple(indicators),
            "countries": tuple(countries),
        }
        delays = self._settings.retry_delays
        attempts = len(delays) + 1
        last_error: FetchError = NetworkError("no attempt made", **context)

        for attempt in range(1, attempts + 1):
            try:
                resp = await client.get(url, params=params)
            except httpx.TransportError as exc:
                last_error = NetworkError(f"network error: {exc!r}", **context)
            except httpx.RequestError as exc:
                raise NetworkError(f"request failed: {exc!r}", **context) from exc
            else:
                if resp.is_success:
                    try:
                        return resp.json()
                    except ValueError as exc:
                        raise MalformedResponseError(
                            f"response is not valid JSON: {exc}", **context
                        ) from exc
                status = resp.status_code
                error = HttpStatusError(
                    f"request failed with HTTP {status}", status=status, **context
                )
                if not _is_transient_status(status):
                    raise error
                last_error = error

            if attempt < attempts:
                delay = delays[attempt - 1]
                logger.warning(
                    "World Bank %s request attempt %d/%d failed (%s); retrying in %.1fs",
                    stage, attempt, attempts, last_error.message, delay,
                )
                await self._sleep(delay)

        raise last_error
