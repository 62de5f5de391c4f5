"""Cache-first lookups and live scraping of CTP line data."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, Hashable, List, Optional, Protocol, TypeVar, Union
from zoneinfo import ZoneInfo

from ..config import settings
from ..models.line import Catalog, LineType
from ..models.result import HttpError, Result
from ..models.schedule import StationDeparture
from .cache_service import CacheService
from .scrapers.browser import PageLoadError
from .scrapers.ctp_catalog import (
    LISTING_CONTAINER_SELECTOR,
    classify_line,
    find_line_url,
    listing_url,
    parse_catalog,
)
from .scrapers.ctp_schedule import TIMETABLE_SELECTOR, parse_schedule

logger = logging.getLogger("line_service")

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class PageSource(Protocol):
    """The slice of :class:`BrowserManager` the line service depends on."""

    async def fetch_html(self, url: str, *, wait_for: Optional[str] = None) -> str:
        ...


class LineNotFoundError(Exception):
    """Raised when a requested line code is not advertised on the site."""


def _default_clock() -> datetime:
    return datetime.now(ZoneInfo(settings.timezone))


def _join_schedules(catalog: Catalog, schedules: Dict[str, List[StationDeparture]]) -> Catalog:
    """Copy ``catalog`` with each record carrying its stations, if known."""
    return {
        identifier: dataclasses.replace(record, stations=schedules.get(identifier))
        for identifier, record in catalog.items()
    }


class LineService:
    """Resolve line URLs, schedules and catalogues.

    ``get_*`` methods consult the cache first and only scrape on a miss;
    ``fetch_*`` methods always scrape and are what the refresh uses. Every
    public method returns a :class:`Result` and never raises.
    """

    def __init__(
        self,
        browser: PageSource,
        cache: CacheService,
        *,
        base_url: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_concurrent_pages: Optional[int] = None,
    ):
        self._browser = browser
        self._cache = cache
        self._base_url = base_url or settings.ctp_base_url
        self._clock = clock or _default_clock
        limit = settings.max_concurrent_pages if max_concurrent_pages is None else max_concurrent_pages
        self._page_slots = asyncio.Semaphore(max(1, limit))

    @property
    def cache(self) -> CacheService:
        return self._cache

    # Cache-first lookups --------------------------------------------------------

    async def get_url(self, identifier: str) -> Result[str]:
        """Return the detail page URL of a line."""
        if not identifier:
            return Result.failure(HttpError.invalid_input("Line identifier is required"))
        record = self._cache.get_line(identifier)
        if record is not None:
            return Result.success(record.url)
        return await self.fetch_url(identifier)

    async def get_schedule(self, identifier: str) -> Result[List[StationDeparture]]:
        """Return today's per-station departures of a line."""
        if not identifier:
            return Result.failure(HttpError.invalid_input("Line identifier is required"))
        cached = self._cache.get_schedule(identifier)
        if cached is not None:
            return Result.success(cached)
        url, error = await self.get_url(identifier)
        if error:
            return Result.failure(error)
        return await self.fetch_schedule(identifier, url=url)

    async def get_catalog(self, include_schedules: bool = False) -> Result[Catalog]:
        """Return every advertised line, optionally with schedules joined in.

        Schedules come from the snapshot when it is fresh. On a miss they are
        scraped live along with the catalogue, one page per line.
        """
        cached = self._cache.get_catalog()
        if cached is None:
            return await self._live_catalog(self.fetch_catalog(), include_schedules)
        if include_schedules:
            cached = _join_schedules(cached, self._cache.snapshot.schedules)
        return Result.success(cached)

    async def get_catalog_by_type(
        self, line_type: Union[str, LineType], include_schedules: bool = False
    ) -> Result[Catalog]:
        """Return the lines advertised on one listing page."""
        try:
            resolved = line_type if isinstance(line_type, LineType) else LineType.parse(line_type)
        except ValueError as exc:
            return Result.failure(HttpError.invalid_input(str(exc)))
        cached = self._cache.get_catalog(resolved)
        if cached is None:
            return await self._live_catalog(self.fetch_catalog_for_type(resolved), include_schedules)
        if include_schedules:
            cached = _join_schedules(cached, self._cache.snapshot.schedules)
        return Result.success(cached)

    async def _live_catalog(self, fetch: Awaitable[Result[Catalog]], include_schedules: bool) -> Result[Catalog]:
        result = await fetch
        if result.error or not include_schedules:
            return result
        schedules, error = await self.fetch_schedules(result.value)
        if error:
            return Result.failure(error)
        return Result.success(_join_schedules(result.value, schedules))

    # Live scraping ----------------------------------------------------------------

    async def _load(self, url: str, wait_for: str) -> str:
        async with self._page_slots:
            return await self._browser.fetch_html(url, wait_for=wait_for)

    def _upstream_failure(self, action: str, exc: Exception) -> Result:
        if isinstance(exc, PageLoadError):
            logger.warning("%s failed: %s", action, exc)
            return Result.failure(HttpError.upstream_failure(str(exc)))
        logger.exception("%s failed unexpectedly", action)
        return Result.failure(HttpError.upstream_failure(f"{action} failed: {exc}"))

    async def fetch_catalog_for_type(self, line_type: LineType) -> Result[Catalog]:
        """Scrape the listing page of one line type."""
        url = listing_url(line_type, self._base_url)
        try:
            html = await self._load(url, LISTING_CONTAINER_SELECTOR)
            catalog = parse_catalog(html, line_type, url)
        except Exception as exc:  # pylint: disable=broad-except
            return self._upstream_failure(f"Fetching {line_type.value} lines", exc)
        logger.debug("Found %s %s lines", len(catalog), line_type.value)
        return Result.success(catalog)

    async def fetch_url(self, identifier: str) -> Result[str]:
        """Scrape the listing page matching ``identifier`` for its detail URL."""
        if not identifier:
            return Result.failure(HttpError.invalid_input("Line identifier is required"))
        url = listing_url(classify_line(identifier), self._base_url)
        try:
            html = await self._load(url, LISTING_CONTAINER_SELECTOR)
            line_url = find_line_url(html, identifier, url)
            if line_url is None:
                raise LineNotFoundError(f"Line {identifier} not found")
        except LineNotFoundError as exc:
            return Result.failure(HttpError.not_found(str(exc)))
        except Exception as exc:  # pylint: disable=broad-except
            return self._upstream_failure(f"Resolving line {identifier}", exc)
        return Result.success(line_url)

    async def fetch_schedule(self, identifier: str, url: Optional[str] = None) -> Result[List[StationDeparture]]:
        """Scrape today's timetable of a line, resolving its URL live when not given."""
        if url is None:
            url, error = await self.fetch_url(identifier)
            if error:
                return Result.failure(error)
        try:
            html = await self._load(url, TIMETABLE_SELECTOR)
            extraction = parse_schedule(html, self._clock(), line=identifier)
        except Exception as exc:  # pylint: disable=broad-except
            return self._upstream_failure(f"Fetching schedule of line {identifier}", exc)
        return Result.success(extraction.stations)

    async def fetch_catalog(self) -> Result[Catalog]:
        """Scrape all five listing pages concurrently and merge them."""
        per_type, error = await self._gather_first_error(
            {line_type: self.fetch_catalog_for_type(line_type) for line_type in LineType}
        )
        if error:
            return Result.failure(error)
        merged: Catalog = {}
        for catalog in per_type.values():
            merged.update(catalog)
        return Result.success(merged)

    async def fetch_schedules(self, catalog: Catalog) -> Result[Dict[str, List[StationDeparture]]]:
        """Scrape the schedule of every line in ``catalog`` concurrently."""
        return await self._gather_first_error(
            {
                identifier: self.fetch_schedule(identifier, url=record.url)
                for identifier, record in catalog.items()
            }
        )

    async def _gather_first_error(self, jobs: Dict[K, Awaitable[Result[V]]]) -> Result[Dict[K, V]]:
        """Run ``jobs`` concurrently and keep the first error in completion order.

        Siblings of a failed job are not cancelled; they finish and their
        results are dropped.
        """

        async def _keyed(key: K, job: Awaitable[Result[V]]):
            try:
                return key, await job
            except Exception as exc:  # pylint: disable=broad-except
                return key, self._upstream_failure(f"Job {key}", exc)

        values: Dict[K, V] = {}
        first_error: Optional[HttpError] = None
        for next_done in asyncio.as_completed([_keyed(key, job) for key, job in jobs.items()]):
            key, result = await next_done
            if result.error is not None:
                if first_error is None:
                    first_error = result.error
                continue
            values[key] = result.value

        if first_error is not None:
            return Result.failure(first_error)
        return Result.success(values)
