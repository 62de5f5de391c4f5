"""Tests for cache-first lookups and live scraping."""

import asyncio

import pytest

from backend.models.line import LineRecord, LineType
from backend.models.schedule import StationDeparture
from backend.services.cache_service import CacheService
from backend.services.line_service import LineService
from backend.services.scrapers.ctp_catalog import LISTING_CONTAINER_SELECTOR, listing_url
from backend.services.scrapers.ctp_schedule import TIMETABLE_SELECTOR

from site_fixtures import (
    BASE_URL,
    DEFAULT_LINES,
    MONDAY,
    SATURDAY,
    FakeBrowser,
    build_site,
    detail_url,
    schedule_page,
    timetable,
)


@pytest.mark.asyncio
async def test_get_url_scrapes_listing_for_line_type(line_service, fake_browser):
    url, error = await line_service.get_url("24N")

    assert error is None
    assert url == detail_url("24N")
    assert fake_browser.calls == [(listing_url(LineType.NIGHT, BASE_URL), LISTING_CONTAINER_SELECTOR)]


@pytest.mark.asyncio
async def test_get_url_not_found(line_service):
    result = await line_service.get_url("404")

    assert result.ok is False
    assert result.value is None
    assert result.error.status == 404
    assert result.error.kind == "not_found"
    assert result.error.message == "Line 404 not found"


@pytest.mark.asyncio
async def test_get_url_empty_identifier_is_invalid(line_service, fake_browser):
    _, error = await line_service.get_url("")

    assert error.status == 400
    assert fake_browser.calls == []


@pytest.mark.asyncio
async def test_get_url_upstream_failure():
    browser = FakeBrowser(build_site(), failures=[listing_url(LineType.URBAN, BASE_URL)])
    service = LineService(browser, CacheService(), base_url=BASE_URL)

    _, error = await service.get_url("35")

    assert error.status == 500
    assert error.kind == "upstream_failure"
    assert "linii-urbane" in error.message


@pytest.mark.asyncio
async def test_get_url_cache_hit_skips_browser(refresh_service, line_service, fake_browser):
    outcome = await refresh_service.refresh()
    assert outcome.succeeded
    fake_browser.calls.clear()

    url, error = await line_service.get_url("35")

    assert error is None
    assert url == detail_url("35")
    assert fake_browser.calls == []


@pytest.mark.asyncio
async def test_get_schedule_live(line_service, fake_browser):
    stations, error = await line_service.get_schedule("35")

    assert error is None
    assert [station.station for station in stations] == ["Statia A", "Statia B"]
    assert [(d.hour, d.minute) for d in stations[0].departures] == [(6, 0), (7, 0)]
    assert fake_browser.calls[-1] == (detail_url("35"), TIMETABLE_SELECTOR)


@pytest.mark.asyncio
async def test_get_schedule_uses_current_day(fake_browser, cache):
    service = LineService(fake_browser, cache, base_url=BASE_URL, clock=lambda: SATURDAY)

    stations, error = await service.get_schedule("35")

    assert error is None
    assert [(d.hour, d.minute) for d in stations[0].departures] == [(8, 0)]


@pytest.mark.asyncio
async def test_get_schedule_not_found_propagates(line_service):
    stations, error = await line_service.get_schedule("404")

    assert stations is None
    assert error.status == 404


@pytest.mark.asyncio
async def test_get_schedule_cached_line_resolves_url_from_cache(fake_browser):
    cache = CacheService(max_age_seconds=3600)
    cache.replace({"35": LineRecord(url=detail_url("35"), type=LineType.URBAN)}, {})
    service = LineService(fake_browser, cache, base_url=BASE_URL, clock=lambda: MONDAY)

    stations, error = await service.get_schedule("35")

    assert error is None
    assert len(stations) == 2
    assert fake_browser.calls == [(detail_url("35"), TIMETABLE_SELECTOR)]


@pytest.mark.asyncio
async def test_get_schedule_cache_hit_skips_browser(fake_browser):
    cache = CacheService(max_age_seconds=3600)
    cached = [StationDeparture(station="Cached")]
    cache.replace({"35": LineRecord(url=detail_url("35"), type=LineType.URBAN)}, {"35": cached})
    service = LineService(fake_browser, cache, base_url=BASE_URL)

    stations, error = await service.get_schedule("35")

    assert error is None
    assert stations == cached
    assert fake_browser.calls == []


@pytest.mark.asyncio
async def test_get_schedule_timetable_missing_is_upstream_failure():
    pages = build_site()
    browser = FakeBrowser(pages, failures=[detail_url("35")])
    service = LineService(browser, CacheService(), base_url=BASE_URL, clock=lambda: MONDAY)

    _, error = await service.get_schedule("35")

    assert error.status == 500


@pytest.mark.asyncio
async def test_get_schedule_malformed_cells_are_skipped_not_failed():
    pages = build_site()
    pages[detail_url("35")] = schedule_page(
        timetable(["Statia A", "Statia B"], [["06:00", "6h10"], ["25:00", "07:10"]]),
    )
    service = LineService(FakeBrowser(pages), CacheService(), base_url=BASE_URL, clock=lambda: MONDAY)

    stations, error = await service.get_schedule("35")

    assert error is None
    assert [(d.hour, d.minute) for d in stations[0].departures] == [(6, 0)]
    assert [(d.hour, d.minute) for d in stations[1].departures] == [(7, 10)]


@pytest.mark.asyncio
async def test_fetch_catalog_merges_all_types(line_service, fake_browser):
    catalog, error = await line_service.get_catalog()

    assert error is None
    expected = {identifier for identifiers in DEFAULT_LINES.values() for identifier in identifiers}
    assert set(catalog) == expected
    assert catalog["M3E"].type == LineType.METROPOLITAN
    assert catalog["99B"].type == LineType.SUPERMARKET
    assert catalog["35"].stations is None
    assert sorted(url for url, _ in fake_browser.calls) == sorted(
        listing_url(line_type, BASE_URL) for line_type in LineType
    )


@pytest.mark.asyncio
async def test_fetch_catalog_first_error_fails_aggregate():
    failing = listing_url(LineType.EXPRESS, BASE_URL)
    browser = FakeBrowser(build_site(), failures=[failing])
    service = LineService(browser, CacheService(), base_url=BASE_URL)

    catalog, error = await service.get_catalog()

    assert catalog is None
    assert error.status == 500
    assert failing in error.message
    # Siblings still ran to completion.
    assert len(browser.calls) == len(LineType)


@pytest.mark.asyncio
async def test_fetch_catalog_collision_keeps_one_record():
    site = build_site({LineType.URBAN: ["35"], LineType.NIGHT: ["35"]})
    service = LineService(FakeBrowser(site), CacheService(), base_url=BASE_URL)

    catalog, error = await service.fetch_catalog()

    assert error is None
    assert list(catalog) == ["35"]
    assert catalog["35"].type in {LineType.URBAN, LineType.NIGHT}


@pytest.mark.asyncio
async def test_get_catalog_by_type_invalid(line_service, fake_browser):
    _, error = await line_service.get_catalog_by_type("tram")

    assert error.status == 400
    assert error.kind == "invalid_input"
    assert fake_browser.calls == []


@pytest.mark.asyncio
async def test_get_catalog_by_type_live(line_service, fake_browser):
    catalog, error = await line_service.get_catalog_by_type("Night")

    assert error is None
    assert set(catalog) == {"24N"}
    assert fake_browser.calls == [(listing_url(LineType.NIGHT, BASE_URL), LISTING_CONTAINER_SELECTOR)]


@pytest.mark.asyncio
async def test_get_catalog_by_type_is_subset_of_full_catalog(line_service):
    full, _ = await line_service.get_catalog()
    urban, error = await line_service.get_catalog_by_type(LineType.URBAN)

    assert error is None
    expected = {identifier: record for identifier, record in full.items() if record.type == LineType.URBAN}
    assert urban.keys() <= expected.keys()
    assert all(urban[identifier].url == expected[identifier].url for identifier in urban)


@pytest.mark.asyncio
async def test_get_catalog_from_cache_with_schedules(refresh_service, line_service, fake_browser):
    await refresh_service.refresh()
    fake_browser.calls.clear()

    catalog, error = await line_service.get_catalog(include_schedules=True)
    by_type, _ = await line_service.get_catalog_by_type("metropolitan")

    assert error is None
    assert fake_browser.calls == []
    assert [station.station for station in catalog["35"].stations] == ["Statia A", "Statia B"]
    assert set(by_type) == {"M12", "M3E"}
    # The snapshot itself is not modified by the join.
    assert line_service.cache.snapshot.lines["35"].stations is None


@pytest.mark.asyncio
async def test_get_catalog_by_type_from_cache_with_schedules(refresh_service, line_service, fake_browser):
    await refresh_service.refresh()
    fake_browser.calls.clear()

    catalog, error = await line_service.get_catalog_by_type("night", include_schedules=True)

    assert error is None
    assert fake_browser.calls == []
    assert [station.station for station in catalog["24N"].stations] == ["Statia A", "Statia B"]


@pytest.mark.asyncio
async def test_get_catalog_by_type_live_with_schedules(line_service, fake_browser):
    catalog, error = await line_service.get_catalog_by_type("express", include_schedules=True)

    assert error is None
    assert [(d.hour, d.minute) for d in catalog["3E"].stations[0].departures] == [(6, 0), (7, 0)]
    assert fake_browser.calls == [
        (listing_url(LineType.EXPRESS, BASE_URL), LISTING_CONTAINER_SELECTOR),
        (detail_url("3E"), TIMETABLE_SELECTOR),
    ]


@pytest.mark.asyncio
async def test_get_catalog_live_with_schedules_fails_on_first_error():
    browser = FakeBrowser(build_site(), failures=[detail_url("M12")])
    service = LineService(browser, CacheService(), base_url=BASE_URL, clock=lambda: MONDAY)

    plain, error = await service.get_catalog()
    assert error is None
    assert plain["M12"].stations is None

    catalog, error = await service.get_catalog(include_schedules=True)
    assert catalog is None
    assert error.status == 500


@pytest.mark.asyncio
async def test_stale_cache_falls_back_to_live_scrape(fake_browser):
    cache = CacheService(max_age_seconds=0)
    cache.replace({"35": LineRecord(url="https://stale.test/35", type=LineType.URBAN)}, {})
    await asyncio.sleep(0.01)
    service = LineService(fake_browser, cache, base_url=BASE_URL)

    url, error = await service.get_url("35")

    assert error is None
    assert url == detail_url("35")
    assert len(fake_browser.calls) == 1


@pytest.mark.asyncio
async def test_page_loads_are_bounded():
    active = 0
    peak = 0

    class _SlowBrowser(FakeBrowser):
        async def fetch_html(self, url, *, wait_for=None):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return await super().fetch_html(url, wait_for=wait_for)

    service = LineService(_SlowBrowser(build_site()), CacheService(), base_url=BASE_URL, max_concurrent_pages=2)

    _, error = await service.fetch_catalog()

    assert error is None
    assert peak == 2
