"""Timetable extraction from ctpcj.ro line detail pages."""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import List, Optional

from bs4 import BeautifulSoup

from ...models.schedule import ParseIssue, ScheduleExtraction, StationDeparture

logger = logging.getLogger("scraper")

TIMETABLE_SELECTOR = "table.tztable"

# Cells the site uses when a vehicle does not serve a station in a given wave.
_EMPTY_CELL_MARKERS = frozenset({"", "-", "–", "—"})


class TimeParseError(ValueError):
    """Raised when a timetable cell does not start with a valid HH:MM time."""


def table_index_for_day(day: date) -> int:
    """Weekday tables come first, then Saturday, then Sunday."""
    weekday = day.weekday()
    if weekday == 6:
        return 2
    if weekday == 5:
        return 1
    return 0


def parse_departure_time(text: str, now: datetime) -> datetime:
    """Combine the leading ``HH:MM`` of ``text`` with the date of ``now``."""
    candidate = text.strip()[:5]
    hours, separator, minutes = candidate.partition(":")
    hours, minutes = hours.strip(), minutes.strip()
    if not separator or not hours.isdigit() or not minutes.isdigit():
        raise TimeParseError(f"'{text}' is not a HH:MM time")
    hour, minute = int(hours), int(minutes)
    if hour > 23 or minute > 59:
        raise TimeParseError(f"'{text}' is out of range")
    return datetime.combine(now.date(), time(hour, minute), tzinfo=now.tzinfo)


def parse_schedule(html: str, now: datetime, *, line: Optional[str] = None) -> ScheduleExtraction:
    """Extract per-station departures for the service day of ``now``.

    The header cells of the selected table name the stations, every body
    row is one departure wave. Cells that hold no usable time are skipped
    and reported as issues instead of producing bogus timestamps.
    """
    soup = BeautifulSoup(html, "html.parser")
    tables = soup.select(TIMETABLE_SELECTOR)
    index = table_index_for_day(now.date())
    if index >= len(tables):
        logger.info("No timetable at index %s for line %s (found %s)", index, line, len(tables))
        return ScheduleExtraction(stations=[], table_index=index)

    table = tables[index]
    stations: List[StationDeparture] = [
        StationDeparture(station=header.get_text().strip()) for header in table.find_all("th")
    ]

    body = table.find("tbody")
    rows = body.find_all("tr") if body is not None else table.find_all("tr")

    issues: List[ParseIssue] = []
    for row_index, row in enumerate(rows):
        for column, cell in enumerate(row.find_all("td")):
            text = cell.get_text().strip()
            if text in _EMPTY_CELL_MARKERS:
                continue
            if column >= len(stations):
                issues.append(ParseIssue(row_index, column, text, "no matching station header"))
                continue
            try:
                departure = parse_departure_time(text, now)
            except TimeParseError as exc:
                issues.append(ParseIssue(row_index, column, text, str(exc)))
                continue
            stations[column].departures.append(departure)

    if issues:
        logger.warning(
            "Skipped %s unparseable timetable cells for line %s",
            len(issues),
            line,
            extra={"line": line, "issues": [issue.to_dict() for issue in issues[:10]]},
        )
    return ScheduleExtraction(stations=stations, issues=issues, table_index=index)
