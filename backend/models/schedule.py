"""Timetable models extracted from line detail pages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List


@dataclass
class StationDeparture:
    """Departure times of one station for the current service day."""

    station: str
    departures: List[datetime] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "station": self.station,
            "departures": [departure.isoformat() for departure in self.departures],
        }


@dataclass
class ParseIssue:
    """A timetable cell that was skipped because it held no usable time."""

    row: int
    column: int
    text: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.row, "column": self.column, "text": self.text, "reason": self.reason}


@dataclass
class ScheduleExtraction:
    """Structured output of the schedule extractor."""

    stations: List[StationDeparture]
    issues: List[ParseIssue] = field(default_factory=list)
    table_index: int = 0

    @property
    def departure_count(self) -> int:
        return sum(len(station.departures) for station in self.stations)
