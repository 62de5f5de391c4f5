"""Domain models for the CTP Cluj timetable service."""

from .line import Catalog, LineRecord, LineType
from .result import HttpError, Result
from .schedule import ParseIssue, ScheduleExtraction, StationDeparture

__all__ = [
    "Catalog",
    "LineRecord",
    "LineType",
    "HttpError",
    "Result",
    "ParseIssue",
    "ScheduleExtraction",
    "StationDeparture",
]
