"""Line catalogue models for CTP Cluj transit lines."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from backend.models.schedule import StationDeparture


class LineType(str, Enum):
    """Scheduling category governing which listing page advertises a line."""

    URBAN = "urban"
    METROPOLITAN = "metropolitan"
    NIGHT = "night"
    EXPRESS = "express"
    SUPERMARKET = "supermarket"

    @classmethod
    def parse(cls, value: str) -> "LineType":
        """Resolve a line type from its name (case-insensitive)."""
        normalized = (value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown line type '{value}'")


@dataclass
class LineRecord:
    """A transit line advertised on one of the listing pages."""

    url: str
    type: LineType
    stations: Optional[List["StationDeparture"]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"url": self.url, "type": self.type.value}
        if self.stations is not None:
            payload["stations"] = [station.to_dict() for station in self.stations]
        return payload

    def __repr__(self) -> str:
        return f"<LineRecord(type={self.type.value}, url={self.url})>"


Catalog = Dict[str, LineRecord]
