"""API routes for schedule information."""

from fastapi import APIRouter, Depends, Path
from typing import Any, Dict

from ..services.line_service import LineService
from .deps import get_line_service
from .lines import unwrap

router = APIRouter()


@router.get("/{line}")
async def get_schedule(
    line: str = Path(..., description="Line identifier (e.g. '35', 'M12', '24N')"),
    line_service: LineService = Depends(get_line_service),
) -> Dict[str, Any]:
    """
    Get today's timetable of a line.

    Weekday, Saturday or Sunday departures are selected from the current
    local day; each station lists its departures in timetable order.
    """
    identifier = line.strip().upper()
    stations = unwrap(await line_service.get_schedule(identifier))
    return {
        "line": identifier,
        "stations": [station.to_dict() for station in stations],
    }
