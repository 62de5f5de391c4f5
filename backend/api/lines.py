"""API routes for line information."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from ..models.result import Result
from ..services.line_service import LineService
from .deps import get_line_service

router = APIRouter()
public_router = APIRouter()


def _normalize_line(line: str) -> str:
    return line.strip().upper()


def unwrap(result: Result) -> Any:
    """Return the payload of ``result`` or raise the matching HTTP error."""
    value, error = result
    if error:
        raise HTTPException(status_code=error.status, detail=error.message)
    return value


@router.get("/")
async def get_lines(
    line_type: Optional[str] = Query(
        None,
        description="Filter by line type (urban, metropolitan, night, express, supermarket)",
    ),
    include_schedules: bool = Query(
        False,
        description="Join schedules into each line (scraped live when the cache is stale)",
    ),
    line_service: LineService = Depends(get_line_service),
) -> Dict[str, Any]:
    """Get the catalogue of advertised lines."""
    if line_type:
        catalog = unwrap(
            await line_service.get_catalog_by_type(line_type, include_schedules=include_schedules)
        )
    else:
        catalog = unwrap(await line_service.get_catalog(include_schedules=include_schedules))
    return {
        "lines": {identifier: record.to_dict() for identifier, record in catalog.items()},
        "count": len(catalog),
    }


@router.get("/{line}/url")
async def get_line_url(
    line: str = Path(..., description="Line identifier (e.g. '35', 'M12', '24N')"),
    line_service: LineService = Depends(get_line_service),
) -> Dict[str, str]:
    """Get the timetable page URL of a line."""
    identifier = _normalize_line(line)
    url = unwrap(await line_service.get_url(identifier))
    return {"line": identifier, "url": url}


@public_router.get("/url/{line}")
async def get_url_legacy(
    line: str,
    line_service: LineService = Depends(get_line_service),
) -> str:
    """Bare URL of a line (short public route)."""
    return unwrap(await line_service.get_url(_normalize_line(line)))


@public_router.get("/schedule/{line}")
async def get_schedule_legacy(
    line: str,
    line_service: LineService = Depends(get_line_service),
):
    """Bare station list of a line (short public route)."""
    stations = unwrap(await line_service.get_schedule(_normalize_line(line)))
    return [station.to_dict() for station in stations]
