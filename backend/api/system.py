"""System endpoints for monitoring and controlling the snapshot refresh."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from ..services.line_service import LineService
from ..services.refresh_service import RefreshService
from ..workers.scheduler import RefreshScheduler
from .deps import get_line_service, get_refresh_service, get_scheduler, require_system_token

router = APIRouter()
logger = logging.getLogger("system")


@router.get("/status")
async def snapshot_status(
    line_service: LineService = Depends(get_line_service),
    refresh_service: RefreshService = Depends(get_refresh_service),
    scheduler: Optional[RefreshScheduler] = Depends(get_scheduler),
) -> Dict[str, Any]:
    cache = line_service.cache
    snapshot = cache.snapshot
    last_outcome = refresh_service.last_outcome
    return {
        "populated": snapshot.is_populated,
        "fresh": cache.is_fresh(snapshot),
        "refreshed_at": snapshot.refreshed_at.isoformat() if snapshot.refreshed_at else None,
        "lines": len(snapshot.lines),
        "schedules": len(snapshot.schedules),
        "refresh_running": refresh_service.is_running,
        "scheduler_running": bool(scheduler and scheduler.is_running),
        "last_refresh": last_outcome.to_dict() if last_outcome else None,
    }


@router.post("/refresh", dependencies=[Depends(require_system_token)])
async def trigger_refresh(
    wait: bool = Query(False, description="Wait for the refresh to finish and return its outcome"),
    refresh_service: RefreshService = Depends(get_refresh_service),
    scheduler: Optional[RefreshScheduler] = Depends(get_scheduler),
) -> Dict[str, Any]:
    if wait:
        outcome = await refresh_service.refresh()
        return {"status": "finished", "outcome": outcome.to_dict()}

    if scheduler is not None and scheduler.is_running:
        scheduler.trigger()
    else:
        # No scheduler loop to pick up the trigger; run the refresh directly.
        logger.info("Scheduler not running; refreshing inline")
        outcome = await refresh_service.refresh()
        return {"status": "finished", "outcome": outcome.to_dict()}
    return {"status": "queued"}
