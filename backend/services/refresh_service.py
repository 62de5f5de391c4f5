"""Periodic repopulation of the line/schedule snapshot."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .cache_service import CacheService
from .line_service import LineService

logger = logging.getLogger("refresh")


class RefreshError(RuntimeError):
    """Raised inside a refresh run to abort it."""


@dataclass
class RefreshOutcome:
    """Summary of one refresh attempt."""

    succeeded: bool
    started_at: datetime
    finished_at: datetime
    lines: int = 0
    schedules: int = 0
    error: Optional[str] = None

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_ms": self.duration_ms,
            "lines": self.lines,
            "schedules": self.schedules,
            "error": self.error,
        }


class RefreshService:
    """Rebuild the snapshot with all-or-nothing semantics.

    Only one refresh runs at a time: a call made while a refresh is in
    flight waits for that refresh and receives its outcome.
    """

    def __init__(self, line_service: LineService, cache: Optional[CacheService] = None):
        self._line_service = line_service
        self._cache = cache or line_service.cache
        self._inflight: Optional[asyncio.Task] = None
        self.last_outcome: Optional[RefreshOutcome] = None
        self.last_success: Optional[RefreshOutcome] = None

    @property
    def is_running(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def refresh(self) -> RefreshOutcome:
        """Run a refresh, or join the one already running."""
        if not self.is_running:
            self._inflight = asyncio.create_task(self._run(), name="snapshot-refresh")
        else:
            logger.info("Refresh already in progress; joining it")
        return await asyncio.shield(self._inflight)

    async def _run(self) -> RefreshOutcome:
        started_at = datetime.now(timezone.utc)
        started = time.perf_counter()
        logger.info("Started data refresh")
        try:
            catalog, error = await self._line_service.fetch_catalog()
            if error:
                raise RefreshError(f"catalogue fetch failed: {error.message}")

            schedules, error = await self._line_service.fetch_schedules(catalog)
            if error:
                raise RefreshError(f"schedule fetch failed: {error.message}")

            snapshot = self._cache.replace(catalog, schedules)
        except Exception as exc:  # pylint: disable=broad-except
            if isinstance(exc, RefreshError):
                logger.error("Failed data refresh: %s", exc)
            else:
                logger.exception("Failed data refresh")
            outcome = RefreshOutcome(
                succeeded=False,
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
                error=str(exc),
            )
        else:
            outcome = RefreshOutcome(
                succeeded=True,
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
                lines=len(snapshot.lines),
                schedules=len(snapshot.schedules),
            )
            self.last_success = outcome
            logger.info(
                "Finished data refresh: %s lines, %s schedules in %.1fs",
                outcome.lines,
                outcome.schedules,
                time.perf_counter() - started,
            )
        self.last_outcome = outcome
        return outcome

    async def shutdown(self) -> None:
        """Cancel an in-flight refresh and wait for it to unwind."""
        task, self._inflight = self._inflight, None
        if task is None or task.done():
            return
        logger.info("Cancelling in-flight refresh")
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
