"""Daily scheduler that triggers snapshot refreshes."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple
from zoneinfo import ZoneInfo

from ..config import settings as app_settings
from ..services.cache_service import CacheService
from ..services.line_service import LineService
from ..services.refresh_service import RefreshService
from ..services.scrapers.browser import BrowserManager

logger = logging.getLogger("scheduler")


def seconds_until_next_run(now: datetime, hour: int, minute: int) -> float:
    """Seconds from ``now`` until the next occurrence of ``hour:minute``.

    The target is picked on the local wall clock of ``now`` but the wait is
    measured in UTC, so days when the UTC offset changes are not an hour off.
    """
    now_utc = now.astimezone(timezone.utc)
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0, fold=0)
    if target.astimezone(timezone.utc) <= now_utc:
        target += timedelta(days=1)
    return (target.astimezone(timezone.utc) - now_utc).total_seconds()


class RefreshScheduler:
    """Runs a refresh at startup, then once a day, plus on demand."""

    def __init__(
        self,
        refresh_service: RefreshService,
        *,
        run_at: Optional[Tuple[int, int]] = None,
        run_on_start: Optional[bool] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._refresh_service = refresh_service
        self._run_at = run_at or app_settings.refresh_hour_minute
        self._run_on_start = app_settings.refresh_on_startup if run_on_start is None else run_on_start
        self._clock = clock or (lambda: datetime.now(ZoneInfo(app_settings.timezone)))
        self._trigger_event = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background loop if not already running."""
        if self.is_running:
            return
        if self._run_on_start:
            self._trigger_event.set()
        self._task = asyncio.create_task(self._loop(), name="refresh-scheduler")
        hour, minute = self._run_at
        logger.info("Scheduler started; daily refresh at %02d:%02d", hour, minute)

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to exit."""
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Scheduler stopped")

    def trigger(self) -> None:
        """Request a refresh as soon as possible."""
        self._trigger_event.set()

    async def _loop(self) -> None:
        while True:
            delay = seconds_until_next_run(self._clock(), *self._run_at)
            try:
                await asyncio.wait_for(self._trigger_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
            self._trigger_event.clear()
            outcome = await self._refresh_service.refresh()
            if not outcome.succeeded:
                logger.warning("Scheduled refresh failed; keeping previous snapshot")


async def run_standalone(once: bool = False) -> None:
    """Run the scheduler (or a single refresh) outside the API process."""
    browser = BrowserManager()
    refresh_service = RefreshService(LineService(browser, CacheService()))
    try:
        if once:
            outcome = await refresh_service.refresh()
            logger.info("Refresh outcome: %s", outcome.to_dict())
            return
        scheduler = RefreshScheduler(refresh_service)
        scheduler.start()
        try:
            await asyncio.Event().wait()
        finally:
            await scheduler.stop()
    finally:
        await refresh_service.shutdown()
        await browser.close()


def main() -> None:
    import argparse

    from ..logging_utils import configure_logging

    parser = argparse.ArgumentParser(description="Refresh the CTP timetable snapshot.")
    parser.add_argument("--once", action="store_true", help="Run a single refresh and exit.")
    cli_args = parser.parse_args()

    configure_logging("scheduler", log_format="text")
    try:
        asyncio.run(run_standalone(once=cli_args.once))
    except KeyboardInterrupt:
        logger.info("Scheduler interrupted, shutting down.")


if __name__ == "__main__":
    main()
