"""In-memory snapshot of the line catalogue and today's schedules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional

from ..config import settings
from ..models.line import Catalog, LineRecord, LineType
from ..models.schedule import StationDeparture


@dataclass(frozen=True)
class CacheSnapshot:
    """Immutable view of the last successful refresh."""

    lines: Mapping[str, LineRecord] = field(default_factory=lambda: MappingProxyType({}))
    schedules: Mapping[str, List[StationDeparture]] = field(default_factory=lambda: MappingProxyType({}))
    refreshed_at: Optional[datetime] = None

    @property
    def is_populated(self) -> bool:
        return self.refreshed_at is not None


class CacheService:
    """Holds the current snapshot and swaps it wholesale on refresh.

    Readers grab ``snapshot`` once and work on that object; ``replace`` never
    mutates a published snapshot, so no lock is needed for lookups.
    """

    def __init__(
        self,
        max_age_seconds: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._snapshot = CacheSnapshot()
        self._max_age = timedelta(
            seconds=settings.cache_max_age_seconds if max_age_seconds is None else max_age_seconds
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def snapshot(self) -> CacheSnapshot:
        return self._snapshot

    def replace(
        self,
        lines: Catalog,
        schedules: Dict[str, List[StationDeparture]],
        refreshed_at: Optional[datetime] = None,
    ) -> CacheSnapshot:
        """Publish a new snapshot built from copies of ``lines`` and ``schedules``."""
        snapshot = CacheSnapshot(
            lines=MappingProxyType(dict(lines)),
            schedules=MappingProxyType({key: list(value) for key, value in schedules.items()}),
            refreshed_at=refreshed_at or self._clock(),
        )
        self._snapshot = snapshot
        return snapshot

    def clear(self) -> None:
        """Drop everything back to the empty state."""
        self._snapshot = CacheSnapshot()

    def is_fresh(self, snapshot: Optional[CacheSnapshot] = None) -> bool:
        """Check whether a snapshot is populated and younger than the max age."""
        snapshot = snapshot or self._snapshot
        if snapshot.refreshed_at is None:
            return False
        return self._clock() - snapshot.refreshed_at <= self._max_age

    def _fresh_snapshot(self) -> Optional[CacheSnapshot]:
        snapshot = self._snapshot
        return snapshot if self.is_fresh(snapshot) else None

    def get_line(self, identifier: str) -> Optional[LineRecord]:
        """Get a cached line record if the snapshot is fresh."""
        snapshot = self._fresh_snapshot()
        if snapshot is None:
            return None
        return snapshot.lines.get(identifier)

    def get_schedule(self, identifier: str) -> Optional[List[StationDeparture]]:
        """Get a cached schedule if the snapshot is fresh."""
        snapshot = self._fresh_snapshot()
        if snapshot is None:
            return None
        return snapshot.schedules.get(identifier)

    def get_catalog(self, line_type: Optional[LineType] = None) -> Optional[Catalog]:
        """Get the cached catalogue, optionally filtered by line type."""
        snapshot = self._fresh_snapshot()
        if snapshot is None:
            return None
        return {
            identifier: record
            for identifier, record in snapshot.lines.items()
            if line_type is None or record.type == line_type
        }
