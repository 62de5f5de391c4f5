"""Services wrapping the CTP website scrapers and the snapshot cache."""

from .cache_service import CacheService, CacheSnapshot
from .line_service import LineService, LineNotFoundError
from .refresh_service import RefreshOutcome, RefreshService

__all__ = [
    "CacheService",
    "CacheSnapshot",
    "LineService",
    "LineNotFoundError",
    "RefreshOutcome",
    "RefreshService",
]
