"""
gatekeep.engine.metrics_cache — TTL Cache for Moderator Metrics
================================================================

Per-guild, time-boxed read path in front of ``mod_metrics``.

A hit inside the TTL returns the stored snapshot.  A miss, an expired
entry or ``force_refresh=True`` runs a full recalculation and stores the
fresh result.  The aggregator calls :meth:`MetricsCache.invalidate` after
its writes commit, so the next read always sees them.

The lock only guards the dict.  Two concurrent misses for the same guild
may both recalculate; recalculation is an idempotent overwrite, so the
duplicate work is harmless.

Usage::

    cache = MetricsCache(engine, ttl_seconds=cfg.metrics_cache_ttl_seconds)
    rows = cache.get(guild_id)
    top = cache.get_top_moderators(guild_id, sort_by="response_time", limit=5)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from gatekeep.services.metrics_service import ModeratorMetrics, read_metrics, recalculate

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
SORT_KEYS = ("accepts", "claims", "response_time")


@dataclass(frozen=True, slots=True)
class _Entry:
    rows: tuple[ModeratorMetrics, ...]
    computed_at: float


def _sort_key(sort_by: str) -> Callable[[ModeratorMetrics], tuple]:
    if sort_by == "accepts":
        return lambda m: (-m.total_accepts, m.moderator_id)
    if sort_by == "claims":
        return lambda m: (-m.total_claims, m.moderator_id)
    # Fastest first; moderators without samples go last.
    return lambda m: (
        m.avg_response_time_s is None,
        m.avg_response_time_s or 0.0,
        m.moderator_id,
    )


class MetricsCache:
    """Thread-safe per-guild metrics cache.

    Construct once at startup and pass it to whatever needs metrics (cogs,
    the refresh loop, :func:`~gatekeep.services.metrics_service.recalculate`).
    *clock* and *ttl_overrides* are injectable for tests.
    """

    def __init__(
        self,
        engine: Engine,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        ttl_overrides: dict[int, float] | None = None,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self._engine = engine
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[int, _Entry] = {}
        # guild_id → TTL replacing the default
        self._ttl_overrides: dict[int, float] = dict(ttl_overrides or {})

    # -------------------------------------------------------------------
    # TTL
    # -------------------------------------------------------------------
    def ttl_for(self, guild_id: int) -> float:
        with self._lock:
            return self._ttl_overrides.get(guild_id, self._ttl)

    def set_ttl(self, guild_id: int, ttl_seconds: float | None) -> None:
        """Override one guild's TTL; ``None`` restores the default."""
        with self._lock:
            if ttl_seconds is None:
                self._ttl_overrides.pop(guild_id, None)
            else:
                self._ttl_overrides[guild_id] = ttl_seconds

    # -------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------
    def _fresh_entry(self, guild_id: int) -> _Entry | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(guild_id)
            ttl = self._ttl_overrides.get(guild_id, self._ttl)
        if entry is None or now - entry.computed_at >= ttl:
            return None
        return entry

    def _recompute(self, guild_id: int) -> tuple[ModeratorMetrics, ...]:
        recalculate(self._engine, guild_id)
        rows = tuple(read_metrics(self._engine, guild_id))
        with self._lock:
            self._entries[guild_id] = _Entry(rows=rows, computed_at=self._clock())
        return rows

    def get(self, guild_id: int, *, force_refresh: bool = False) -> list[ModeratorMetrics]:
        """Return the guild's metrics, recalculating on a miss.

        Raises whatever the recalculation raised, unless an older snapshot
        is still held, in which case that snapshot is returned.
        """
        if not force_refresh:
            try:
                entry = self._fresh_entry(guild_id)
            except Exception:
                logger.exception("Metrics cache lookup failed for guild %s", guild_id)
                entry = None
            if entry is not None:
                logger.debug("Metrics cache hit for guild %s", guild_id)
                return list(entry.rows)

        logger.debug(
            "Metrics cache %s for guild %s",
            "refresh" if force_refresh else "miss", guild_id,
        )
        try:
            return list(self._recompute(guild_id))
        except Exception:
            with self._lock:
                stale = self._entries.get(guild_id)
            if stale is None:
                raise
            logger.exception(
                "Metrics recalculation failed for guild %s; serving stale snapshot",
                guild_id,
            )
            return list(stale.rows)

    def get_moderator_metrics(
        self, guild_id: int, moderator_id: int, *, force_refresh: bool = False,
    ) -> ModeratorMetrics | None:
        for row in self.get(guild_id, force_refresh=force_refresh):
            if row.moderator_id == moderator_id:
                return row
        return None

    def get_top_moderators(
        self,
        guild_id: int,
        sort_by: str = "accepts",
        limit: int = 10,
    ) -> list[ModeratorMetrics]:
        """Leaderboard by ``accepts``, ``claims`` (descending) or
        ``response_time`` (ascending, moderators without data last).
        """
        if sort_by not in SORT_KEYS:
            raise ValueError(f"sort_by must be one of {', '.join(SORT_KEYS)}; got {sort_by!r}")
        if limit < 0:
            raise ValueError("limit must be >= 0")
        rows = sorted(self.get(guild_id), key=_sort_key(sort_by))
        return rows[:limit]

    # -------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------
    def invalidate(self, guild_id: int) -> None:
        with self._lock:
            dropped = self._entries.pop(guild_id, None)
        if dropped is not None:
            logger.debug("Metrics cache invalidated for guild %s", guild_id)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Metrics cache cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
