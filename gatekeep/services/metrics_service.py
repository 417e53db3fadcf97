"""
gatekeep.services.metrics_service — Moderator Metrics Recalculation
====================================================================

Rebuilds ``mod_metrics`` for one guild from ``action_log``:

  1. Resolve the guild's metrics epoch
  2. Enumerate moderators with at least one moderator action in the window
  3. Count each action type per moderator (conditional aggregation)
  4. Derive first-response samples → avg / p50 / p95 (nearest rank)
  5. Upsert one row per moderator, overwriting every aggregate
  6. Invalidate the cache entry, strictly after all writes

A failure while processing one moderator is logged and skipped.  A failure
while enumerating the guild propagates, leaving existing metrics and the
cache untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import case, delete, func, select
from sqlalchemy.orm import Session

from gatekeep.constants import APPLICANT_ACTIONS, MOD_ACTIONS
from gatekeep.database.engine import dialect_insert, get_session
from gatekeep.database.models import ActionLog, ModMetrics, ReviewAction
from gatekeep.engine.percentiles import compute_percentiles, mean
from gatekeep.engine.response_times import LogEvent, response_samples_by_moderator
from gatekeep.services.epoch_service import epoch_seconds, predicate_for

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from gatekeep.engine.metrics_cache import MetricsCache

logger = logging.getLogger(__name__)

_MOD_ACTIONS = sorted(MOD_ACTIONS)
_RESPONSE_ACTIONS = sorted(MOD_ACTIONS | APPLICANT_ACTIONS)

# ``mod_metrics`` column → action counted into it
COUNTED_ACTIONS: dict[str, str] = {
    "total_claims": ReviewAction.CLAIM.value,
    "total_accepts": ReviewAction.APPROVE.value,
    "total_rejects": ReviewAction.REJECT.value,
    "total_kicks": ReviewAction.KICK.value,
    "total_modmail_opens": ReviewAction.MODMAIL_OPEN.value,
}

_OVERWRITTEN_COLUMNS = (
    *COUNTED_ACTIONS,
    "avg_response_time_s",
    "p50_response_time_s",
    "p95_response_time_s",
    "updated_at",
)


# ---------------------------------------------------------------------------
# Read model
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ModeratorMetrics:
    """Detached snapshot of one ``mod_metrics`` row."""

    moderator_id: int
    guild_id: int
    total_claims: int
    total_accepts: int
    total_rejects: int
    total_kicks: int
    total_modmail_opens: int
    avg_response_time_s: float | None
    p50_response_time_s: float | None
    p95_response_time_s: float | None
    updated_at: datetime

    @classmethod
    def from_row(cls, row: ModMetrics) -> ModeratorMetrics:
        return cls(
            moderator_id=row.moderator_id,
            guild_id=row.guild_id,
            total_claims=row.total_claims,
            total_accepts=row.total_accepts,
            total_rejects=row.total_rejects,
            total_kicks=row.total_kicks,
            total_modmail_opens=row.total_modmail_opens,
            avg_response_time_s=row.avg_response_time_s,
            p50_response_time_s=row.p50_response_time_s,
            p95_response_time_s=row.p95_response_time_s,
            updated_at=row.updated_at,
        )


def read_metrics(engine: Engine, guild_id: int) -> list[ModeratorMetrics]:
    """Load the persisted metrics for a guild (no recalculation)."""
    with Session(engine) as session:
        rows = session.scalars(
            select(ModMetrics)
            .where(ModMetrics.guild_id == guild_id)
            .order_by(ModMetrics.moderator_id)
        ).all()
        return [ModeratorMetrics.from_row(r) for r in rows]


# ---------------------------------------------------------------------------
# Recalculation steps
# ---------------------------------------------------------------------------
def _window_filters(guild_id: int, start_s: int | None) -> list:
    filters = [ActionLog.guild_id == guild_id]
    predicate = predicate_for(start_s, ActionLog.created_at_s)
    if predicate is not None:
        filters.append(predicate)
    return filters


def _moderator_ids(session: Session, guild_id: int, start_s: int | None) -> list[int]:
    return list(
        session.scalars(
            select(ActionLog.actor_id)
            .where(*_window_filters(guild_id, start_s), ActionLog.action.in_(_MOD_ACTIONS))
            .distinct()
            .order_by(ActionLog.actor_id)
        ).all()
    )


def _response_events(session: Session, guild_id: int, start_s: int | None) -> list[LogEvent]:
    rows = session.execute(
        select(
            ActionLog.app_id, ActionLog.actor_id, ActionLog.action, ActionLog.created_at_s,
        )
        .where(
            *_window_filters(guild_id, start_s),
            ActionLog.app_id.is_not(None),
            ActionLog.action.in_(_RESPONSE_ACTIONS),
        )
        .order_by(ActionLog.app_id, ActionLog.created_at_s, ActionLog.id)
    ).all()
    return [
        LogEvent(app_id=r.app_id, actor_id=r.actor_id, action=r.action, created_at_s=r.created_at_s)
        for r in rows
    ]


def _action_counts(
    session: Session, guild_id: int, moderator_id: int, start_s: int | None,
) -> dict[str, int]:
    columns = [
        func.coalesce(func.sum(case((ActionLog.action == action, 1), else_=0)), 0).label(col)
        for col, action in COUNTED_ACTIONS.items()
    ]
    row = session.execute(
        select(*columns).where(
            *_window_filters(guild_id, start_s),
            ActionLog.actor_id == moderator_id,
            ActionLog.action.in_(_MOD_ACTIONS),
        )
    ).one()
    return {col: int(getattr(row, col) or 0) for col in COUNTED_ACTIONS}


def _upsert_metrics(session: Session, values: dict) -> None:
    stmt = dialect_insert(session, ModMetrics).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[ModMetrics.moderator_id, ModMetrics.guild_id],
        set_={col: getattr(stmt.excluded, col) for col in _OVERWRITTEN_COLUMNS},
    )
    session.execute(stmt)


def _process_moderator(
    engine: Engine,
    guild_id: int,
    moderator_id: int,
    start_s: int | None,
    samples: list[int],
    now: datetime,
) -> None:
    with get_session(engine) as session:
        counts = _action_counts(session, guild_id, moderator_id, start_s)
        pcts = compute_percentiles(samples, (50, 95))
        _upsert_metrics(session, {
            "moderator_id": moderator_id,
            "guild_id": guild_id,
            **counts,
            "avg_response_time_s": mean(samples),
            "p50_response_time_s": pcts[50],
            "p95_response_time_s": pcts[95],
            "updated_at": now,
        })


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def recalculate(
    engine: Engine, guild_id: int, *, cache: MetricsCache | None = None,
) -> int:
    """Recompute every moderator's metrics for *guild_id*.

    Returns the number of moderators successfully written.  Rows for
    moderators with no actions left in the window are removed, so the
    table is regenerated wholesale.

    Raises
    ------
    sqlalchemy.exc.SQLAlchemyError
        If the guild-level enumeration fails.  Nothing is written and the
        cache is left as it was.
    """
    logger.info("Metrics recalculation starting for guild %s", guild_id)

    try:
        start_s = epoch_seconds(engine, guild_id)
        with Session(engine) as session:
            moderator_ids = _moderator_ids(session, guild_id, start_s)
            events = _response_events(session, guild_id, start_s)
    except Exception:
        logger.exception("Metrics recalculation failed for guild %s", guild_id)
        raise

    samples = response_samples_by_moderator(events)
    now = datetime.now(UTC)
    processed = 0

    for moderator_id in moderator_ids:
        try:
            _process_moderator(
                engine, guild_id, moderator_id, start_s, samples.get(moderator_id, []), now,
            )
            processed += 1
        except Exception:
            logger.exception(
                "Failed to process metrics for moderator %s in guild %s",
                moderator_id, guild_id,
            )

    try:
        with get_session(engine) as session:
            stale = delete(ModMetrics).where(ModMetrics.guild_id == guild_id)
            if moderator_ids:
                stale = stale.where(ModMetrics.moderator_id.not_in(moderator_ids))
            removed = session.execute(stale).rowcount
        if removed:
            logger.info("Removed %d stale metrics rows for guild %s", removed, guild_id)
    except Exception:
        logger.exception("Failed to prune stale metrics rows for guild %s", guild_id)

    # All writes are committed; only now may readers repopulate the cache.
    if cache is not None:
        cache.invalidate(guild_id)

    logger.info(
        "Metrics recalculation complete for guild %s: %d/%d moderators",
        guild_id, processed, len(moderator_ids),
    )
    return processed


def refresh_guilds(
    engine: Engine, cache: MetricsCache | None, guild_ids: Iterable[int],
) -> dict[int, int | None]:
    """Recalculate several guilds, isolating failures.

    Returns ``{guild_id: processed}``; ``None`` marks a guild whose
    recalculation failed (its previous metrics remain in place).
    """
    results: dict[int, int | None] = {}
    for guild_id in guild_ids:
        try:
            results[guild_id] = recalculate(engine, guild_id, cache=cache)
        except Exception:
            logger.exception("Scheduled metrics refresh failed for guild %s", guild_id)
            results[guild_id] = None
    return results
