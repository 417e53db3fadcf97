"""
gatekeep.services.epoch_service — Metrics Epoch (Logical Reset)
================================================================

A per-guild "count metrics from here" timestamp.  Setting an epoch hides
older action log rows from aggregation **without deleting them**; clearing
it restores full-history metrics.

:func:`get_predicate` returns a typed, parameterised SQLAlchemy condition
(or ``None``) that callers compose into their ``select().where()``::

    predicate = get_predicate(engine, guild_id, ActionLog.created_at_s)
    stmt = select(ActionLog).where(ActionLog.guild_id == guild_id)
    if predicate is not None:
        stmt = stmt.where(predicate)
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import ColumnElement, delete, func
from sqlalchemy.orm import Session

from gatekeep.constants import METRICS_RESET_ACTION
from gatekeep.database.engine import dialect_insert, get_session
from gatekeep.database.models import ActionLog, MetricsEpoch, ModMetrics
from gatekeep.services.action_log import append_action

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from gatekeep.engine.metrics_cache import MetricsCache

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are UTC (SQLite drops the offset on the way back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_epoch(engine: Engine, guild_id: int) -> datetime | None:
    """Return the guild's metrics start (UTC), or ``None`` if unset."""
    with Session(engine) as session:
        row = session.get(MetricsEpoch, guild_id)
        if row is None or row.start_at is None:
            return None
        return _as_utc(row.start_at)


def epoch_seconds(engine: Engine, guild_id: int) -> int | None:
    """Epoch as whole seconds, rounded up so ``created_at_s < epoch`` stays excluded."""
    epoch = get_epoch(engine, guild_id)
    return math.ceil(epoch.timestamp()) if epoch is not None else None


def get_predicate(
    engine: Engine, guild_id: int, time_column: Any = ActionLog.created_at_s,
) -> ColumnElement[bool] | None:
    """``time_column >= :epoch_seconds`` for the guild, or ``None`` if unset."""
    start_s = epoch_seconds(engine, guild_id)
    return predicate_for(start_s, time_column)


def predicate_for(
    start_s: int | None, time_column: Any = ActionLog.created_at_s,
) -> ColumnElement[bool] | None:
    """Build the epoch condition from an already-resolved start."""
    if start_s is None:
        return None
    return time_column >= start_s


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def _upsert_epoch(session: Session, guild_id: int, start_at: datetime) -> None:
    stmt = dialect_insert(session, MetricsEpoch).values(
        guild_id=guild_id, start_at=start_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[MetricsEpoch.guild_id],
        set_={"start_at": stmt.excluded.start_at, "updated_at": func.now()},
    )
    session.execute(stmt)


def set_epoch(engine: Engine, guild_id: int, start_at: datetime | None = None) -> datetime:
    """Set (or move) the guild's metrics epoch.  Last write wins.

    Defaults to *now*.  Returns the stored UTC timestamp.
    """
    start_at = _as_utc(start_at or datetime.now(UTC))
    with get_session(engine) as session:
        _upsert_epoch(session, guild_id, start_at)
    logger.info("Metrics epoch for guild %s set to %s", guild_id, start_at.isoformat())
    return start_at


def clear_epoch(engine: Engine, guild_id: int) -> bool:
    """Remove the epoch so metrics span the full history again."""
    with get_session(engine) as session:
        deleted = session.execute(
            delete(MetricsEpoch).where(MetricsEpoch.guild_id == guild_id)
        ).rowcount
    logger.info("Metrics epoch for guild %s cleared (existed=%s)", guild_id, bool(deleted))
    return bool(deleted)


def reset_metrics(
    engine: Engine,
    guild_id: int,
    actor_id: int,
    *,
    cache: MetricsCache | None = None,
    at: datetime | None = None,
) -> datetime:
    """Admin "reset metrics from now".

    In one transaction: move the epoch, drop the guild's ``mod_metrics``
    rows and audit the reset.  The cache entry is invalidated only after
    the commit.
    """
    start_at = _as_utc(at or datetime.now(UTC))
    with get_session(engine) as session:
        _upsert_epoch(session, guild_id, start_at)
        session.execute(delete(ModMetrics).where(ModMetrics.guild_id == guild_id))
        append_action(
            session,
            guild_id=guild_id,
            actor_id=actor_id,
            action=METRICS_RESET_ACTION,
            meta={"epoch": start_at.isoformat()},
            created_at_s=math.ceil(start_at.timestamp()),
        )

    if cache is not None:
        cache.invalidate(guild_id)
    logger.info(
        "Metrics reset for guild %s by %s (epoch=%s)", guild_id, actor_id, start_at.isoformat(),
    )
    return start_at
