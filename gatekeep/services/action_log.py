"""
gatekeep.services.action_log — Append-Only Audit Trail
=======================================================

Write path and direct history reads for ``action_log``.

Rows are only ever inserted.  Metrics read the log through the epoch
filter; :func:`list_actions` reads it raw so history hidden by a metrics
reset stays inspectable.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from gatekeep.database.engine import get_session
from gatekeep.database.models import ActionLog

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 1000


def now_s() -> int:
    """Current time as integer Unix epoch seconds."""
    return int(time.time())


@dataclass(frozen=True, slots=True)
class ActionEntry:
    """Detached, read-only view of one action log row."""

    id: int
    guild_id: int
    app_id: str | None
    app_code: str | None
    actor_id: int
    subject_id: int | None
    action: str
    reason: str | None
    meta: dict | None
    created_at_s: int

    @classmethod
    def from_row(cls, row: ActionLog) -> ActionEntry:
        return cls(
            id=row.id,
            guild_id=row.guild_id,
            app_id=row.app_id,
            app_code=row.app_code,
            actor_id=row.actor_id,
            subject_id=row.subject_id,
            action=row.action,
            reason=row.reason,
            meta=row.meta,
            created_at_s=row.created_at_s,
        )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def append_action(
    session: Session,
    *,
    guild_id: int,
    actor_id: int,
    action: str,
    app_id: str | None = None,
    app_code: str | None = None,
    subject_id: int | None = None,
    reason: str | None = None,
    meta: dict[str, Any] | None = None,
    created_at_s: int | None = None,
) -> ActionLog:
    """Insert an action log row within the caller's transaction.

    The caller owns the commit, so the entry lands atomically with
    whatever state change it records.
    """
    row = ActionLog(
        guild_id=guild_id,
        app_id=app_id,
        app_code=app_code,
        actor_id=actor_id,
        subject_id=subject_id,
        action=str(action),
        reason=reason,
        meta=meta,
        created_at_s=now_s() if created_at_s is None else created_at_s,
    )
    session.add(row)
    return row


def log_action(
    engine: Engine,
    *,
    guild_id: int,
    actor_id: int,
    action: str,
    app_id: str | None = None,
    app_code: str | None = None,
    subject_id: int | None = None,
    reason: str | None = None,
    meta: dict[str, Any] | None = None,
    created_at_s: int | None = None,
) -> ActionEntry:
    """Append a standalone action (approve, kick, modmail, submission…)."""
    with get_session(engine) as session:
        row = append_action(
            session,
            guild_id=guild_id,
            actor_id=actor_id,
            action=action,
            app_id=app_id,
            app_code=app_code,
            subject_id=subject_id,
            reason=reason,
            meta=meta,
            created_at_s=created_at_s,
        )
        session.flush()
        entry = ActionEntry.from_row(row)

    logger.debug(
        "action_log entry created: guild=%s action=%s actor=%s app=%s",
        guild_id, entry.action, actor_id, app_id,
    )
    return entry


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def list_actions(
    engine: Engine,
    guild_id: int,
    *,
    actor_id: int | None = None,
    app_id: str | None = None,
    since_s: int | None = None,
    limit: int = 100,
) -> list[ActionEntry]:
    """Return the guild's action history, newest first.

    Ignores any metrics epoch: this is the raw audit trail.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")
    limit = min(limit, MAX_HISTORY_LIMIT)

    stmt = select(ActionLog).where(ActionLog.guild_id == guild_id)
    if actor_id is not None:
        stmt = stmt.where(ActionLog.actor_id == actor_id)
    if app_id is not None:
        stmt = stmt.where(ActionLog.app_id == app_id)
    if since_s is not None:
        stmt = stmt.where(ActionLog.created_at_s >= since_s)
    stmt = stmt.order_by(ActionLog.created_at_s.desc(), ActionLog.id.desc()).limit(limit)

    with Session(engine) as session:
        return [ActionEntry.from_row(r) for r in session.scalars(stmt).all()]
