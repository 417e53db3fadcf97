"""
gatekeep.services.panic_service — Per-Guild Panic Switch
=========================================================

An emergency kill switch.  While a guild is in panic mode every claim and
unclaim is refused with ``INVALID_STATUS``.  State lives in
``guild_config`` so it survives restarts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from gatekeep.database.engine import dialect_insert, get_session
from gatekeep.database.models import GuildConfig
from gatekeep.services.action_log import now_s

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PanicState:
    enabled: bool
    enabled_at: int | None = None
    enabled_by: int | None = None


def is_panic_mode(session: Session, guild_id: int) -> bool:
    """Read the switch inside an existing session (no row → off)."""
    return bool(
        session.scalar(
            select(GuildConfig.panic_mode).where(GuildConfig.guild_id == guild_id)
        )
    )


def get_panic_details(engine: Engine, guild_id: int) -> PanicState:
    with Session(engine) as session:
        row = session.get(GuildConfig, guild_id)
        if row is None or not row.panic_mode:
            return PanicState(enabled=False)
        return PanicState(
            enabled=True,
            enabled_at=row.panic_enabled_at,
            enabled_by=row.panic_enabled_by,
        )


def panic_guild_ids(engine: Engine) -> list[int]:
    """Every guild currently in panic mode."""
    with Session(engine) as session:
        return list(
            session.scalars(
                select(GuildConfig.guild_id).where(GuildConfig.panic_mode.is_(True))
            ).all()
        )


def set_panic_mode(
    engine: Engine,
    guild_id: int,
    enabled: bool,
    *,
    actor_id: int | None = None,
) -> PanicState:
    """Turn panic mode on or off with a single upsert."""
    ts = now_s()
    values = {
        "guild_id": guild_id,
        "panic_mode": enabled,
        "panic_enabled_at": ts if enabled else None,
        "panic_enabled_by": actor_id if enabled else None,
        "updated_at_s": ts,
    }
    with get_session(engine) as session:
        stmt = dialect_insert(session, GuildConfig).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[GuildConfig.guild_id],
            set_={
                "panic_mode": stmt.excluded.panic_mode,
                "panic_enabled_at": stmt.excluded.panic_enabled_at,
                "panic_enabled_by": stmt.excluded.panic_enabled_by,
                "updated_at_s": stmt.excluded.updated_at_s,
            },
        )
        session.execute(stmt)

    if enabled:
        logger.warning("Panic mode ENABLED for guild %s by %s", guild_id, actor_id)
    else:
        logger.info("Panic mode disabled for guild %s by %s", guild_id, actor_id)
    return PanicState(
        enabled=enabled,
        enabled_at=values["panic_enabled_at"],
        enabled_by=values["panic_enabled_by"],
    )
