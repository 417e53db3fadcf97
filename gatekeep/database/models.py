"""
gatekeep.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- applications     — Gate applications (owned by the gate flow, read here)
- review_claims    — One row per currently-claimed application
- action_log       — Append-only audit trail of reviewer/applicant actions
- mod_metrics      — Per-moderator aggregates, regenerated per guild
- metrics_epochs   — Optional per-guild "metrics start" timestamp
- guild_config     — Per-guild panic switch
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Gatekeep ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ReviewAction(enum.StrEnum):
    """Actions persisted to ``action_log.action``.

    The column itself is free text; these are the values this package
    writes or interprets.
    """
    APP_SUBMITTED = "app_submitted"
    CLAIM = "claim"
    UNCLAIM = "unclaim"
    APPROVE = "approve"
    REJECT = "reject"
    PERM_REJECT = "perm_reject"
    KICK = "kick"
    MODMAIL_OPEN = "modmail_open"
    MODMAIL_CLOSE = "modmail_close"


class ApplicationStatus(enum.StrEnum):
    """Lifecycle states of a gate application."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    NEEDS_INFO = "needs_info"
    APPROVED = "approved"
    REJECTED = "rejected"
    KICKED = "kicked"


# ---------------------------------------------------------------------------
# Application: owned by the gate flow; claims only read it
# ---------------------------------------------------------------------------
class Application(Base):
    __tablename__ = "applications"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApplicationStatus.SUBMITTED.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_applications_guild_status", "guild_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Application id={self.id!r} guild={self.guild_id} status={self.status!r}>"


# ---------------------------------------------------------------------------
# ReviewClaim: exclusive reviewer lock on an application
# ---------------------------------------------------------------------------
class ReviewClaim(Base):
    """At most one row per application (``app_id`` is the primary key).

    Rows are kept when an application reaches a terminal status so the
    review card can still show who handled it.
    """
    __tablename__ = "review_claims"

    app_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("applications.id", ondelete="CASCADE"), primary_key=True
    )
    reviewer_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    claimed_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_review_claims_reviewer", "reviewer_id"),
    )

    def __repr__(self) -> str:
        return f"<ReviewClaim app={self.app_id!r} reviewer={self.reviewer_id}>"


# ---------------------------------------------------------------------------
# ActionLog: append-only audit trail
# ---------------------------------------------------------------------------
class ActionLog(Base):
    """Every moderator and applicant action, in integer epoch seconds.

    Sole input to the metrics aggregator.  Rows are never updated or
    deleted by this package.
    """
    __tablename__ = "action_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    app_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    app_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    subject_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at_s: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_action_log_guild_time", "guild_id", created_at_s.desc()),
        Index("ix_action_log_actor_time", "actor_id", created_at_s.desc()),
        Index("ix_action_log_guild_action_time", "guild_id", "action", "created_at_s"),
        Index("ix_action_log_app", "app_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ActionLog id={self.id} guild={self.guild_id} "
            f"actor={self.actor_id} action={self.action!r}>"
        )


# ---------------------------------------------------------------------------
# ModMetrics: per-moderator aggregates (overwritten on every recalculation)
# ---------------------------------------------------------------------------
class ModMetrics(Base):
    __tablename__ = "mod_metrics"

    moderator_id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )
    guild_id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )
    total_claims: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_accepts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_rejects: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_kicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_modmail_opens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_response_time_s: Mapped[float | None] = mapped_column(Float, nullable=True)
    p50_response_time_s: Mapped[float | None] = mapped_column(Float, nullable=True)
    p95_response_time_s: Mapped[float | None] = mapped_column(Float, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_mod_metrics_guild_accepts", "guild_id", total_accepts.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<ModMetrics guild={self.guild_id} moderator={self.moderator_id} "
            f"claims={self.total_claims} accepts={self.total_accepts}>"
        )


# ---------------------------------------------------------------------------
# MetricsEpoch: per-guild logical metrics reset
# ---------------------------------------------------------------------------
class MetricsEpoch(Base):
    """Action log rows older than ``start_at`` are excluded from metrics.

    No row (or a NULL ``start_at``) means the full history counts.
    """
    __tablename__ = "metrics_epochs"

    guild_id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )
    start_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<MetricsEpoch guild={self.guild_id} start_at={self.start_at}>"


# ---------------------------------------------------------------------------
# GuildConfig: per-guild emergency switch
# ---------------------------------------------------------------------------
class GuildConfig(Base):
    __tablename__ = "guild_config"

    guild_id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )
    panic_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    panic_enabled_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    panic_enabled_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    updated_at_s: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_guild_config_panic", "panic_mode"),
    )

    def __repr__(self) -> str:
        return f"<GuildConfig guild={self.guild_id} panic={self.panic_mode}>"
