"""Create review claim, action log and moderator metrics tables

Revision ID: 5c2e9a7d4b10
Revises:
Create Date: 2026-10-18 10:12:31.402118

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c2e9a7d4b10'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the six Gatekeep tables."""

    # --- applications ---
    op.create_table(
        "applications",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("user_id", sa.BigInteger, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="submitted"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_applications_guild_status", "applications", ["guild_id", "status"])

    # --- review_claims (app_id PK is the mutual-exclusion constraint) ---
    op.create_table(
        "review_claims",
        sa.Column(
            "app_id", sa.String(64),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("reviewer_id", sa.BigInteger, nullable=False),
        sa.Column("claimed_at", sa.BigInteger, nullable=False),
    )
    op.create_index("ix_review_claims_reviewer", "review_claims", ["reviewer_id"])

    # --- action_log ---
    op.create_table(
        "action_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("app_id", sa.String(64), nullable=True),
        sa.Column("app_code", sa.String(16), nullable=True),
        sa.Column("actor_id", sa.BigInteger, nullable=False),
        sa.Column("subject_id", sa.BigInteger, nullable=True),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("meta", postgresql.JSONB, nullable=True),
        sa.Column("created_at_s", sa.BigInteger, nullable=False),
    )
    op.create_index(
        "ix_action_log_guild_time", "action_log",
        ["guild_id", sa.text("created_at_s DESC")],
    )
    op.create_index(
        "ix_action_log_actor_time", "action_log",
        ["actor_id", sa.text("created_at_s DESC")],
    )
    op.create_index(
        "ix_action_log_guild_action_time", "action_log",
        ["guild_id", "action", "created_at_s"],
    )
    op.create_index("ix_action_log_app", "action_log", ["app_id"])

    # --- mod_metrics ---
    op.create_table(
        "mod_metrics",
        sa.Column("moderator_id", sa.BigInteger, primary_key=True, autoincrement=False),
        sa.Column("guild_id", sa.BigInteger, primary_key=True, autoincrement=False),
        sa.Column("total_claims", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_accepts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_rejects", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_kicks", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_modmail_opens", sa.Integer, nullable=False, server_default="0"),
        sa.Column("avg_response_time_s", sa.Float, nullable=True),
        sa.Column("p50_response_time_s", sa.Float, nullable=True),
        sa.Column("p95_response_time_s", sa.Float, nullable=True),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True),
            nullable=False, server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_mod_metrics_guild_accepts", "mod_metrics",
        ["guild_id", sa.text("total_accepts DESC")],
    )

    # --- metrics_epochs ---
    op.create_table(
        "metrics_epochs",
        sa.Column("guild_id", sa.BigInteger, primary_key=True, autoincrement=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
    )

    # --- guild_config ---
    op.create_table(
        "guild_config",
        sa.Column("guild_id", sa.BigInteger, primary_key=True, autoincrement=False),
        sa.Column("panic_mode", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("panic_enabled_at", sa.BigInteger, nullable=True),
        sa.Column("panic_enabled_by", sa.BigInteger, nullable=True),
        sa.Column("updated_at_s", sa.BigInteger, nullable=False),
    )
    op.create_index("ix_guild_config_panic", "guild_config", ["panic_mode"])


def downgrade() -> None:
    """Drop the Gatekeep tables."""
    op.drop_table("guild_config")
    op.drop_table("metrics_epochs")
    op.drop_table("mod_metrics")
    op.drop_table("action_log")
    op.drop_table("review_claims")
    op.drop_table("applications")
