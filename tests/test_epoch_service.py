"""
tests/test_epoch_service.py — Metrics Epoch & Reset
====================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import MagicMock

from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import GUILD_ID, OTHER_GUILD_ID, add_action
from gatekeep.database.models import ActionLog, ModMetrics
from gatekeep.services.action_log import list_actions
from gatekeep.services.epoch_service import (
    clear_epoch,
    epoch_seconds,
    get_epoch,
    get_predicate,
    predicate_for,
    reset_metrics,
    set_epoch,
)
from gatekeep.services.metrics_service import read_metrics, recalculate

ADMIN = 42
ALICE = 111
EPOCH = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class TestEpochStore:
    """set / get / clear."""

    def test_unset_is_none(self, db_engine):
        assert get_epoch(db_engine, GUILD_ID) is None
        assert epoch_seconds(db_engine, GUILD_ID) is None

    def test_set_and_get_round_trip_utc(self, db_engine):
        stored = set_epoch(db_engine, GUILD_ID, EPOCH)

        assert stored == EPOCH
        assert get_epoch(db_engine, GUILD_ID) == EPOCH
        assert epoch_seconds(db_engine, GUILD_ID) == int(EPOCH.timestamp())

    def test_offset_timestamps_normalised(self, db_engine):
        local = EPOCH.astimezone(timezone(timedelta(hours=5)))
        set_epoch(db_engine, GUILD_ID, local)
        assert get_epoch(db_engine, GUILD_ID) == EPOCH

    def test_defaults_to_now(self, db_engine):
        before = datetime.now(UTC).replace(microsecond=0)
        stored = set_epoch(db_engine, GUILD_ID)
        assert stored >= before
        assert get_epoch(db_engine, GUILD_ID) is not None

    def test_last_write_wins(self, db_engine):
        set_epoch(db_engine, GUILD_ID, EPOCH)
        later = EPOCH + timedelta(days=3)
        set_epoch(db_engine, GUILD_ID, later)
        assert get_epoch(db_engine, GUILD_ID) == later

    def test_guild_scoped(self, db_engine):
        set_epoch(db_engine, GUILD_ID, EPOCH)
        assert get_epoch(db_engine, OTHER_GUILD_ID) is None

    def test_clear(self, db_engine):
        set_epoch(db_engine, GUILD_ID, EPOCH)
        assert clear_epoch(db_engine, GUILD_ID) is True
        assert get_epoch(db_engine, GUILD_ID) is None
        assert clear_epoch(db_engine, GUILD_ID) is False


class TestPredicate:
    """Composable epoch conditions."""

    def test_no_epoch_no_predicate(self, db_engine):
        assert get_predicate(db_engine, GUILD_ID) is None
        assert predicate_for(None) is None

    def test_predicate_filters_rows(self, db_engine):
        start = int(EPOCH.timestamp())
        add_action(db_engine, ALICE, "approve", start - 1, app_id="old")
        add_action(db_engine, ALICE, "approve", start, app_id="edge")
        add_action(db_engine, ALICE, "approve", start + 1, app_id="new")
        set_epoch(db_engine, GUILD_ID, EPOCH)

        predicate = get_predicate(db_engine, GUILD_ID, ActionLog.created_at_s)
        with Session(db_engine) as session:
            apps = session.scalars(
                select(ActionLog.app_id).where(predicate).order_by(ActionLog.created_at_s)
            ).all()

        assert apps == ["edge", "new"]

    def test_predicate_is_parameterised(self, db_engine):
        """The epoch is a bound parameter, not inlined SQL text."""
        predicate = predicate_for(1234, ActionLog.created_at_s)
        compiled = predicate.compile()
        assert "1234" not in str(compiled)
        assert 1234 in compiled.params.values()


class TestResetMetrics:
    """Admin metrics reset."""

    def test_reset_moves_epoch_and_clears_rows(self, db_engine):
        add_action(db_engine, ALICE, "approve", int(EPOCH.timestamp()) - 100, app_id="a")
        recalculate(db_engine, GUILD_ID)
        assert len(read_metrics(db_engine, GUILD_ID)) == 1

        cache = MagicMock()
        stored = reset_metrics(db_engine, GUILD_ID, ADMIN, cache=cache, at=EPOCH)

        assert stored == EPOCH
        assert get_epoch(db_engine, GUILD_ID) == EPOCH
        assert read_metrics(db_engine, GUILD_ID) == []
        cache.invalidate.assert_called_once_with(GUILD_ID)

    def test_reset_is_audited(self, db_engine):
        reset_metrics(db_engine, GUILD_ID, ADMIN, at=EPOCH)

        (entry,) = list_actions(db_engine, GUILD_ID)
        assert entry.action == "metrics_reset"
        assert entry.actor_id == ADMIN
        assert entry.meta == {"epoch": EPOCH.isoformat()}
        assert entry.created_at_s == int(EPOCH.timestamp())

    def test_reset_mid_second_drops_earlier_actions(self, db_engine):
        """Resetting partway through a second hides that second's earlier actions."""
        at = EPOCH.replace(microsecond=250_000)
        add_action(db_engine, ALICE, "approve", int(EPOCH.timestamp()), app_id="a")
        reset_metrics(db_engine, GUILD_ID, ADMIN, at=at)

        assert epoch_seconds(db_engine, GUILD_ID) == int(EPOCH.timestamp()) + 1
        assert recalculate(db_engine, GUILD_ID) == 0
        assert read_metrics(db_engine, GUILD_ID) == []

    def test_reset_leaves_other_guilds(self, db_engine):
        with Session(db_engine) as session, session.begin():
            session.add(ModMetrics(moderator_id=ALICE, guild_id=OTHER_GUILD_ID))

        reset_metrics(db_engine, GUILD_ID, ADMIN, at=EPOCH)
        assert len(read_metrics(db_engine, OTHER_GUILD_ID)) == 1

    def test_history_survives_reset(self, db_engine):
        add_action(db_engine, ALICE, "approve", int(EPOCH.timestamp()) - 100, app_id="a")
        reset_metrics(db_engine, GUILD_ID, ADMIN, at=EPOCH)

        assert recalculate(db_engine, GUILD_ID) == 0
        actions = [e.action for e in list_actions(db_engine, GUILD_ID)]
        assert actions == ["metrics_reset", "approve"]
