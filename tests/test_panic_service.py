"""
tests/test_panic_service.py — Per-Guild Panic Switch
=====================================================
"""

from __future__ import annotations

from conftest import GUILD_ID, OTHER_GUILD_ID
from gatekeep.services.panic_service import (
    get_panic_details,
    is_panic_mode,
    panic_guild_ids,
    set_panic_mode,
)

ADMIN = 42


class TestPanicMode:
    """Tests for the panic switch store."""

    def test_default_off(self, db_engine, db_session):
        assert is_panic_mode(db_session, GUILD_ID) is False
        assert get_panic_details(db_engine, GUILD_ID).enabled is False

    def test_enable_records_who_and_when(self, db_engine, db_session):
        state = set_panic_mode(db_engine, GUILD_ID, True, actor_id=ADMIN)

        assert state.enabled
        assert state.enabled_by == ADMIN
        assert state.enabled_at is not None
        assert is_panic_mode(db_session, GUILD_ID) is True
        assert get_panic_details(db_engine, GUILD_ID) == state

    def test_disable_clears_details(self, db_engine, db_session):
        set_panic_mode(db_engine, GUILD_ID, True, actor_id=ADMIN)
        state = set_panic_mode(db_engine, GUILD_ID, False, actor_id=ADMIN)

        assert not state.enabled
        assert state.enabled_by is None
        assert is_panic_mode(db_session, GUILD_ID) is False

    def test_listing(self, db_engine):
        set_panic_mode(db_engine, GUILD_ID, True)
        set_panic_mode(db_engine, OTHER_GUILD_ID, True)
        set_panic_mode(db_engine, OTHER_GUILD_ID, False)

        assert panic_guild_ids(db_engine) == [GUILD_ID]
