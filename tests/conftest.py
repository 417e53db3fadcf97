"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import Engine, create_engine

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import Session

from gatekeep.database.models import ActionLog, Application, ApplicationStatus, Base

GUILD_ID = 1000
OTHER_GUILD_ID = 2000

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Gatekeep tables.

    JSONB columns are transparently mapped to TEXT for SQLite compatibility.
    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------
def make_application(
    engine: Engine,
    app_id: str = "app-1",
    *,
    guild_id: int = GUILD_ID,
    user_id: int = 555,
    status: str = ApplicationStatus.SUBMITTED,
) -> str:
    """Insert an application row and return its id."""
    with Session(engine) as session, session.begin():
        session.add(
            Application(id=app_id, guild_id=guild_id, user_id=user_id, status=str(status))
        )
    return app_id


def add_action(
    engine: Engine,
    actor_id: int,
    action: str,
    created_at_s: int,
    *,
    app_id: str | None = None,
    guild_id: int = GUILD_ID,
) -> None:
    """Insert a raw action log row with an explicit timestamp."""
    with Session(engine) as session, session.begin():
        session.add(
            ActionLog(
                guild_id=guild_id,
                app_id=app_id,
                actor_id=actor_id,
                action=str(action),
                created_at_s=created_at_s,
            )
        )
