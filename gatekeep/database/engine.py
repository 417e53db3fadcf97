"""
gatekeep.database.engine — Database Connection, Sessions & Async Helper
========================================================================

Every service in Gatekeep is **synchronous** SQLAlchemy.  Discord bots run
on an ``asyncio`` event loop, so cogs hand service calls to a thread pool
through :func:`run_db` instead of calling them directly.

Usage::

    from gatekeep.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    # Inside an async Cog method:
    result = await run_db(claim, engine, app_id, reviewer_id, guild_id)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any, ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from gatekeep.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine() -> Engine:
    """Build a SQLAlchemy :class:`Engine` from the ``DATABASE_URL`` env var.

    The pool is sized for a single bot process plus the metrics refresh
    loop: five persistent connections, ten overflow, 10 s checkout timeout,
    hourly recycle.

    Raises
    ------
    RuntimeError
        If ``DATABASE_URL`` is not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    engine = create_engine(
        url,
        echo=False,        # Set True for SQL debugging
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`gatekeep.database.models`.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained for dev/test environments where
        Alembic may not have run.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.

    Usage::

        with get_session(engine) as session:
            session.add(ActionLog(...))
            # commit happens automatically on block exit
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Dialect-aware INSERT (for ON CONFLICT upserts)
# ---------------------------------------------------------------------------
def dialect_insert(session: Session, model: type) -> Any:
    """Return an ``INSERT`` construct that supports ``on_conflict_do_*``.

    PostgreSQL in production, SQLite in the test suite.  Both dialects
    implement the same ``ON CONFLICT`` clause, so callers build a single
    atomic insert-or-update statement regardless of backend.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upserts are not supported on dialect {dialect!r}")


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Every DB call from a Cog goes through this wrapper so the bot's event
    loop is never blocked::

        result = await run_db(recalculate, engine, guild_id, cache=cache)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
