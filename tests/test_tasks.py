"""
tests/test_tasks.py — Periodic Metrics Refresh Cog
===================================================
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from gatekeep.bot.cogs.tasks import PeriodicTasks
from gatekeep.services.metrics_service import refresh_guilds


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


def _make_bot(guild_ids: list[int]) -> MagicMock:
    bot = MagicMock()
    bot.guilds = [SimpleNamespace(id=gid) for gid in guild_ids]
    return bot


class TestMetricsLoop:
    """One iteration of the metrics refresh loop."""

    def test_refreshes_every_guild(self):
        bot = _make_bot([1, 2])
        cog = PeriodicTasks(bot)

        async def _inner():
            with patch(
                "gatekeep.bot.cogs.tasks.run_db",
                new=AsyncMock(return_value={1: 2, 2: None}),
            ) as mock_run_db:
                await cog.metrics_loop()
                mock_run_db.assert_awaited_once_with(
                    refresh_guilds, bot.engine, bot.metrics_cache, [1, 2],
                )
        run_async(_inner())

    def test_no_guilds_is_noop(self):
        cog = PeriodicTasks(_make_bot([]))

        async def _inner():
            with patch("gatekeep.bot.cogs.tasks.run_db", new=AsyncMock()) as mock_run_db:
                await cog.metrics_loop()
                mock_run_db.assert_not_awaited()
        run_async(_inner())

    def test_failure_does_not_escape(self):
        cog = PeriodicTasks(_make_bot([1]))

        async def _inner():
            with patch(
                "gatekeep.bot.cogs.tasks.run_db",
                new=AsyncMock(side_effect=RuntimeError("pool exhausted")),
            ):
                await cog.metrics_loop()
        run_async(_inner())
