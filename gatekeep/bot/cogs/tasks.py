"""
gatekeep.bot.cogs.tasks — Periodic Metrics Refresh
===================================================

One ``discord.ext.tasks`` loop recalculates moderator metrics for every
guild the bot is in, every ``metrics_refresh_minutes`` (default 15).

The recalculation runs through ``run_db()`` so the event loop stays free.
A guild that fails keeps its previous metrics; the others still refresh.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

from gatekeep.config import DEFAULT_METRICS_REFRESH_MINUTES
from gatekeep.database.engine import run_db
from gatekeep.services.metrics_service import refresh_guilds

if TYPE_CHECKING:
    from gatekeep.bot.core import GatekeepBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled metrics maintenance."""

    def __init__(self, bot: GatekeepBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        """Start task loops when the cog is loaded."""
        self.metrics_loop.change_interval(minutes=self.bot.cfg.metrics_refresh_minutes)
        self.metrics_loop.start()

    async def cog_unload(self) -> None:
        self.metrics_loop.cancel()

    # -------------------------------------------------------------------
    # Metrics refresh
    # -------------------------------------------------------------------
    @tasks.loop(minutes=DEFAULT_METRICS_REFRESH_MINUTES)
    async def metrics_loop(self):
        """Recalculate every guild's moderator metrics."""
        guild_ids = [g.id for g in self.bot.guilds]
        if not guild_ids:
            return

        try:
            results = await run_db(
                refresh_guilds, self.bot.engine, self.bot.metrics_cache, guild_ids,
            )
        except Exception:
            logger.exception("Metrics refresh task failed", extra={"task": "metrics"})
            return

        failed = [gid for gid, processed in results.items() if processed is None]
        logger.info(
            "Metrics refresh complete: %d guilds, %d failed",
            len(results), len(failed),
        )

    @metrics_loop.before_loop
    async def _wait_metrics(self):
        await self.bot.wait_until_ready()


async def setup(bot: GatekeepBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
