"""
gatekeep.bot.core — Bot Instance & Cog Loader
==============================================

:class:`GatekeepBot` is a ``commands.Bot`` that carries the shared config
(``bot.cfg``), DB engine (``bot.engine``) and metrics cache
(``bot.metrics_cache``) so every Cog can reach them through ``self.bot``.
"""

from __future__ import annotations

import logging

import discord
from discord.ext import commands
from sqlalchemy import Engine

from gatekeep.config import GatekeepConfig
from gatekeep.database.engine import run_db
from gatekeep.engine.metrics_cache import MetricsCache
from gatekeep.services.panic_service import panic_guild_ids

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "gatekeep.bot.cogs.tasks",
]


class GatekeepBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`GatekeepConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` connected to PostgreSQL.
    metrics_cache:
        The process-wide :class:`MetricsCache`.
    """

    def __init__(
        self, cfg: GatekeepConfig, engine: Engine, metrics_cache: MetricsCache,
    ) -> None:
        intents = discord.Intents.default()
        intents.members = True            # Privileged: applicant lookups

        super().__init__(command_prefix=cfg.bot_prefix, intents=intents)

        self.cfg = cfg
        self.engine = engine
        self.metrics_cache = metrics_cache

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load Cog extensions; a broken one is logged and skipped."""
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        panicked = await run_db(panic_guild_ids, self.engine)
        if panicked:
            logger.warning("Panic mode is active in guilds: %s", panicked)
