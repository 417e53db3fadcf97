"""
gatekeep.bot.__main__ — Entry point for ``python -m gatekeep.bot``
==================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Build the MetricsCache.
5. Create the GatekeepBot and hand it config + engine + cache.
6. Start the bot (blocking; runs the asyncio event loop).
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from gatekeep.bot.core import GatekeepBot
from gatekeep.config import load_config
from gatekeep.database.engine import create_db_engine, init_db
from gatekeep.engine.metrics_cache import MetricsCache

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("gatekeep")


def main() -> None:
    """Bootstrap and run the Gatekeep bot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Soft configuration.
    cfg = load_config()
    logger.info(
        "Config loaded: metrics TTL %ss, refresh every %d min",
        cfg.metrics_cache_ttl_seconds, cfg.metrics_refresh_minutes,
    )

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)

    # 4. Metrics cache, shared by every cog.
    metrics_cache = MetricsCache(engine, ttl_seconds=cfg.metrics_cache_ttl_seconds)

    # 5. Bot.
    bot = GatekeepBot(cfg=cfg, engine=engine, metrics_cache=metrics_cache)

    # 6. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting Gatekeep bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
