"""
Gatekeep — Review Claims & Moderator Metrics for Discord Gatekeeping
=====================================================================
Guarantees that at most one reviewer works an application at a time,
keeps an append-only audit trail of every reviewer and applicant action,
and derives percentile-based moderator performance statistics from that
trail behind a time-boxed cache.

Package layout::

    gatekeep/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Action taxonomy, terminal statuses, limits
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, sessions, upsert + async helper
    │   └── models.py      # ORM models (applications, claims, action log, …)
    ├── engine/
    │   ├── percentiles.py     # Nearest-rank percentile math
    │   ├── response_times.py  # app_submitted → first responder samples
    │   └── metrics_cache.py   # TTL cache in front of mod_metrics
    ├── services/
    │   ├── action_log.py      # Append-only audit trail writes + history reads
    │   ├── claim_service.py   # Atomic claim / unclaim transactions
    │   ├── panic_service.py   # Per-guild emergency switch
    │   ├── epoch_service.py   # Metrics epoch (logical reset) filter
    │   └── metrics_service.py # Per-guild metrics recalculation
    └── bot/
        ├── core.py        # Bot subclass, cog loader
        └── cogs/
            └── tasks.py   # Periodic metrics refresh
"""

__version__ = "0.1.0"
