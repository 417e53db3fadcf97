"""
gatekeep.constants — Shared Constants
======================================

Single source of truth for the action taxonomy and review limits.
Import from here instead of duplicating in services and the bot.
"""

from __future__ import annotations

from gatekeep.database.models import ApplicationStatus, ReviewAction

# ---------------------------------------------------------------------------
# Action taxonomy
# ---------------------------------------------------------------------------
# Actions performed by moderators.  These drive every metrics count and are
# the candidates for "first response" after a submission.  ``unclaim`` is
# audited but is not a moderator action for metrics.
MOD_ACTIONS: frozenset[str] = frozenset({
    ReviewAction.CLAIM.value,
    ReviewAction.APPROVE.value,
    ReviewAction.REJECT.value,
    ReviewAction.PERM_REJECT.value,
    ReviewAction.KICK.value,
    ReviewAction.MODMAIL_OPEN.value,
    ReviewAction.MODMAIL_CLOSE.value,
})

# Actions performed by applicants (time origin for response times only).
APPLICANT_ACTIONS: frozenset[str] = frozenset({ReviewAction.APP_SUBMITTED.value})

# ---------------------------------------------------------------------------
# Application lifecycle
# ---------------------------------------------------------------------------
TERMINAL_STATUSES: frozenset[str] = frozenset({
    ApplicationStatus.APPROVED.value,
    ApplicationStatus.REJECTED.value,
    ApplicationStatus.KICKED.value,
})

# ---------------------------------------------------------------------------
# Metrics limits
# ---------------------------------------------------------------------------
# Response times above a week are orphaned data, not real reviews.
MAX_RESPONSE_TIME_S = 7 * 86400

# Action recorded when an admin resets the metrics epoch.
METRICS_RESET_ACTION = "metrics_reset"
