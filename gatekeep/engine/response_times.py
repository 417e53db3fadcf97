"""
gatekeep.engine.response_times — First-Response Samples
========================================================

Pure derivation of response-time samples from action log rows.
No DB I/O inside the engine; the metrics service feeds it rows.

For each application:

1. Take the **latest** ``app_submitted`` (resubmissions reset the clock).
2. Find the first moderator action strictly after it.
3. Attribute ``first_action_time - submission_time`` to whoever acted
   first, not whoever eventually decided the case.

Samples ``<= 0`` (clock skew) or longer than a week (orphaned data) are
dropped.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

from gatekeep.constants import APPLICANT_ACTIONS, MAX_RESPONSE_TIME_S, MOD_ACTIONS

__all__ = ["LogEvent", "response_samples_by_moderator"]


@dataclass(frozen=True, slots=True)
class LogEvent:
    """The slice of an action log row response times need."""

    app_id: str
    actor_id: int
    action: str
    created_at_s: int


def response_samples_by_moderator(
    events: Iterable[LogEvent],
    max_response_s: int = MAX_RESPONSE_TIME_S,
) -> dict[int, list[int]]:
    """Group *events* by application and return ``{moderator_id: [seconds]}``.

    *events* may arrive in any order; each application's events are sorted
    by timestamp before the first responder is picked.  Moderators with no
    qualifying sample are absent from the result.
    """
    by_app: dict[str, list[LogEvent]] = defaultdict(list)
    for ev in events:
        if ev.action in MOD_ACTIONS or ev.action in APPLICANT_ACTIONS:
            by_app[ev.app_id].append(ev)

    samples: dict[int, list[int]] = defaultdict(list)
    for app_events in by_app.values():
        app_events.sort(key=lambda e: e.created_at_s)

        submissions = [e for e in app_events if e.action in APPLICANT_ACTIONS]
        if not submissions:
            continue
        submitted_at = submissions[-1].created_at_s

        first = next(
            (
                e for e in app_events
                if e.created_at_s > submitted_at and e.action in MOD_ACTIONS
            ),
            None,
        )
        if first is None:
            continue

        elapsed = first.created_at_s - submitted_at
        if 0 < elapsed <= max_response_s:
            samples[first.actor_id].append(elapsed)

    return dict(samples)
