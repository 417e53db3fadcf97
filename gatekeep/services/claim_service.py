"""
gatekeep.services.claim_service — Atomic Claim / Unclaim
=========================================================

Guarantees at most one reviewer works an application at a time.

Every mutation follows the same pattern inside **one** transaction:

  1. Validate (application exists → panic off → status non-terminal)
  2. Check / take ownership with a single conditional statement
  3. Append the matching ``action_log`` row
  4. Commit

Failures come back as a :class:`ClaimResult` with a machine-readable
:class:`ClaimErrorCode`.  An error result always means nothing was
written.

Races between two reviewers are settled by the ``review_claims`` primary
key: the claim is an ``INSERT … ON CONFLICT DO NOTHING``, so exactly one
insert lands and the loser re-reads the winner's id.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from gatekeep.constants import TERMINAL_STATUSES
from gatekeep.database.engine import dialect_insert
from gatekeep.database.models import Application, ReviewAction, ReviewClaim
from gatekeep.services.action_log import append_action, now_s
from gatekeep.services.panic_service import is_panic_mode

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------
class ClaimErrorCode(enum.StrEnum):
    APP_NOT_FOUND = "APP_NOT_FOUND"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    NOT_CLAIMED = "NOT_CLAIMED"
    NOT_OWNER = "NOT_OWNER"
    INVALID_STATUS = "INVALID_STATUS"


@dataclass(frozen=True, slots=True)
class ClaimResult:
    """Outcome of :func:`claim` / :func:`unclaim`.

    ``reviewer_id`` is the claim holder after the call (the winner on
    ``ALREADY_CLAIMED``, the owner on ``NOT_OWNER``, ``None`` once
    released).  ``changed`` is False for errors and idempotent re-claims.
    """

    ok: bool
    code: ClaimErrorCode | None = None
    message: str = ""
    reviewer_id: int | None = None
    changed: bool = False

    @classmethod
    def failure(
        cls, code: ClaimErrorCode, message: str, reviewer_id: int | None = None,
    ) -> ClaimResult:
        return cls(ok=False, code=code, message=message, reviewer_id=reviewer_id)


@dataclass(frozen=True, slots=True)
class ClaimInfo:
    app_id: str
    reviewer_id: int
    claimed_at: int


PANIC_MESSAGE = "Panic mode is active. All review operations are suspended."


def claimed_message(reviewer_id: int) -> str:
    """User-facing denial.  ``<@id>`` renders as a mention in Discord."""
    return (
        f"This application is claimed by <@{reviewer_id}>. "
        "Ask them to finish or unclaim it."
    )


# ---------------------------------------------------------------------------
# Shared validation
# ---------------------------------------------------------------------------
def _validate(
    session: Session, app_id: str, guild_id: int, op: str,
) -> ClaimResult | None:
    """Run the ordered preconditions.  Returns a failure or ``None``."""
    app = session.scalar(
        select(Application).where(
            Application.id == app_id, Application.guild_id == guild_id,
        )
    )
    if app is None:
        logger.warning("%s: app %s not found in guild %s", op, app_id, guild_id)
        return ClaimResult.failure(ClaimErrorCode.APP_NOT_FOUND, "Application not found")

    if is_panic_mode(session, guild_id):
        logger.warning("%s blocked for app %s: panic mode active (guild %s)", op, app_id, guild_id)
        return ClaimResult.failure(ClaimErrorCode.INVALID_STATUS, PANIC_MESSAGE)

    if app.status in TERMINAL_STATUSES:
        logger.warning("%s: app %s in terminal state %s", op, app_id, app.status)
        return ClaimResult.failure(
            ClaimErrorCode.INVALID_STATUS, f"Application already {app.status}",
        )
    return None


def _current_owner(session: Session, app_id: str) -> int | None:
    return session.scalar(
        select(ReviewClaim.reviewer_id).where(ReviewClaim.app_id == app_id)
    )


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
def claim(engine: Engine, app_id: str, reviewer_id: int, guild_id: int) -> ClaimResult:
    """Atomically claim *app_id* for *reviewer_id*.

    Re-claiming an application you already hold succeeds without writing
    anything (double-click safe).
    """
    with Session(engine) as session, session.begin():
        failure = _validate(session, app_id, guild_id, "claim")
        if failure is not None:
            return failure

        owner = _current_owner(session, app_id)
        if owner is not None:
            return _held_result(app_id, owner, reviewer_id)

        ts = now_s()
        inserted = session.execute(
            dialect_insert(session, ReviewClaim)
            .values(app_id=app_id, reviewer_id=reviewer_id, claimed_at=ts)
            .on_conflict_do_nothing(index_elements=[ReviewClaim.app_id])
        ).rowcount
        if not inserted:
            # Lost the race between the read above and the insert.
            owner = _current_owner(session, app_id)
            return _held_result(app_id, owner, reviewer_id)

        append_action(
            session,
            guild_id=guild_id,
            app_id=app_id,
            actor_id=reviewer_id,
            action=ReviewAction.CLAIM,
            created_at_s=ts,
        )

    logger.info("App %s claimed by %s (guild %s)", app_id, reviewer_id, guild_id)
    return ClaimResult(ok=True, reviewer_id=reviewer_id, changed=True)


def _held_result(app_id: str, owner: int | None, reviewer_id: int) -> ClaimResult:
    if owner == reviewer_id:
        logger.debug("App %s already claimed by %s (idempotent)", app_id, reviewer_id)
        return ClaimResult(ok=True, reviewer_id=reviewer_id)
    logger.warning(
        "claim: app %s already claimed by %s, requested by %s", app_id, owner, reviewer_id,
    )
    return ClaimResult.failure(
        ClaimErrorCode.ALREADY_CLAIMED,
        "Application already claimed by another moderator",
        reviewer_id=owner,
    )


def unclaim(engine: Engine, app_id: str, reviewer_id: int, guild_id: int) -> ClaimResult:
    """Atomically release *app_id*; only the holder may release it."""
    with Session(engine) as session, session.begin():
        failure = _validate(session, app_id, guild_id, "unclaim")
        if failure is not None:
            return failure

        owner = _current_owner(session, app_id)
        if owner is None:
            logger.warning("unclaim: app %s is not claimed", app_id)
            return ClaimResult.failure(ClaimErrorCode.NOT_CLAIMED, "Application is not claimed")
        if owner != reviewer_id:
            logger.warning(
                "unclaim: app %s owned by %s, requested by %s", app_id, owner, reviewer_id,
            )
            return ClaimResult.failure(
                ClaimErrorCode.NOT_OWNER,
                "You did not claim this application",
                reviewer_id=owner,
            )

        deleted = session.execute(
            delete(ReviewClaim).where(
                ReviewClaim.app_id == app_id, ReviewClaim.reviewer_id == reviewer_id,
            )
        ).rowcount
        if not deleted:
            # Released or re-taken concurrently.
            owner = _current_owner(session, app_id)
            if owner is None:
                return ClaimResult.failure(
                    ClaimErrorCode.NOT_CLAIMED, "Application is not claimed",
                )
            return ClaimResult.failure(
                ClaimErrorCode.NOT_OWNER,
                "You did not claim this application",
                reviewer_id=owner,
            )

        append_action(
            session,
            guild_id=guild_id,
            app_id=app_id,
            actor_id=reviewer_id,
            action=ReviewAction.UNCLAIM,
        )

    logger.info("App %s unclaimed by %s (guild %s)", app_id, reviewer_id, guild_id)
    return ClaimResult(ok=True, reviewer_id=None, changed=True)


# ---------------------------------------------------------------------------
# Reads & helpers
# ---------------------------------------------------------------------------
def get_claim(engine: Engine, app_id: str) -> ClaimInfo | None:
    with Session(engine) as session:
        row = session.get(ReviewClaim, app_id)
        if row is None:
            return None
        return ClaimInfo(app_id=row.app_id, reviewer_id=row.reviewer_id, claimed_at=row.claimed_at)


def clear_claim(engine: Engine, app_id: str) -> bool:
    """Drop the claim row without auditing.  Idempotent.

    Returns True if a row was removed.
    """
    with Session(engine) as session, session.begin():
        deleted = session.execute(
            delete(ReviewClaim).where(ReviewClaim.app_id == app_id)
        ).rowcount
    if deleted:
        logger.info("Claim cleared for app %s", app_id)
    return bool(deleted)


def claim_guard(claim_info: ClaimInfo | None, acting_user_id: int) -> str | None:
    """Return a denial message if someone else holds the claim, else ``None``."""
    if claim_info is not None and claim_info.reviewer_id != acting_user_id:
        return claimed_message(claim_info.reviewer_id)
    return None
