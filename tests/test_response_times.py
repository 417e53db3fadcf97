"""
tests/test_response_times.py — First-Response Sample Derivation
================================================================
"""

from __future__ import annotations

from gatekeep.constants import MAX_RESPONSE_TIME_S
from gatekeep.engine.response_times import LogEvent, response_samples_by_moderator

APPLICANT = 500
ALICE = 111
BOB = 222


def ev(app_id: str, actor_id: int, action: str, ts: int) -> LogEvent:
    return LogEvent(app_id=app_id, actor_id=actor_id, action=action, created_at_s=ts)


class TestResponseSamples:
    """Tests for response_samples_by_moderator()."""

    def test_first_responder_gets_sample(self):
        """The first moderator action after submission is the response."""
        events = [
            ev("a", APPLICANT, "app_submitted", 100),
            ev("a", ALICE, "claim", 160),
            ev("a", BOB, "approve", 400),
        ]
        assert response_samples_by_moderator(events) == {ALICE: [60]}

    def test_latest_submission_resets_clock(self):
        """Resubmission: measure from the most recent submission."""
        events = [
            ev("a", APPLICANT, "app_submitted", 100),
            ev("a", ALICE, "reject", 200),
            ev("a", APPLICANT, "app_submitted", 1000),
            ev("a", BOB, "approve", 1030),
        ]
        assert response_samples_by_moderator(events) == {BOB: [30]}

    def test_unordered_events(self):
        events = [
            ev("a", BOB, "approve", 400),
            ev("a", ALICE, "claim", 160),
            ev("a", APPLICANT, "app_submitted", 100),
        ]
        assert response_samples_by_moderator(events) == {ALICE: [60]}

    def test_no_submission_no_sample(self):
        assert response_samples_by_moderator([ev("a", ALICE, "claim", 10)]) == {}

    def test_no_response_no_sample(self):
        assert response_samples_by_moderator([ev("a", APPLICANT, "app_submitted", 10)]) == {}

    def test_same_second_is_not_a_response(self):
        """Only actions strictly after the submission count."""
        events = [
            ev("a", APPLICANT, "app_submitted", 100),
            ev("a", ALICE, "claim", 100),
        ]
        assert response_samples_by_moderator(events) == {}

    def test_unclaim_is_not_a_response(self):
        events = [
            ev("a", APPLICANT, "app_submitted", 100),
            ev("a", ALICE, "unclaim", 110),
            ev("a", BOB, "claim", 150),
        ]
        assert response_samples_by_moderator(events) == {BOB: [50]}

    def test_week_boundary(self):
        """Exactly one week is kept; a second more is dropped as orphaned."""
        kept = [
            ev("a", APPLICANT, "app_submitted", 0),
            ev("a", ALICE, "claim", MAX_RESPONSE_TIME_S),
        ]
        dropped = [
            ev("b", APPLICANT, "app_submitted", 0),
            ev("b", BOB, "claim", MAX_RESPONSE_TIME_S + 1),
        ]
        assert response_samples_by_moderator(kept + dropped) == {ALICE: [MAX_RESPONSE_TIME_S]}

    def test_samples_grouped_per_moderator(self):
        events = [
            ev("a", APPLICANT, "app_submitted", 0),
            ev("a", ALICE, "claim", 10),
            ev("b", APPLICANT, "app_submitted", 0),
            ev("b", ALICE, "modmail_open", 20),
            ev("c", APPLICANT, "app_submitted", 0),
            ev("c", BOB, "kick", 5),
        ]
        result = response_samples_by_moderator(events)
        assert sorted(result[ALICE]) == [10, 20]
        assert result[BOB] == [5]
