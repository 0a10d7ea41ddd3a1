from datetime import datetime, timedelta, timezone

import pytest

from concierge.protocol.resolver import ConfirmationResolver
from concierge.protocol.types import ActionKind, ConfirmationToken, PendingConfirmation, Proposal, Resolution

NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def pending():
    proposal = Proposal(ActionKind.CANCEL, {"booking_id": "3"}, ())
    token = ConfirmationToken(
        value="tok",
        session_id="sess-1",
        proposal_fingerprint="fp",
        issued_at=NOW,
        expires_at=NOW + timedelta(minutes=5),
    )
    return PendingConfirmation(proposal=proposal, token=token)


@pytest.mark.parametrize("message", ["yes", "Yes!", "  ok.", "CONFIRM", "نعم", "تمام؟"])
def test_affirmations(pending, message):
    assert ConfirmationResolver().resolve(pending, message) is Resolution.AFFIRM


@pytest.mark.parametrize("message", ["no", "Nope.", "cancel", "لا", "إلغاء"])
def test_rejections(pending, message):
    assert ConfirmationResolver().resolve(pending, message) is Resolution.REJECT


@pytest.mark.parametrize(
    "message",
    ["yes but change the time", "not sure", "yesterday", "book plumbing instead", "ok no"],
)
def test_mixed_or_partial_replies_are_unrelated(pending, message):
    assert ConfirmationResolver().resolve(pending, message) is Resolution.UNRELATED


def test_nothing_pending_is_always_unrelated():
    assert ConfirmationResolver().resolve(None, "yes") is Resolution.UNRELATED
