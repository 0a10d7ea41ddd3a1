import asyncio
from datetime import timedelta

import pytest

from concierge.actions.base import BookingServiceError
from concierge.actions.memory import InMemoryBookingService
from concierge.protocol.executor import DEFAULT_CANCELLATION_REASON, ActionExecutor
from concierge.protocol.store import PendingConfirmationStore
from concierge.protocol.tokens import SignedTokenIssuer
from concierge.protocol.types import ActionKind, ActionStatus, ErrorReason, Proposal

BOOK = Proposal(ActionKind.BOOK, {"service_reference": "home-cleaning", "when": "2026-10-23T09:00"}, ())


class SlowBookings(InMemoryBookingService):
    """Yields to the loop inside every call so racing confirmations interleave."""

    calls = 0

    async def create_booking(self, user_id, parameters):
        self.calls += 1
        await asyncio.sleep(0.01)
        return await super().create_booking(user_id, parameters)


class BrokenBookings(InMemoryBookingService):
    def __init__(self, catalog, error):
        super().__init__(catalog)
        self.error = error

    async def create_booking(self, user_id, parameters):
        raise self.error


@pytest.fixture
def executor(pending_store, bookings):
    return ActionExecutor(pending_store, bookings)


def test_confirm_executes_once_and_consumes(executor, pending_store, bookings):
    async def scenario():
        token = await pending_store.issue("sess-1", BOOK)
        first = await executor.execute("sess-1", token.value, "user-1")
        second = await executor.execute("sess-1", token.value, "user-1")
        return token, first, second

    token, first, second = asyncio.run(scenario())

    assert first.status is ActionStatus.SUCCEEDED
    assert first.result_payload["booking_id"] == "1"
    assert token.consumed
    assert second.status is ActionStatus.FAILED
    assert second.error_reason is ErrorReason.INVALID
    assert len(bookings.bookings) == 1


def test_concurrent_confirmations_call_backend_once(pending_store, catalog):
    bookings = SlowBookings(catalog)
    executor = ActionExecutor(pending_store, bookings)

    async def scenario():
        token = await pending_store.issue("sess-1", BOOK)
        return await asyncio.gather(
            executor.execute("sess-1", token.value, "user-1"),
            executor.execute("sess-1", token.value, "user-1"),
        )

    results = asyncio.run(scenario())

    assert sorted(result.status.value for result in results) == ["failed", "succeeded"]
    assert bookings.calls == 1


def test_expired_token_fails_and_clears_slot(executor, pending_store, clock, bookings):
    async def scenario():
        token = await pending_store.issue("sess-1", BOOK)
        clock.advance(minutes=5, milliseconds=1)
        result = await executor.execute("sess-1", token.value, "user-1")
        return result, await pending_store.get("sess-1")

    result, pending = asyncio.run(scenario())

    assert result.error_reason is ErrorReason.EXPIRED
    assert pending is None
    assert bookings.bookings == {}


def test_token_is_valid_just_before_expiry(executor, pending_store, clock):
    async def scenario():
        token = await pending_store.issue("sess-1", BOOK)
        clock.advance(minutes=5, milliseconds=-1)
        return await executor.execute("sess-1", token.value, "user-1")

    assert asyncio.run(scenario()).succeeded


def test_superseded_token_is_invalid_and_leaves_new_slot(executor, pending_store, bookings):
    cancel = Proposal(ActionKind.CANCEL, {"booking_id": "8"}, ())

    async def scenario():
        stale = await pending_store.issue("sess-1", BOOK)
        await pending_store.issue("sess-1", cancel)
        result = await executor.execute("sess-1", stale.value, "user-1")
        return result, await pending_store.get("sess-1")

    result, pending = asyncio.run(scenario())

    assert result.error_reason is ErrorReason.INVALID
    assert pending.proposal is cancel
    assert bookings.bookings == {}


def test_token_from_another_session_is_invalid(executor, pending_store):
    async def scenario():
        foreign = await pending_store.issue("sess-a", BOOK)
        await pending_store.issue("sess-b", BOOK)
        result = await executor.execute("sess-b", foreign.value, "user-1")
        return result, await pending_store.get("sess-a"), await pending_store.get("sess-b")

    result, first, second = asyncio.run(scenario())

    assert result.error_reason is ErrorReason.INVALID
    assert first is not None
    assert second is not None


def test_missing_token_is_invalid(executor, pending_store):
    async def scenario():
        await pending_store.issue("sess-1", BOOK)
        return await executor.execute("sess-1", None, "user-1")

    assert asyncio.run(scenario()).error_reason is ErrorReason.INVALID


def test_sign_in_required_keeps_token_usable(executor, pending_store, bookings):
    async def scenario():
        token = await pending_store.issue("sess-1", BOOK)
        anonymous = await executor.execute("sess-1", token.value, None)
        signed_in = await executor.execute("sess-1", token.value, "user-1")
        return anonymous, signed_in

    anonymous, signed_in = asyncio.run(scenario())

    assert anonymous.error_reason is ErrorReason.SIGN_IN_REQUIRED
    assert signed_in.succeeded
    assert len(bookings.bookings) == 1


@pytest.mark.parametrize("error", [BookingServiceError("slot taken"), RuntimeError("boom")])
def test_backend_failure_consumes_token(pending_store, catalog, error):
    executor = ActionExecutor(pending_store, BrokenBookings(catalog, error))

    async def scenario():
        token = await pending_store.issue("sess-1", BOOK)
        failed = await executor.execute("sess-1", token.value, "user-1")
        retried = await executor.execute("sess-1", token.value, "user-1")
        return failed, retried

    failed, retried = asyncio.run(scenario())

    assert failed.status is ActionStatus.FAILED
    assert failed.error_reason is ErrorReason.EXECUTION_FAILED
    assert failed.action_kind is ActionKind.BOOK
    assert retried.error_reason is ErrorReason.INVALID


def test_cancel_uses_default_reason(executor, pending_store, bookings):
    async def scenario():
        booking_id = await bookings.create_booking("user-1", BOOK.parameters)
        proposal = Proposal(ActionKind.CANCEL, {"booking_id": booking_id}, ())
        token = await pending_store.issue("sess-1", proposal)
        return booking_id, await executor.execute("sess-1", token.value, "user-1")

    booking_id, result = asyncio.run(scenario())

    assert result.succeeded
    assert result.result_payload == {"booking_id": booking_id}
    assert bookings.bookings[booking_id].status == "cancelled"
    assert bookings.bookings[booking_id].cancellation_reason == DEFAULT_CANCELLATION_REASON


def test_cancel_of_someone_elses_booking_fails(executor, pending_store, bookings):
    async def scenario():
        booking_id = await bookings.create_booking("owner", BOOK.parameters)
        token = await pending_store.issue("sess-1", Proposal(ActionKind.CANCEL, {"booking_id": booking_id}, ()))
        return booking_id, await executor.execute("sess-1", token.value, "intruder")

    booking_id, result = asyncio.run(scenario())

    assert result.error_reason is ErrorReason.EXECUTION_FAILED
    assert bookings.bookings[booking_id].status == "pending"


def test_reject_discards_without_side_effects(executor, pending_store, bookings):
    async def scenario():
        token = await pending_store.issue("sess-1", BOOK)
        rejected = await executor.reject("sess-1", token.value)
        late = await executor.execute("sess-1", token.value, "user-1")
        return rejected, late

    rejected, late = asyncio.run(scenario())

    assert rejected.status is ActionStatus.CANCELLED
    assert rejected.action_kind is ActionKind.BOOK
    assert late.error_reason is ErrorReason.INVALID
    assert bookings.bookings == {}


def test_reject_with_wrong_token_keeps_slot(executor, pending_store):
    async def scenario():
        await pending_store.issue("sess-1", BOOK)
        result = await executor.reject("sess-1", "not-the-token")
        return result, await pending_store.get("sess-1")

    result, pending = asyncio.run(scenario())

    assert result.error_reason is ErrorReason.INVALID
    assert pending is not None


def test_reject_with_nothing_pending(executor):
    result = asyncio.run(executor.reject("sess-empty"))

    assert result.status is ActionStatus.FAILED
    assert result.error_reason is ErrorReason.INVALID


def test_reject_without_token_clears_current_slot(executor, pending_store):
    async def scenario():
        await pending_store.issue("sess-1", BOOK)
        result = await executor.reject("sess-1")
        return result, await pending_store.get("sess-1")

    result, pending = asyncio.run(scenario())

    assert result.status is ActionStatus.CANCELLED
    assert pending is None

@pytest.fixture
def signed_store(clock):
    return PendingConfirmationStore(SignedTokenIssuer("s3cret"), ttl=timedelta(minutes=5), clock=clock)


def test_altered_proposal_is_refused_and_cleared(signed_store, bookings):
    executor = ActionExecutor(signed_store, bookings)
    altered = Proposal(ActionKind.BOOK, {"service_reference": "plumbing", "when": "2026-10-23T09:00"}, ())

    async def scenario():
        token = await signed_store.issue("sess-1", BOOK)
        async with signed_store.transaction("sess-1") as slot:
            slot.pending.proposal = altered
        result = await executor.execute("sess-1", token.value, "user-1")
        return result, await signed_store.get("sess-1")

    result, pending = asyncio.run(scenario())

    assert result.status is ActionStatus.FAILED
    assert result.error_reason is ErrorReason.INVALID
    assert pending is None
    assert bookings.bookings == {}


def test_signed_token_minted_for_another_session_is_refused(signed_store, bookings, clock):
    executor = ActionExecutor(signed_store, bookings)

    async def scenario():
        await signed_store.issue("sess-1", BOOK)
        foreign = signed_store.issuer.mint("sess-other", BOOK, clock(), clock() + timedelta(minutes=5))
        async with signed_store.transaction("sess-1") as slot:
            slot.pending.token = foreign
        result = await executor.execute("sess-1", foreign.value, "user-1")
        return result, await signed_store.get("sess-1")

    result, pending = asyncio.run(scenario())

    assert result.error_reason is ErrorReason.INVALID
    assert pending is None
    assert bookings.bookings == {}


def test_signed_tokens_execute_normally(signed_store, bookings):
    executor = ActionExecutor(signed_store, bookings)

    async def scenario():
        token = await signed_store.issue("sess-1", BOOK)
        return await executor.execute("sess-1", token.value, "user-1")

    assert asyncio.run(scenario()).succeeded
    assert len(bookings.bookings) == 1
