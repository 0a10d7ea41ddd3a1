"""Single-shot execution of confirmed proposals."""

from __future__ import annotations

import hmac
import logging
from typing import Any

from concierge.actions.base import BookingService, BookingServiceError
from concierge.protocol.errors import (
    AuthenticationRequired,
    ExecutionFailed,
    ProtocolError,
    TokenExpired,
    TokenInvalid,
)
from concierge.protocol.store import PendingConfirmationStore, SlotTransaction
from concierge.protocol.types import (
    ActionKind,
    ActionResult,
    ActionStatus,
    PendingConfirmation,
    Proposal,
    fingerprint_proposal,
)

DEFAULT_CANCELLATION_REASON = "Cancelled via AI assistant"

logger = logging.getLogger("concierge.protocol.executor")


class ActionExecutor:
    """Validates a presented token, spends it, then calls the booking backend once.

    Validation and consumption share one store transaction, so two
    confirmations racing on the same token can never both reach the backend.
    The backend call itself runs after the slot has been emptied.
    """

    def __init__(self, store: PendingConfirmationStore, bookings: BookingService) -> None:
        self._store = store
        self._bookings = bookings

    async def execute(self, session_id: str, token: str | None, user_id: str | None) -> ActionResult:
        try:
            async with self._store.transaction(session_id) as slot:
                pending = self._validate(slot, token)
                if not user_id:
                    # Slot and token stay usable until their TTL.
                    raise AuthenticationRequired("sign-in required to run this action")
                pending = slot.consume()
        except ProtocolError as exc:
            logger.info("Confirmation refused for session %s: %s", session_id, exc.reason.value)
            return ActionResult(status=ActionStatus.FAILED, error_reason=exc.reason, detail=str(exc))

        proposal = pending.proposal
        try:
            payload = await self._run(proposal, user_id)
        except ExecutionFailed as exc:
            return ActionResult(
                status=ActionStatus.FAILED,
                action_kind=proposal.action_kind,
                error_reason=exc.reason,
                detail=str(exc),
            )

        logger.info("Executed %s for session %s", proposal.action_kind.value, session_id)
        return ActionResult(
            status=ActionStatus.SUCCEEDED,
            action_kind=proposal.action_kind,
            result_payload=payload,
        )

    async def reject(self, session_id: str, token: str | None = None) -> ActionResult:
        """Discard the pending proposal without side effects.

        Without a token the current slot is discarded; with one, only the slot
        that token belongs to.
        """

        async with self._store.transaction(session_id) as slot:
            pending = slot.pending
            if pending is None:
                return ActionResult(
                    status=ActionStatus.FAILED,
                    error_reason=TokenInvalid.reason,
                    detail="nothing to reject",
                )
            if token is not None and not _same_token(token, pending.token.value):
                return ActionResult(
                    status=ActionStatus.FAILED,
                    error_reason=TokenInvalid.reason,
                    detail="token does not match the pending confirmation",
                )
            slot.clear()

        logger.info("Rejected pending %s for session %s", pending.proposal.action_kind.value, session_id)
        return ActionResult(status=ActionStatus.CANCELLED, action_kind=pending.proposal.action_kind)

    def _validate(self, slot: SlotTransaction, presented: str | None) -> PendingConfirmation:
        pending = slot.pending
        current = pending.token if pending else None
        claims = self._store.issuer.claims(presented, current) if presented else None

        # Stale or foreign tokens never touch the slot that belongs to the session now.
        if pending is None or current is None or claims is None or not _same_token(presented, current.value):
            raise TokenInvalid("token does not match the pending confirmation")
        if current.consumed:
            raise TokenInvalid("token already used")
        if current.is_expired(self._store.clock()):
            slot.clear()
            raise TokenExpired("confirmation expired")

        fingerprint = fingerprint_proposal(pending.proposal)
        if claims.proposal_fingerprint != fingerprint or current.proposal_fingerprint != fingerprint:
            slot.clear()
            raise TokenInvalid("proposal changed since the token was issued")
        if claims.session_id != slot.session_id or current.session_id != slot.session_id:
            slot.clear()
            raise TokenInvalid("token belongs to another session")
        return pending

    async def _run(self, proposal: Proposal, user_id: str) -> dict[str, Any]:
        parameters = proposal.parameters
        try:
            if proposal.action_kind is ActionKind.BOOK:
                booking_id = await self._bookings.create_booking(user_id, parameters)
                return {"booking_id": booking_id, **parameters}
            if proposal.action_kind is ActionKind.CANCEL:
                booking_id = parameters["booking_id"]
                await self._bookings.cancel_booking(
                    booking_id,
                    user_id,
                    parameters.get("reason") or DEFAULT_CANCELLATION_REASON,
                )
                return {"booking_id": booking_id}
        except BookingServiceError as exc:
            logger.warning("Booking backend refused %s: %s", proposal.action_kind.value, exc)
            raise ExecutionFailed(str(exc)) from exc
        except Exception as exc:  # noqa: BLE001
            logger.exception("Booking backend failed during %s", proposal.action_kind.value)
            raise ExecutionFailed("booking backend error") from exc
        raise ExecutionFailed(f"no executor for {proposal.action_kind.value}")


def _same_token(presented: str | None, expected: str) -> bool:
    if presented is None:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())
