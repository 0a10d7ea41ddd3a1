"""Session-keyed store of pending confirmations.

Each session owns at most one ``PendingConfirmation``. Every read or write
goes through :meth:`PendingConfirmationStore.transaction`, which holds an
``asyncio.Lock`` private to that session, so concurrent turns of one session
are serialized while different sessions never wait on each other.

Expiry is lazy: an expired slot stays in place until a resolution attempt
notices it, which lets the executor report ``expired`` rather than
``invalid`` for a late confirmation.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

from concierge.protocol.errors import IncompleteProposal
from concierge.protocol.tokens import TokenIssuer
from concierge.protocol.types import Clock, ConfirmationToken, PendingConfirmation, Proposal, utc_now

logger = logging.getLogger("concierge.protocol.store")


class SlotTransaction:
    """Exclusive access to one session's pending slot."""

    def __init__(self, store: "PendingConfirmationStore", session_id: str) -> None:
        self._store = store
        self.session_id = session_id

    @property
    def pending(self) -> PendingConfirmation | None:
        return self._store._slots.get(self.session_id)

    def replace(self, proposal: Proposal) -> ConfirmationToken:
        if not proposal.is_complete:
            raise IncompleteProposal(proposal.missing_fields)

        issued_at = self._store.clock()
        token = self._store.issuer.mint(
            self.session_id,
            proposal,
            issued_at=issued_at,
            expires_at=issued_at + self._store.ttl,
        )
        previous = self._store._slots.get(self.session_id)
        self._store._slots[self.session_id] = PendingConfirmation(proposal=proposal, token=token)
        if previous is not None:
            logger.info(
                "Superseded pending %s with %s for session %s",
                previous.proposal.action_kind.value,
                proposal.action_kind.value,
                self.session_id,
            )
        else:
            logger.info("Issued pending %s for session %s", proposal.action_kind.value, self.session_id)
        return token

    def consume(self) -> PendingConfirmation:
        """Mark the pending token spent and empty the slot."""

        pending = self._store._slots.pop(self.session_id)
        pending.token.consumed = True
        return pending

    def clear(self) -> None:
        self._store._slots.pop(self.session_id, None)


class PendingConfirmationStore:
    """Owner of the ``session_id -> PendingConfirmation`` mapping."""

    def __init__(
        self,
        issuer: TokenIssuer,
        ttl: timedelta = timedelta(minutes=5),
        clock: Clock = utc_now,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("confirmation TTL must be positive")
        self.issuer = issuer
        self.ttl = ttl
        self.clock = clock
        self._slots: dict[str, PendingConfirmation] = {}
        # Locks are kept for the life of the process, one per session ever seen.
        self._locks: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def transaction(self, session_id: str) -> AsyncIterator[SlotTransaction]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        async with lock:
            yield SlotTransaction(self, session_id)

    async def issue(self, session_id: str, proposal: Proposal) -> ConfirmationToken:
        async with self.transaction(session_id) as slot:
            return slot.replace(proposal)

    async def get(self, session_id: str) -> PendingConfirmation | None:
        async with self.transaction(session_id) as slot:
            return slot.pending

    async def clear(self, session_id: str) -> None:
        async with self.transaction(session_id) as slot:
            slot.clear()

    def __len__(self) -> int:
        return len(self._slots)
