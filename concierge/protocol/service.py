"""Chat-facing facade over the confirmation protocol.

``confirm`` is the single resolution channel. A free-text "yes" or "no" is
classified by the resolver and then routed through ``confirm`` with the
token the client sent back, so both client styles share one code path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from concierge.actions.base import BookingService, BookingServiceError, ServiceCatalog
from concierge.core.metrics import MetricsCollector
from concierge.extractor.base import IntentExtractor
from concierge.memory.models import ConversationSnapshot, MessageTurn, SlotState
from concierge.memory.store import MemoryStore
from concierge.protocol import messages
from concierge.protocol.builder import ProposalBuilder
from concierge.protocol.errors import UnsupportedIntent
from concierge.protocol.executor import ActionExecutor
from concierge.protocol.resolver import ConfirmationResolver
from concierge.protocol.sessions import SessionRegistry
from concierge.protocol.store import PendingConfirmationStore
from concierge.protocol.types import (
    ActionKind,
    ActionResult,
    DraftIntent,
    Resolution,
    SessionContext,
)

logger = logging.getLogger("concierge.protocol")


@dataclass(slots=True)
class PendingView:
    """What the client needs to render and later answer a confirmation."""

    prompt_text: str
    token: str
    action_kind: ActionKind
    parameters: dict[str, str]
    expires_at: datetime


@dataclass(slots=True)
class MessageOutcome:
    session_id: str
    reply: str
    intent: str
    pending_confirmation: PendingView | None = None
    missing_fields: tuple[str, ...] = ()
    result: ActionResult | None = None


@dataclass(slots=True)
class ConfirmOutcome:
    session_id: str
    result: ActionResult
    reply: str


@dataclass(slots=True)
class _Turn:
    intent: str
    outcome: str
    reply: str
    pending: PendingView | None = None
    missing_fields: tuple[str, ...] = ()
    result: ActionResult | None = None
    slot_updates: SlotState = field(default_factory=SlotState)


class ConfirmationProtocol:
    """Runs one chat turn: resolve a pending confirmation or propose a new action."""

    def __init__(
        self,
        extractor: IntentExtractor,
        catalog: ServiceCatalog,
        bookings: BookingService,
        store: PendingConfirmationStore,
        memory: MemoryStore | None = None,
        sessions: SessionRegistry | None = None,
        metrics: MetricsCollector | None = None,
        resolver: ConfirmationResolver | None = None,
        min_confidence: float = 0.5,
        history_window: int = 10,
    ) -> None:
        self.extractor = extractor
        self.catalog = catalog
        self.bookings = bookings
        self.store = store
        self.memory = memory
        self.sessions = sessions or SessionRegistry(clock=store.clock)
        self.metrics = metrics or MetricsCollector()
        self.resolver = resolver or ConfirmationResolver()
        self.builder = ProposalBuilder(catalog, clock=store.clock)
        self.executor = ActionExecutor(store, bookings)
        self.min_confidence = min_confidence
        self.history_window = history_window

    async def handle_message(
        self,
        session_id: str,
        text: str,
        user_id: str | None = None,
        token: str | None = None,
        language: str | None = None,
    ) -> MessageOutcome:
        self.sessions.touch(session_id, user_id)
        snapshot = self._snapshot(session_id)
        lang = messages.pick_language(language or snapshot.slots.get("language"))
        self._remember(MessageTurn(session_id=session_id, role="user", content=text))

        pending = await self.store.get(session_id)
        resolution = self.resolver.resolve(pending, text)

        if resolution is Resolution.AFFIRM:
            confirmed = await self.confirm(session_id, token, True, user_id=user_id, language=lang, record=False)
            turn = _Turn("confirmation", confirmed.result.status.value, confirmed.reply, result=confirmed.result)
        elif resolution is Resolution.REJECT:
            # Rejecting never mutates, so the pending token may stand in for a missing one.
            presented = token or (pending.token.value if pending else None)
            confirmed = await self.confirm(session_id, presented, False, user_id=user_id, language=lang, record=False)
            turn = _Turn("confirmation", confirmed.result.status.value, confirmed.reply, result=confirmed.result)
        else:
            turn = await self._propose(session_id, text, user_id, snapshot, lang)

        if language:
            turn.slot_updates["language"] = lang
        self._update_slots(session_id, turn.slot_updates)
        self._remember(
            MessageTurn(
                session_id=session_id,
                role="assistant",
                content=turn.reply,
                metadata={"intent": turn.intent, "outcome": turn.outcome},
            )
        )
        self.metrics.record_request(turn.intent, turn.outcome)

        return MessageOutcome(
            session_id=session_id,
            reply=turn.reply,
            intent=turn.intent,
            pending_confirmation=turn.pending,
            missing_fields=turn.missing_fields,
            result=turn.result,
        )

    async def confirm(
        self,
        session_id: str,
        token: str | None,
        confirm: bool,
        user_id: str | None = None,
        language: str | None = None,
        record: bool = True,
    ) -> ConfirmOutcome:
        self.sessions.touch(session_id, user_id)
        if confirm:
            result = await self.executor.execute(session_id, token, user_id)
        else:
            result = await self.executor.reject(session_id, token)

        reply = messages.result_reply(result, messages.pick_language(language))
        self.metrics.record_resolution(
            result.action_kind.value if result.action_kind else None,
            result.status.value,
            result.error_reason.value if result.error_reason else None,
        )
        if record:
            self.metrics.record_request("confirmation", result.status.value)
        return ConfirmOutcome(session_id=session_id, result=result, reply=reply)

    async def describe_pending(self, session_id: str) -> dict[str, Any] | None:
        """Return the pending proposal without its token."""

        pending = await self.store.get(session_id)
        if pending is None:
            return None
        return {
            "action_kind": pending.proposal.action_kind.value,
            "parameters": dict(pending.proposal.parameters),
            "expires_at": pending.token.expires_at.isoformat(),
            "expired": pending.token.is_expired(self.store.clock()),
        }

    async def _propose(
        self,
        session_id: str,
        text: str,
        user_id: str | None,
        snapshot: ConversationSnapshot,
        lang: str,
    ) -> _Turn:
        try:
            draft = await self.extractor.classify(text, snapshot.history())
        except Exception:  # noqa: BLE001
            logger.exception("Intent extractor failed for session %s", session_id)
            draft = None

        if draft is None or draft.confidence < self.min_confidence:
            return _Turn("none", "fallback", messages.render("fallback", lang))

        context = SessionContext(
            session=self.sessions.touch(session_id),
            remembered_service=snapshot.slots.get("service_reference"),
            active_booking_ids=await self._active_bookings(draft, user_id),
        )
        try:
            proposal = self.builder.build(draft, context)
        except UnsupportedIntent as exc:
            logger.info("Unsupported intent for session %s: %s", session_id, exc)
            return _Turn("unsupported", "unsupported", messages.render("unsupported", lang))

        intent = proposal.action_kind.value
        slot_updates = SlotState()
        if "service_reference" in proposal.parameters:
            slot_updates["service_reference"] = proposal.parameters["service_reference"]

        if not proposal.is_complete:
            return _Turn(
                intent,
                "clarify",
                messages.clarification(proposal.missing_fields, lang),
                missing_fields=proposal.missing_fields,
                slot_updates=slot_updates,
            )

        token = await self.store.issue(session_id, proposal)
        prompt = messages.confirmation_prompt(proposal, self.catalog, lang)
        pending = PendingView(
            prompt_text=prompt,
            token=token.value,
            action_kind=proposal.action_kind,
            parameters=dict(proposal.parameters),
            expires_at=token.expires_at,
        )
        return _Turn(intent, "issued", prompt, pending=pending, slot_updates=slot_updates)

    async def _active_bookings(self, draft: DraftIntent, user_id: str | None) -> list[str]:
        if not user_id or str(draft.action_kind).lower() != ActionKind.CANCEL.value:
            return []
        if isinstance(draft.parameters, dict) and draft.parameters.get("booking_id"):
            return []
        try:
            return list(await self.bookings.list_active_bookings(user_id))
        except BookingServiceError as exc:
            logger.warning("Could not list active bookings: %s", exc)
            return []

    def _snapshot(self, session_id: str) -> ConversationSnapshot:
        if self.memory is None:
            return ConversationSnapshot(session_id=session_id, turns=[], slots=SlotState())
        return self.memory.load_snapshot(session_id, limit=self.history_window)

    def _remember(self, turn: MessageTurn) -> None:
        if self.memory is not None:
            self.memory.append_turn(turn)

    def _update_slots(self, session_id: str, slots: SlotState) -> None:
        if self.memory is not None and slots:
            self.memory.upsert_slots(session_id, slots)
