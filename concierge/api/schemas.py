"""Request and response bodies for the chat API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from concierge.protocol.service import ConfirmOutcome, MessageOutcome
from concierge.protocol.types import ActionResult


class ChatRequest(BaseModel):
    session_id: str = Field(default="", max_length=128)
    text: str = Field(default="", max_length=2000)
    user_id: str | None = None
    token: str | None = Field(default=None, description="Token from the last pending confirmation, if any.")
    language: str | None = Field(default=None, description="'en' or 'ar'.")


class ConfirmRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=128)
    token: str = Field(min_length=1)
    confirm: bool
    user_id: str | None = None
    language: str | None = None


class PendingConfirmationBody(BaseModel):
    prompt_text: str
    token: str
    action_kind: str
    parameters: dict[str, str]
    expires_at: datetime


class ActionResultBody(BaseModel):
    status: Literal["succeeded", "failed", "cancelled"]
    action_kind: str | None = None
    result_payload: dict[str, Any] = Field(default_factory=dict)
    error_reason: str | None = None

    @classmethod
    def from_result(cls, result: ActionResult) -> "ActionResultBody":
        return cls(
            status=result.status.value,
            action_kind=result.action_kind.value if result.action_kind else None,
            result_payload=result.result_payload,
            error_reason=result.error_reason.value if result.error_reason else None,
        )


class ChatResponse(BaseModel):
    session_id: str
    reply: str
    intent: str
    pending_confirmation: PendingConfirmationBody | None = None
    missing_fields: list[str] = Field(default_factory=list)
    result: ActionResultBody | None = None

    @classmethod
    def from_outcome(cls, outcome: MessageOutcome) -> "ChatResponse":
        pending = outcome.pending_confirmation
        return cls(
            session_id=outcome.session_id,
            reply=outcome.reply,
            intent=outcome.intent,
            pending_confirmation=(
                PendingConfirmationBody(
                    prompt_text=pending.prompt_text,
                    token=pending.token,
                    action_kind=pending.action_kind.value,
                    parameters=pending.parameters,
                    expires_at=pending.expires_at,
                )
                if pending
                else None
            ),
            missing_fields=list(outcome.missing_fields),
            result=ActionResultBody.from_result(outcome.result) if outcome.result else None,
        )


class ConfirmResponse(ActionResultBody):
    session_id: str
    reply: str

    @classmethod
    def from_outcome(cls, outcome: ConfirmOutcome) -> "ConfirmResponse":
        body = ActionResultBody.from_result(outcome.result)
        return cls(session_id=outcome.session_id, reply=outcome.reply, **body.model_dump())
