"""API routes for chat turns and explicit confirmations."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from concierge.api.schemas import ChatRequest, ChatResponse, ConfirmRequest, ConfirmResponse
from concierge.protocol.service import ConfirmationProtocol


def get_protocol(request: Request) -> ConfirmationProtocol:
    """Dependency injector for the protocol wired into the running app."""

    return request.app.state.protocol


def create_chat_router() -> APIRouter:
    router = APIRouter(prefix="/chat", tags=["chat"])

    @router.post("", response_model=ChatResponse)
    async def submit_message(
        payload: ChatRequest,
        protocol: ConfirmationProtocol = Depends(get_protocol),
        x_user_id: str | None = Header(default=None),
    ) -> ChatResponse:
        """Handle one chat message: answer a pending confirmation or propose an action."""

        if not payload.session_id.strip() or not payload.text.strip():
            raise HTTPException(status_code=400, detail="session_id and text are required")

        outcome = await protocol.handle_message(
            payload.session_id,
            payload.text,
            user_id=payload.user_id or x_user_id,
            token=payload.token,
            language=payload.language,
        )
        return ChatResponse.from_outcome(outcome)

    @router.post("/confirm", response_model=ConfirmResponse)
    async def submit_confirmation(
        payload: ConfirmRequest,
        protocol: ConfirmationProtocol = Depends(get_protocol),
        x_user_id: str | None = Header(default=None),
    ) -> ConfirmResponse:
        """Confirm or reject the pending action bound to ``token``."""

        outcome = await protocol.confirm(
            payload.session_id,
            payload.token,
            payload.confirm,
            user_id=payload.user_id or x_user_id,
            language=payload.language,
        )
        return ConfirmResponse.from_outcome(outcome)

    @router.get("/{session_id}/pending")
    async def pending_confirmation(
        session_id: str,
        protocol: ConfirmationProtocol = Depends(get_protocol),
    ) -> dict[str, Any]:
        """Show the proposal awaiting confirmation (development helper; never returns the token)."""

        pending = await protocol.describe_pending(session_id)
        if pending is None:
            raise HTTPException(status_code=404, detail="no pending confirmation")
        return pending

    return router
