"""Language-model extractor backed by the OpenRouter chat completions API."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Mapping, Sequence

import httpx

from concierge.extractor.base import IntentExtractor
from concierge.protocol.types import ACTION_SCHEMAS, DraftIntent

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

SYSTEM_PROMPT = (
    "You extract booking actions for a bilingual (English/Arabic) home-services marketplace. "
    "Reply with a single JSON object and nothing else: "
    '{"action": "book" | "cancel" | null, "parameters": {...}, "confidence": 0.0-1.0}. '
    "For book use parameters service_reference, when (YYYY-MM-DDTHH:MM), address, phone, notes. "
    "For cancel use booking_id and reason. Omit anything the user did not say; never guess."
)


class OpenRouterExtractor(IntentExtractor):
    """Ask a hosted model for a structured draft; fall back to rules on any failure."""

    def __init__(
        self,
        api_key: str,
        model: str,
        fallback: IntentExtractor | None = None,
        referer: str | None = None,
        title: str | None = None,
        timeout_seconds: float = 15.0,
        min_interval_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._fallback = fallback
        self._referer = referer
        self._title = title or "Marketplace Assistant"
        self._timeout = timeout_seconds
        self._min_interval = max(0.0, min_interval_seconds)
        self._transport = transport
        self._rate_lock = asyncio.Lock()
        self._last_call = 0.0
        self._logger = logging.getLogger("concierge.extractor.openrouter")

    def describe(self) -> str:
        return f"OpenRouter extractor ({self._model})"

    async def classify(
        self,
        text: str,
        recent_history: Sequence[Mapping[str, str]],
    ) -> DraftIntent | None:
        try:
            content = await self._complete(text, recent_history)
        except (httpx.HTTPError, ValueError) as exc:
            self._logger.warning("OpenRouter extraction failed: %s", exc)
            return await self._fall_back(text, recent_history)

        try:
            return parse_completion(content)
        except MalformedCompletion as exc:
            self._logger.info("Discarding malformed extractor output: %s", exc)
            return await self._fall_back(text, recent_history)

    async def _fall_back(
        self,
        text: str,
        recent_history: Sequence[Mapping[str, str]],
    ) -> DraftIntent | None:
        if self._fallback is None:
            return None
        return await self._fallback.classify(text, recent_history)

    async def _complete(self, text: str, recent_history: Sequence[Mapping[str, str]]) -> str:
        async with self._rate_lock:
            wait_for = self._min_interval - (time.monotonic() - self._last_call)
            if wait_for > 0:
                await asyncio.sleep(wait_for)
            self._last_call = time.monotonic()

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if self._referer:
            headers["HTTP-Referer"] = self._referer
        if self._title:
            headers["X-Title"] = self._title

        messages: list[dict[str, str]] = [{"role": "system", "content": SYSTEM_PROMPT}]
        messages.extend(
            {"role": turn.get("role", "user"), "content": turn.get("content", "")}
            for turn in recent_history
            if turn.get("role") in {"user", "assistant"}
        )
        messages.append({"role": "user", "content": text})

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(
                OPENROUTER_URL,
                headers=headers,
                json={"model": self._model, "messages": messages, "temperature": 0},
            )
            response.raise_for_status()
            data = response.json()
        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise MalformedCompletion("reply has no choices")
        message = choices[0].get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise MalformedCompletion("reply content is not text")
        return content


class MalformedCompletion(ValueError):
    """The model reply cannot be read as a draft intent."""


def parse_completion(content: str) -> DraftIntent | None:
    """Parse model output into a draft, or ``None`` when the model saw no action."""

    cleaned = content.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        cleaned = cleaned.removeprefix("json").strip()
    try:
        payload = json.loads(cleaned)
    except (TypeError, ValueError) as exc:
        raise MalformedCompletion("reply is not JSON") from exc
    if not isinstance(payload, dict):
        raise MalformedCompletion("reply is not a JSON object")

    action = payload.get("action")
    if action in (None, "", "none", "null"):
        return None
    if not isinstance(action, str):
        raise MalformedCompletion("action is not a string")

    parameters = payload.get("parameters") or {}
    if not isinstance(parameters, dict):
        raise MalformedCompletion("parameters is not an object")

    try:
        confidence = float(payload.get("confidence", 0.0))
    except (TypeError, ValueError):
        confidence = 0.0

    # Unknown action kinds pass through so the builder can report them as unsupported.
    allowed = {name for schema in ACTION_SCHEMAS.values() for name in schema.fields}
    return DraftIntent(
        action_kind=action,
        parameters={key: value for key, value in parameters.items() if key in allowed},
        confidence=max(0.0, min(confidence, 1.0)),
    )
