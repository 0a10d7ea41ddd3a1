import asyncio
import json

import httpx
import pytest

from concierge.extractor.openrouter import MalformedCompletion, OpenRouterExtractor, parse_completion
from concierge.extractor.rules import RuleBasedExtractor


def test_parse_completion_keeps_known_parameters():
    draft = parse_completion(
        '{"action": "book", "parameters": {"service_reference": "plumbing", "when": "2026-10-20T10:00",'
        ' "price": "5"}, "confidence": 0.8}'
    )

    assert draft.action_kind == "book"
    assert draft.parameters == {"service_reference": "plumbing", "when": "2026-10-20T10:00"}
    assert draft.confidence == pytest.approx(0.8)


def test_parse_completion_strips_code_fence_and_clamps_confidence():
    draft = parse_completion('```json\n{"action": "cancel", "parameters": {"booking_id": "3"}, "confidence": 4}\n```')

    assert draft.action_kind == "cancel"
    assert draft.confidence == 1.0


def test_parse_completion_without_action_returns_none():
    assert parse_completion('{"action": null}') is None


def test_parse_completion_passes_unknown_actions_through():
    draft = parse_completion('{"action": "refund", "parameters": {}, "confidence": 0.9}')

    assert draft.action_kind == "refund"


@pytest.mark.parametrize(
    "content",
    ["not json", "[1, 2]", '{"action": 5}', '{"action": "book", "parameters": "x"}'],
)
def test_parse_completion_rejects_malformed_replies(content):
    with pytest.raises(MalformedCompletion):
        parse_completion(content)


def _extractor(catalog, clock, handler):
    return OpenRouterExtractor(
        api_key="test-key",
        model="test-model",
        fallback=RuleBasedExtractor(catalog, clock=clock),
        min_interval_seconds=0,
        transport=httpx.MockTransport(handler),
    )


def test_classify_uses_model_reply(catalog, clock):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        reply = {"action": "cancel", "parameters": {"booking_id": "9"}, "confidence": 0.95}
        return httpx.Response(200, json={"choices": [{"message": {"content": json.dumps(reply)}}]})

    extractor = _extractor(catalog, clock, handler)
    history = [{"role": "assistant", "content": "Hi there"}]
    draft = asyncio.run(extractor.classify("please drop #9", history))

    assert draft.action_kind == "cancel"
    assert draft.parameters == {"booking_id": "9"}
    assert seen["auth"] == "Bearer test-key"
    assert [message["role"] for message in seen["body"]["messages"]] == ["system", "assistant", "user"]


def test_classify_falls_back_to_rules_on_http_error(catalog, clock):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "overloaded"})

    draft = asyncio.run(_extractor(catalog, clock, handler).classify("Book a cleaning for Friday", []))

    assert draft.action_kind == "book"
    assert draft.parameters["service_reference"] == "home-cleaning"


def test_classify_falls_back_to_rules_on_malformed_reply(catalog, clock):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": {"content": "Sure! I will book it."}}]})

    draft = asyncio.run(_extractor(catalog, clock, handler).classify("cancel booking 4", []))

    assert draft.action_kind == "cancel"
    assert draft.parameters["booking_id"] == "4"


@pytest.mark.parametrize(
    "body",
    [
        {"choices": []},
        {"choices": [{"message": "oops"}]},
        {"choices": [{"message": {"content": [{"type": "text", "text": "{}"}]}}]},
        {"choices": [{"message": {"content": None}}]},
        ["not", "an", "object"],
    ],
)
def test_classify_falls_back_to_rules_on_unexpected_reply_shape(catalog, clock, body):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    draft = asyncio.run(_extractor(catalog, clock, handler).classify("Book a cleaning for Friday", []))

    assert draft.action_kind == "book"
    assert draft.parameters["service_reference"] == "home-cleaning"
