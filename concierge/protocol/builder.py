"""Turn extractor drafts into typed proposals."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Callable, Mapping

from concierge.actions.base import ServiceCatalog
from concierge.protocol.errors import UnsupportedIntent
from concierge.protocol.types import (
    ACTION_SCHEMAS,
    ActionKind,
    Clock,
    DraftIntent,
    Proposal,
    SessionContext,
    utc_now,
)

EARLIEST_AVAILABLE = "earliest"

_BOOKING_ID = re.compile(r"#?(\d+)")


class ProposalBuilder:
    """Deterministic for a given draft, read-only session context and clock reading."""

    def __init__(self, catalog: ServiceCatalog, clock: Clock = utc_now) -> None:
        self._catalog = catalog
        self._clock = clock
        self._normalizers: dict[str, Callable[[str], str | None]] = {
            "service_reference": self._normalize_service,
            "when": _normalize_when,
            "booking_id": _normalize_booking_id,
        }

    def build(self, draft: DraftIntent, context: SessionContext) -> Proposal:
        try:
            kind = ActionKind(str(draft.action_kind).strip().lower())
        except ValueError:
            raise UnsupportedIntent(f"unsupported action: {draft.action_kind!r}") from None

        schema = ACTION_SCHEMAS[kind]
        parameters = self._normalize(draft.parameters, schema.fields)

        if kind is ActionKind.BOOK:
            self._complete_booking(parameters, context)
        elif kind is ActionKind.CANCEL:
            self._complete_cancellation(parameters, context)

        missing = tuple(name for name in schema.required if name not in parameters)
        return Proposal(
            action_kind=kind,
            parameters=parameters,
            missing_fields=missing,
            created_at=self._clock(),
        )

    def _normalize(self, raw: Mapping[str, Any] | None, allowed: tuple[str, ...]) -> dict[str, str]:
        parameters: dict[str, str] = {}
        if not isinstance(raw, Mapping):
            return parameters

        for name in allowed:
            value = raw.get(name)
            if value is None or isinstance(value, (dict, list, tuple, set)):
                continue
            text = str(value).strip()
            if not text:
                continue
            normalizer = self._normalizers.get(name)
            normalized = normalizer(text) if normalizer else text
            if normalized:
                parameters[name] = normalized
        return parameters

    def _normalize_service(self, value: str) -> str | None:
        service = self._catalog.get(value) or self._catalog.match(value)
        return service.reference if service else None

    def _complete_booking(self, parameters: dict[str, str], context: SessionContext) -> None:
        if "service_reference" not in parameters and context.remembered_service:
            remembered = self._catalog.get(context.remembered_service)
            if remembered:
                parameters["service_reference"] = remembered.reference

        if "when" not in parameters:
            service = self._catalog.get(parameters.get("service_reference"))
            if service and service.supports_earliest_available:
                parameters["when"] = EARLIEST_AVAILABLE

    def _complete_cancellation(self, parameters: dict[str, str], context: SessionContext) -> None:
        if "booking_id" in parameters:
            return
        # Zero or several active bookings stay missing.
        if len(context.active_booking_ids) == 1:
            inferred = _normalize_booking_id(str(context.active_booking_ids[0]))
            if inferred:
                parameters["booking_id"] = inferred


def _normalize_when(value: str) -> str | None:
    if value.lower() == EARLIEST_AVAILABLE:
        return EARLIEST_AVAILABLE
    if "T" not in value and " " not in value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed.strftime("%Y-%m-%dT%H:%M")


def _normalize_booking_id(value: str) -> str | None:
    match = _BOOKING_ID.fullmatch(value.strip())
    if not match or int(match.group(1)) <= 0:
        return None
    return str(int(match.group(1)))

