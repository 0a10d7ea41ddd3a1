"""Enums and data structures shared by the confirmation protocol."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActionKind(str, Enum):
    """Mutating actions the assistant can propose."""

    BOOK = "book"
    CANCEL = "cancel"


class Resolution(str, Enum):
    """Classification of a follow-up message against a pending proposal."""

    AFFIRM = "affirm"
    REJECT = "reject"
    UNRELATED = "unrelated"


class ActionStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ErrorReason(str, Enum):
    """Failure reasons surfaced to clients."""

    UNSUPPORTED = "unsupported"
    INCOMPLETE = "incomplete"
    EXPIRED = "expired"
    INVALID = "invalid"
    SIGN_IN_REQUIRED = "sign_in_required"
    EXECUTION_FAILED = "execution_failed"


@dataclass(frozen=True, slots=True)
class ActionSchema:
    """Required and optional parameter names for one action kind."""

    required: tuple[str, ...]
    optional: tuple[str, ...] = ()

    @property
    def fields(self) -> tuple[str, ...]:
        return self.required + self.optional


ACTION_SCHEMAS: Mapping[ActionKind, ActionSchema] = {
    ActionKind.BOOK: ActionSchema(
        required=("service_reference", "when"),
        optional=("address", "phone", "notes"),
    ),
    ActionKind.CANCEL: ActionSchema(
        required=("booking_id",),
        optional=("reason",),
    ),
}


@dataclass(slots=True)
class Session:
    """One conversation instance, kept in process memory only."""

    session_id: str
    user_id: str | None = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class DraftIntent:
    """Unvalidated extractor output."""

    action_kind: str
    parameters: dict[str, Any] = field(default_factory=dict)
    confidence: float = 1.0


@dataclass(slots=True)
class SessionContext:
    """Read-only view of a session handed to the proposal builder."""

    session: Session
    remembered_service: str | None = None
    active_booking_ids: Sequence[str] = ()


@dataclass(frozen=True, slots=True)
class Proposal:
    """Candidate mutating action awaiting confirmation."""

    action_kind: ActionKind
    parameters: Mapping[str, str]
    missing_fields: tuple[str, ...]
    created_at: datetime = field(default_factory=utc_now)

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields


@dataclass(slots=True)
class ConfirmationToken:
    """Single-use credential binding one proposal to one session."""

    value: str
    session_id: str
    proposal_fingerprint: str
    issued_at: datetime
    expires_at: datetime
    consumed: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """What a presented token asserts about itself."""

    session_id: str
    proposal_fingerprint: str
    expires_at: datetime


@dataclass(slots=True)
class PendingConfirmation:
    proposal: Proposal
    token: ConfirmationToken


@dataclass(slots=True)
class ActionResult:
    """Outcome of resolving a pending confirmation."""

    status: ActionStatus
    action_kind: ActionKind | None = None
    result_payload: dict[str, Any] = field(default_factory=dict)
    error_reason: ErrorReason | None = None
    detail: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is ActionStatus.SUCCEEDED


def fingerprint_proposal(proposal: Proposal) -> str:
    """Return a stable digest of the proposal's action kind and parameters."""

    canonical = json.dumps(
        {
            "action_kind": proposal.action_kind.value,
            "parameters": {key: proposal.parameters[key] for key in sorted(proposal.parameters)},
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
