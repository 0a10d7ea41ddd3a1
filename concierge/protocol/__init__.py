"""Conversational action confirmation protocol."""

from .builder import ProposalBuilder
from .errors import (
    AuthenticationRequired,
    ExecutionFailed,
    IncompleteProposal,
    ProtocolError,
    TokenExpired,
    TokenInvalid,
    UnsupportedIntent,
)
from .executor import ActionExecutor
from .resolver import ConfirmationResolver
from .store import PendingConfirmationStore
from .tokens import OpaqueTokenIssuer, SignedTokenIssuer, TokenIssuer, build_issuer
from .types import (
    ActionKind,
    ActionResult,
    ActionStatus,
    ConfirmationToken,
    DraftIntent,
    ErrorReason,
    PendingConfirmation,
    Proposal,
    Resolution,
    Session,
    SessionContext,
)

__all__ = [
    "ActionExecutor",
    "ActionKind",
    "ActionResult",
    "ActionStatus",
    "AuthenticationRequired",
    "ConfirmationResolver",
    "ConfirmationToken",
    "DraftIntent",
    "ErrorReason",
    "ExecutionFailed",
    "IncompleteProposal",
    "OpaqueTokenIssuer",
    "PendingConfirmation",
    "PendingConfirmationStore",
    "Proposal",
    "ProposalBuilder",
    "ProtocolError",
    "Resolution",
    "Session",
    "SessionContext",
    "SignedTokenIssuer",
    "TokenExpired",
    "TokenInvalid",
    "TokenIssuer",
    "UnsupportedIntent",
    "build_issuer",
]
