"""Error taxonomy for the confirmation protocol."""

from __future__ import annotations

from concierge.protocol.types import ErrorReason


class ProtocolError(Exception):
    """Base class; every subclass maps to a client-facing reason."""

    reason: ErrorReason

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.reason.value)


class UnsupportedIntent(ProtocolError):
    reason = ErrorReason.UNSUPPORTED


class IncompleteProposal(ProtocolError):
    reason = ErrorReason.INCOMPLETE

    def __init__(self, missing_fields: tuple[str, ...]) -> None:
        self.missing_fields = missing_fields
        super().__init__(f"missing fields: {', '.join(missing_fields)}")


class TokenExpired(ProtocolError):
    reason = ErrorReason.EXPIRED


class TokenInvalid(ProtocolError):
    reason = ErrorReason.INVALID


class AuthenticationRequired(ProtocolError):
    reason = ErrorReason.SIGN_IN_REQUIRED


class ExecutionFailed(ProtocolError):
    reason = ErrorReason.EXECUTION_FAILED
