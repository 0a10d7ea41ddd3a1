"""Confirmation token minting and verification."""

from __future__ import annotations

import hmac
import secrets
from abc import ABC, abstractmethod
from datetime import datetime

from itsdangerous import BadSignature, URLSafeSerializer

from concierge.protocol.types import ConfirmationToken, Proposal, TokenClaims, fingerprint_proposal


class TokenIssuer(ABC):
    """Mints tokens bound to one session and one proposal."""

    @abstractmethod
    def mint(
        self,
        session_id: str,
        proposal: Proposal,
        issued_at: datetime,
        expires_at: datetime,
    ) -> ConfirmationToken:
        """Return a fresh, unconsumed token."""

    @abstractmethod
    def claims(self, presented: str, pending: ConfirmationToken | None) -> TokenClaims | None:
        """Return what ``presented`` asserts, or ``None`` when it is not a token we issued."""


class OpaqueTokenIssuer(TokenIssuer):
    """Random bearer strings checked against the server-side pending slot."""

    def __init__(self, nbytes: int = 32) -> None:
        if nbytes < 16:
            raise ValueError("confirmation tokens need at least 128 bits of entropy")
        self._nbytes = nbytes

    def mint(self, session_id, proposal, issued_at, expires_at) -> ConfirmationToken:
        return ConfirmationToken(
            value=secrets.token_urlsafe(self._nbytes),
            session_id=session_id,
            proposal_fingerprint=fingerprint_proposal(proposal),
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def claims(self, presented: str, pending: ConfirmationToken | None) -> TokenClaims | None:
        if pending is None or not hmac.compare_digest(presented.encode(), pending.value.encode()):
            return None
        return TokenClaims(
            session_id=pending.session_id,
            proposal_fingerprint=pending.proposal_fingerprint,
            expires_at=pending.expires_at,
        )


class SignedTokenIssuer(TokenIssuer):
    """HMAC-signed tokens that carry their own session, fingerprint and expiry."""

    salt = "confirmation-token"

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("signed confirmation tokens require a secret")
        self._serializer = URLSafeSerializer(secret, salt=self.salt)

    def mint(self, session_id, proposal, issued_at, expires_at) -> ConfirmationToken:
        fingerprint = fingerprint_proposal(proposal)
        value = self._serializer.dumps(
            {
                "sid": session_id,
                "fp": fingerprint,
                "iat": issued_at.isoformat(),
                "exp": expires_at.isoformat(),
                "n": secrets.token_hex(16),
            }
        )
        return ConfirmationToken(
            value=value,
            session_id=session_id,
            proposal_fingerprint=fingerprint,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def claims(self, presented: str, pending: ConfirmationToken | None) -> TokenClaims | None:
        try:
            payload = self._serializer.loads(presented)
        except BadSignature:
            return None
        try:
            return TokenClaims(
                session_id=str(payload["sid"]),
                proposal_fingerprint=str(payload["fp"]),
                expires_at=datetime.fromisoformat(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError):
            return None


def build_issuer(mode: str, secret: str | None = None) -> TokenIssuer:
    """Return the issuer configured by ``token_mode``."""

    if mode == "opaque":
        return OpaqueTokenIssuer()
    if mode == "signed":
        return SignedTokenIssuer(secret or "")
    raise ValueError(f"unknown token mode: {mode!r}")
