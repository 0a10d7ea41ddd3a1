"""Classify follow-up messages as affirm, reject or unrelated."""

from __future__ import annotations

from concierge.protocol.types import PendingConfirmation, Resolution

AFFIRMATIVE_WORDS = frozenset(
    {
        "yes",
        "yeah",
        "yep",
        "confirm",
        "confirmed",
        "ok",
        "okay",
        "sure",
        # Arabic
        "نعم",
        "أجل",
        "اجل",
        "موافق",
        "تمام",
        "أكيد",
        "اكيد",
        "أؤكد",
    }
)

NEGATIVE_WORDS = frozenset(
    {
        "no",
        "nope",
        "cancel",
        "stop",
        # Arabic
        "لا",
        "كلا",
        "إلغاء",
        "الغاء",
        "توقف",
    }
)

_TRAILING_PUNCTUATION = " \t\r\n.!?,،؟"


class ConfirmationResolver:
    """Whole-message matcher; substrings never count."""

    def __init__(
        self,
        affirmative: frozenset[str] = AFFIRMATIVE_WORDS,
        negative: frozenset[str] = NEGATIVE_WORDS,
    ) -> None:
        self._affirmative = affirmative
        self._negative = negative

    def resolve(self, pending: PendingConfirmation | None, message: str) -> Resolution:
        if pending is None:
            return Resolution.UNRELATED

        normalized = normalize_reply(message)
        if normalized in self._affirmative:
            return Resolution.AFFIRM
        if normalized in self._negative:
            return Resolution.REJECT
        return Resolution.UNRELATED


def normalize_reply(message: str) -> str:
    return " ".join(message.strip(_TRAILING_PUNCTUATION).casefold().split())
