"""Intent extractor abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping, Sequence

from concierge.protocol.types import DraftIntent


class IntentExtractor(ABC):
    """Maps an utterance plus recent history to a draft intent."""

    @abstractmethod
    async def classify(
        self,
        text: str,
        recent_history: Sequence[Mapping[str, str]],
    ) -> DraftIntent | None:
        """Return a draft intent, or ``None`` when no action is requested."""

    @abstractmethod
    def describe(self) -> str:
        """Human-readable summary of extraction strategy."""
