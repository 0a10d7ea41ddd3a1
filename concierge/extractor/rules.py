"""Keyword and regex extractor for English and Arabic requests."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import Mapping, Sequence

from concierge.actions.base import ServiceCatalog
from concierge.extractor.base import IntentExtractor
from concierge.protocol.types import ActionKind, Clock, DraftIntent, utc_now

CANCEL_PATTERN = re.compile(r"\bcancel\b|إلغاء|الغاء|ألغ|الغي", re.IGNORECASE)
BOOK_PATTERN = re.compile(
    r"\b(book|schedule|reserve|appointment)\b|احجز|أحجز|حجز|موعد",
    re.IGNORECASE,
)
BOOKING_ID_PATTERN = re.compile(
    r"(?:booking|reservation|order|حجز|رقم)\s*(?:number|no\.?|id)?\s*#?\s*(\d+)|#(\d+)",
    re.IGNORECASE,
)
ISO_DATE_PATTERN = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
CLOCK_PATTERN = re.compile(
    r"\b(?P<h12>\d{1,2})(?::(?P<m12>\d{2}))?\s*(?P<meridiem>am|pm)\b"
    r"|\b(?P<h24>\d{1,2}):(?P<m24>\d{2})\b"
    r"|\bat\s+(?P<hat>\d{1,2})\b(?!\s*(?::|\d|am\b|pm\b))"
    r"|الساعة\s*(?P<har>\d{1,2})(?::(?P<mar>\d{2}))?",
    re.IGNORECASE,
)
# Anything that looks like a time of day, parsed or not.
TIME_HINT_PATTERN = re.compile(
    r"\d\s*(?:am|pm)\b|\d:\d|\bat\s+\d|\b(?:noon|midnight|morning|afternoon|evening|tonight)\b"
    r"|الساعة|صباح|مساء|ظهر",
    re.IGNORECASE,
)
REASON_PATTERN = re.compile(r"\bbecause\s+(.+)$|\bسبب\s+(.+)$", re.IGNORECASE)

WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
    "الاثنين": 0,
    "الثلاثاء": 1,
    "الأربعاء": 2,
    "الاربعاء": 2,
    "الخميس": 3,
    "الجمعة": 4,
    "السبت": 5,
    "الأحد": 6,
    "الاحد": 6,
}

RELATIVE_DAYS = {
    "today": 0,
    "tomorrow": 1,
    "اليوم": 0,
    "غدا": 1,
    "غداً": 1,
    "بكرة": 1,
}


class RuleBasedExtractor(IntentExtractor):
    """Deterministic extractor used when no language model is configured."""

    def __init__(
        self,
        catalog: ServiceCatalog,
        clock: Clock = utc_now,
        default_time: time = time(9, 0),
    ) -> None:
        self._catalog = catalog
        self._clock = clock
        self._default_time = default_time

    def describe(self) -> str:
        return "Rule-based keyword extractor (en/ar)"

    async def classify(
        self,
        text: str,
        recent_history: Sequence[Mapping[str, str]],
    ) -> DraftIntent | None:
        message = text.strip()
        if not message:
            return None

        if CANCEL_PATTERN.search(message):
            return DraftIntent(
                action_kind=ActionKind.CANCEL.value,
                parameters=self._cancel_parameters(message),
                confidence=0.9,
            )
        if BOOK_PATTERN.search(message):
            return DraftIntent(
                action_kind=ActionKind.BOOK.value,
                parameters=self._book_parameters(message),
                confidence=0.9,
            )
        return None

    def _cancel_parameters(self, message: str) -> dict[str, str]:
        parameters: dict[str, str] = {}
        match = BOOKING_ID_PATTERN.search(message)
        if match:
            parameters["booking_id"] = match.group(1) or match.group(2)
        reason = REASON_PATTERN.search(message)
        if reason:
            parameters["reason"] = (reason.group(1) or reason.group(2)).strip(" .!?")
        return parameters

    def _book_parameters(self, message: str) -> dict[str, str]:
        parameters: dict[str, str] = {}
        service = self._catalog.match(message)
        if service:
            parameters["service_reference"] = service.reference

        when = self._extract_when(message)
        if when:
            parameters["when"] = when.strftime("%Y-%m-%dT%H:%M")
        return parameters

    def _extract_when(self, message: str) -> datetime | None:
        day = self._extract_day(message)
        if day is None:
            return None
        at = _extract_time(message)
        if at is None:
            # A time we could not read is left for the user to restate.
            if TIME_HINT_PATTERN.search(message):
                return None
            at = self._default_time
        return datetime.combine(day, at)

    def _extract_day(self, message: str) -> date | None:
        lowered = message.lower()
        today = self._clock().date()

        iso = ISO_DATE_PATTERN.search(lowered)
        if iso:
            try:
                return date.fromisoformat(iso.group(1))
            except ValueError:
                return None

        words = re.findall(r"[\w؀-ۿ]+", lowered)
        for word in words:
            if word in RELATIVE_DAYS:
                return today + timedelta(days=RELATIVE_DAYS[word])
        for word in words:
            if word in WEEKDAYS:
                ahead = (WEEKDAYS[word] - today.weekday()) % 7 or 7
                return today + timedelta(days=ahead)
        return None


def _extract_time(message: str) -> time | None:
    match = CLOCK_PATTERN.search(message)
    if not match:
        return None

    if match.group("h12"):
        hour, minute = int(match.group("h12")), int(match.group("m12") or 0)
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if match.group("meridiem").lower() == "pm" else 0)
    elif match.group("h24"):
        hour, minute = int(match.group("h24")), int(match.group("m24"))
    elif match.group("hat"):
        hour, minute = int(match.group("hat")), 0
    else:
        hour, minute = int(match.group("har")), int(match.group("mar") or 0)

    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)
