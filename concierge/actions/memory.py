"""In-process booking backend used for local development and tests."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping, Sequence

from concierge.actions.base import BookingService, BookingServiceError, ServiceCatalog

logger = logging.getLogger("concierge.bookings")

CANCELLABLE_STATUSES = {"pending", "confirmed"}


@dataclass(slots=True)
class BookingRecord:
    booking_id: str
    client_id: str
    service_reference: str
    when: str
    status: str = "pending"
    address: str = ""
    notes: str = ""
    cancellation_reason: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryBookingService(BookingService):
    """Dictionary-backed bookings with the same ownership rules as the REST API."""

    def __init__(self, catalog: ServiceCatalog, start_id: int = 1) -> None:
        self._catalog = catalog
        self._ids = itertools.count(start_id)
        self.bookings: dict[str, BookingRecord] = {}
        self.taken_slots: set[tuple[str, str]] = set()

    async def create_booking(self, user_id: str, parameters: Mapping[str, str]) -> str:
        reference = parameters.get("service_reference", "")
        when = parameters.get("when", "")
        if self._catalog.get(reference) is None:
            raise BookingServiceError("Service not found")
        if (reference, when) in self.taken_slots:
            raise BookingServiceError("That time slot is no longer available")

        booking_id = str(next(self._ids))
        self.bookings[booking_id] = BookingRecord(
            booking_id=booking_id,
            client_id=user_id,
            service_reference=reference,
            when=when,
            address=parameters.get("address", ""),
            notes=parameters.get("notes", ""),
        )
        if when != "earliest":
            self.taken_slots.add((reference, when))
        logger.info("Created booking %s for service %s", booking_id, reference)
        return booking_id

    async def cancel_booking(self, booking_id: str, requesting_user_id: str, reason: str) -> None:
        record = self.bookings.get(booking_id)
        if record is None:
            raise BookingServiceError("Booking not found")
        if record.client_id != requesting_user_id:
            raise BookingServiceError("You do not have permission to cancel this booking")
        if record.status not in CANCELLABLE_STATUSES:
            raise BookingServiceError(f"Booking cannot be cancelled (status: {record.status})")

        record.status = "cancelled"
        record.cancellation_reason = reason
        self.taken_slots.discard((record.service_reference, record.when))
        logger.info("Cancelled booking %s", booking_id)

    async def list_active_bookings(self, user_id: str) -> Sequence[str]:
        return [
            record.booking_id
            for record in self.bookings.values()
            if record.client_id == user_id and record.status in CANCELLABLE_STATUSES
        ]
