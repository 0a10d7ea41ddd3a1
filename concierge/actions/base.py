"""Interfaces to the marketplace booking backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence


class BookingServiceError(Exception):
    """Raised when the booking backend refuses or fails an operation."""


@dataclass(frozen=True, slots=True)
class ServiceInfo:
    """Catalogue entry the assistant can book."""

    reference: str
    title: str
    title_ar: str | None = None
    keywords: tuple[str, ...] = ()
    supports_earliest_available: bool = False

    def display_title(self, language: str) -> str:
        if language == "ar" and self.title_ar:
            return self.title_ar
        return self.title


class ServiceCatalog:
    """Read-only lookup of bookable services."""

    def __init__(self, services: Iterable[ServiceInfo]) -> None:
        self._services: dict[str, ServiceInfo] = {service.reference: service for service in services}

    def get(self, reference: str | None) -> ServiceInfo | None:
        if not reference:
            return None
        return self._services.get(reference)

    def match(self, text: str) -> ServiceInfo | None:
        """Return the first service whose keyword appears in ``text``."""

        lowered = f" {text.lower()} "
        for service in self._services.values():
            for keyword in service.keywords:
                if keyword in lowered:
                    return service
        return None

    def __iter__(self):
        return iter(self._services.values())

    def __len__(self) -> int:
        return len(self._services)


class BookingService(ABC):
    """Mutating operations the protocol executes after confirmation."""

    @abstractmethod
    async def create_booking(self, user_id: str, parameters: Mapping[str, str]) -> str:
        """Create a booking and return its identifier."""

    @abstractmethod
    async def cancel_booking(self, booking_id: str, requesting_user_id: str, reason: str) -> None:
        """Cancel a booking owned by ``requesting_user_id``."""

    @abstractmethod
    async def list_active_bookings(self, user_id: str) -> Sequence[str]:
        """Return identifiers of bookings that can still be cancelled."""


DEFAULT_SERVICES: tuple[ServiceInfo, ...] = (
    ServiceInfo(
        reference="home-cleaning",
        title="Home Cleaning",
        title_ar="تنظيف المنزل",
        keywords=("cleaning", "cleaner", "clean", "تنظيف"),
        supports_earliest_available=False,
    ),
    ServiceInfo(
        reference="plumbing",
        title="Plumbing Repair",
        title_ar="إصلاح السباكة",
        keywords=("plumbing", "plumber", "leak", "سباكة", "سباك"),
        supports_earliest_available=True,
    ),
    ServiceInfo(
        reference="electrical",
        title="Electrical Maintenance",
        title_ar="صيانة كهربائية",
        keywords=("electrician", "electrical", "wiring", "كهرباء", "كهربائي"),
    ),
    ServiceInfo(
        reference="ac-maintenance",
        title="AC Maintenance",
        title_ar="صيانة التكييف",
        keywords=("air conditioning", "hvac", " ac ", "تكييف"),
        supports_earliest_available=True,
    ),
)
