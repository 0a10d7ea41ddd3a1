"""Booking backend exports."""

from .base import DEFAULT_SERVICES, BookingService, BookingServiceError, ServiceCatalog, ServiceInfo
from .http import HttpBookingService
from .memory import InMemoryBookingService

__all__ = [
    "BookingService",
    "BookingServiceError",
    "ServiceCatalog",
    "ServiceInfo",
    "DEFAULT_SERVICES",
    "HttpBookingService",
    "InMemoryBookingService",
]
