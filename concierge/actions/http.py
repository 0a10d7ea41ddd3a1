"""Booking backend that calls the marketplace REST API."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import httpx

from concierge.actions.base import BookingService, BookingServiceError

ACTIVE_STATUSES = {"pending", "confirmed"}


class HttpBookingService(BookingService):
    """Forward confirmed actions to ``/api/bookings`` on the marketplace server.

    The marketplace authenticates the acting user through the ``X-User-ID``
    header set by the trusted gateway; this client never sees end-user
    credentials.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport
        self._logger = logging.getLogger("concierge.bookings.http")

    def _client(self, user_id: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={"X-User-ID": user_id, "Content-Type": "application/json"},
            transport=self._transport,
        )

    async def create_booking(self, user_id: str, parameters: Mapping[str, str]) -> str:
        when = parameters.get("when", "")
        scheduled_date, _, scheduled_time = when.partition("T")
        payload: dict[str, Any] = {
            "serviceId": parameters.get("service_reference"),
            "scheduledDate": scheduled_date,
            "scheduledTime": scheduled_time or None,
            "earliestAvailable": when == "earliest",
            "clientAddress": parameters.get("address", ""),
            "clientPhone": parameters.get("phone", ""),
            "specialInstructions": parameters.get("notes", ""),
        }
        data = await self._request(user_id, "POST", "/api/bookings", json=payload)
        booking_id = data.get("id") or data.get("bookingId")
        if booking_id is None:
            raise BookingServiceError("Booking API response did not include an id")
        return str(booking_id)

    async def cancel_booking(self, booking_id: str, requesting_user_id: str, reason: str) -> None:
        await self._request(
            requesting_user_id,
            "PATCH",
            f"/api/bookings/{booking_id}",
            json={"status": "cancelled", "cancellationReason": reason},
        )

    async def list_active_bookings(self, user_id: str) -> Sequence[str]:
        data = await self._request(user_id, "GET", "/api/ai/bookings")
        result = data.get("result")
        bookings = result.get("bookings") if isinstance(result, dict) else None
        if not isinstance(bookings, list) or not all(
            isinstance(item, dict) and item.get("id") is not None for item in bookings
        ):
            self._logger.warning("Booking API returned malformed bookings for user %s", user_id)
            raise BookingServiceError("Booking API returned malformed bookings")
        return [str(item["id"]) for item in bookings if item.get("status") in ACTIVE_STATUSES]

    async def _request(self, user_id: str, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            async with self._client(user_id) as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            self._logger.warning("Booking API %s %s unreachable: %s", method, path, exc)
            raise BookingServiceError("Booking service unavailable") from exc

        if response.is_error:
            message = _error_message(response)
            self._logger.info("Booking API %s %s returned %s: %s", method, path, response.status_code, message)
            raise BookingServiceError(message)

        try:
            data = response.json()
        except ValueError as exc:
            raise BookingServiceError("Booking API returned malformed JSON") from exc
        return data if isinstance(data, dict) else {}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"Booking API error ({response.status_code})"
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or f"Booking API error ({response.status_code})")
    return f"Booking API error ({response.status_code})"
