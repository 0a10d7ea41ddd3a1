from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from concierge.actions.base import DEFAULT_SERVICES, ServiceCatalog
from concierge.actions.memory import InMemoryBookingService
from concierge.extractor.rules import RuleBasedExtractor
from concierge.memory.store import SQLiteMemoryStore
from concierge.protocol.service import ConfirmationProtocol
from concierge.protocol.store import PendingConfirmationStore
from concierge.protocol.tokens import OpaqueTokenIssuer

# Monday.
START = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog() -> ServiceCatalog:
    return ServiceCatalog(DEFAULT_SERVICES)


@pytest.fixture
def bookings(catalog) -> InMemoryBookingService:
    return InMemoryBookingService(catalog)


@pytest.fixture
def pending_store(clock) -> PendingConfirmationStore:
    return PendingConfirmationStore(OpaqueTokenIssuer(), ttl=timedelta(minutes=5), clock=clock)


@pytest.fixture
def protocol(tmp_path, clock, catalog, bookings, pending_store) -> ConfirmationProtocol:
    return ConfirmationProtocol(
        extractor=RuleBasedExtractor(catalog, clock=clock),
        catalog=catalog,
        bookings=bookings,
        store=pending_store,
        memory=SQLiteMemoryStore(tmp_path / "conversations.db"),
    )
