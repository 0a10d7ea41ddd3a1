"""FastAPI application entry point for the marketplace chat assistant."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from concierge.actions.base import DEFAULT_SERVICES, BookingService, ServiceCatalog
from concierge.actions.http import HttpBookingService
from concierge.actions.memory import InMemoryBookingService
from concierge.api.chat import create_chat_router
from concierge.core.config import Settings, get_settings
from concierge.core.errors import install_error_handlers
from concierge.core.logging import configure_logging, request_id_middleware
from concierge.core.metrics import MetricsCollector
from concierge.extractor.base import IntentExtractor
from concierge.extractor.openrouter import OpenRouterExtractor
from concierge.extractor.rules import RuleBasedExtractor
from concierge.memory.store import SQLiteMemoryStore
from concierge.protocol.service import ConfirmationProtocol
from concierge.protocol.store import PendingConfirmationStore
from concierge.protocol.tokens import build_issuer

logger = logging.getLogger("concierge.app")


def build_protocol(settings: Settings) -> ConfirmationProtocol:
    """Wire the protocol and its collaborators from configuration."""

    catalog = ServiceCatalog(DEFAULT_SERVICES)

    bookings: BookingService
    if settings.booking_api_base_url:
        bookings = HttpBookingService(
            str(settings.booking_api_base_url),
            timeout_seconds=settings.booking_api_timeout_seconds,
        )
    else:
        bookings = InMemoryBookingService(catalog)

    extractor: IntentExtractor = RuleBasedExtractor(catalog)
    if settings.openrouter_enabled:
        extractor = OpenRouterExtractor(
            api_key=settings.openrouter_api_key or "",
            model=settings.openrouter_model,
            fallback=extractor,
            referer=settings.openrouter_referer,
            title=settings.openrouter_title,
            timeout_seconds=settings.openrouter_timeout_seconds,
            min_interval_seconds=settings.openrouter_rate_limit_per_sec,
        )

    store = PendingConfirmationStore(
        build_issuer(settings.token_mode, settings.token_secret),
        ttl=timedelta(seconds=settings.confirmation_ttl_seconds),
    )

    return ConfirmationProtocol(
        extractor=extractor,
        catalog=catalog,
        bookings=bookings,
        store=store,
        memory=SQLiteMemoryStore(settings.sqlite_path),
        metrics=MetricsCollector(),
        min_confidence=settings.extractor_min_confidence,
        history_window=settings.history_window,
    )


def create_app(settings: Settings | None = None, protocol: ConfirmationProtocol | None = None) -> FastAPI:
    """Build the application; tests pass their own protocol to isolate state."""

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        level = configure_logging(settings.log_level)
        logger.info(
            "Logging configured at %s level for %s environment (extractor: %s)",
            logging.getLevelName(level),
            settings.environment,
            app.state.protocol.extractor.describe(),
        )
        yield

    app = FastAPI(title=settings.app_name, version="0.1.0", docs_url="/docs", lifespan=lifespan)
    app.state.protocol = protocol or build_protocol(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_id_middleware)
    install_error_handlers(app)

    app.include_router(create_chat_router())

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Return basic service status for monitoring."""

        return {"status": "ok", "environment": settings.environment}

    @app.get("/metrics", tags=["metrics"])
    async def metrics_endpoint(request: Request) -> dict[str, Any]:
        protocol: ConfirmationProtocol = request.app.state.protocol
        snapshot = protocol.metrics.snapshot()
        return {
            "total_requests": snapshot.total_requests,
            "intents": snapshot.intents,
            "outcomes": snapshot.outcomes,
            "executions": snapshot.executions,
            "failure_reasons": snapshot.failure_reasons,
            "pending_confirmations": len(protocol.store),
            "sessions": len(protocol.sessions),
        }

    return app


app = create_app()
