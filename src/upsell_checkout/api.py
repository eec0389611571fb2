"""FastAPI application for the upsell checkout widget.

Exposes REST endpoints for a presentation layer:
- Widget session management (create, view, teardown)
- Variant selection
- Add-to-cart
"""

from __future__ import annotations

import time
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from common import ErrorResponse, HealthResponse

from upsell_checkout.components.catalog_loader import CatalogLoader
from upsell_checkout.config import Settings
from upsell_checkout.errors import StorefrontClientError
from upsell_checkout.formatting import CurrencyFormatter, SymbolCurrencyFormatter
from upsell_checkout.protocols.cart_feed import StorefrontCartFeed
from upsell_checkout.protocols.storefront_client import StorefrontClient
from upsell_checkout.widget import UpsellWidget

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SelectVariantRequest(BaseModel):
    """Variant pick for one product."""

    heading: str
    variant_id: str


class AddToCartRequest(BaseModel):
    """Add the currently selected variant of a product."""

    heading: str


# ---------------------------------------------------------------------------
# Session manager (in-memory)
# ---------------------------------------------------------------------------


class WidgetSession:
    """A mounted widget and the cart feed it reads."""

    def __init__(
        self,
        session_id: str,
        widget: UpsellWidget,
        cart_feed: StorefrontCartFeed,
        last_seen: float = 0.0,
    ) -> None:
        self.id = session_id
        self.widget = widget
        self.cart_feed = cart_feed
        self.last_seen = last_seen

    def to_response(self) -> dict[str, Any]:
        return {
            "session_id": self.id,
            "cart_id": self.cart_feed.cart_id,
            "view": self.widget.render().model_dump(mode="json"),
        }


class SessionManager:
    """In-memory widget session store.

    Sessions not touched for *ttl_seconds* are closed and dropped the next
    time the store is used.
    """

    def __init__(
        self,
        ttl_seconds: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: dict[str, WidgetSession] = {}
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    def add(self, widget: UpsellWidget, cart_feed: StorefrontCartFeed) -> WidgetSession:
        self.prune_expired()
        session = WidgetSession(str(uuid.uuid4()), widget, cart_feed, last_seen=self._clock())
        self._sessions[session.id] = session
        return session

    def get_session(self, session_id: str) -> WidgetSession | None:
        self.prune_expired()
        session = self._sessions.get(session_id)
        if session is not None:
            session.last_seen = self._clock()
        return session

    def prune_expired(self) -> int:
        """Close and drop idle sessions; returns how many were removed."""
        cutoff = self._clock() - self._ttl_seconds
        expired = [s for s in self._sessions.values() if s.last_seen < cutoff]
        for session in expired:
            del self._sessions[session.id]
            session.widget.close()
            logger.info("widget_session_expired", session_id=session.id)
        return len(expired)

    def remove(self, session_id: str) -> WidgetSession | None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.widget.close()
        return session

    def __len__(self) -> int:
        return len(self._sessions)


# ---------------------------------------------------------------------------
# Application state container
# ---------------------------------------------------------------------------


class AppState:
    """Shared application state accessible from route handlers."""

    def __init__(
        self,
        settings: Settings,
        storefront_transport: httpx.AsyncBaseTransport | None = None,
        formatter: CurrencyFormatter | None = None,
    ) -> None:
        self.settings = settings
        self.storefront = StorefrontClient(
            endpoint=settings.storefront_url,
            access_token=settings.storefront_access_token,
            timeout=settings.storefront_timeout,
            transport=storefront_transport,
        )
        self.formatter = formatter or SymbolCurrencyFormatter()
        self.session_manager = SessionManager(ttl_seconds=settings.session_ttl_seconds)

    def build_loader(self) -> CatalogLoader:
        return CatalogLoader(
            query=self.storefront.query,
            formatter=self.formatter,
            variant_ids=self.settings.upsell_variant_ids,
            placeholder_image_url=self.settings.placeholder_image_url,
        )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    storefront_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    *storefront_transport* overrides the HTTP transport used to reach the
    storefront, e.g. an ``httpx.ASGITransport`` wrapping the mock
    storefront in tests.
    """
    settings = settings or Settings()
    state = AppState(settings, storefront_transport=storefront_transport)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await state.storefront.close()

    app = FastAPI(
        title="Upsell Checkout",
        description=(
            "Checkout upsell block: offers a fixed set of product variants "
            "and adds the shopper's pick to the active cart."
        ),
        version=settings.service_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.app_state = state
    app.state.settings = settings

    def _get_session_or_404(session_id: str) -> WidgetSession:
        session = state.session_manager.get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Widget session {session_id} not found")
        return session

    # -------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(
            status="healthy",
            service=settings.service_name,
            version=settings.service_version,
        )

    # -------------------------------------------------------------------
    # Widget session endpoints
    # -------------------------------------------------------------------

    @app.post("/api/v1/widgets", tags=["widgets"])
    async def create_widget() -> dict[str, Any]:
        """Create a cart and a widget session, then load the catalog.

        A catalog failure does not fail the request; it shows up as the
        view's critical status.
        """
        cart_feed = await StorefrontCartFeed.create(state.storefront)
        widget = UpsellWidget(loader=state.build_loader(), cart_feed=cart_feed)
        await widget.mount()

        session = state.session_manager.add(widget, cart_feed)
        logger.info(
            "widget_session_created",
            session_id=session.id,
            cart_id=cart_feed.cart_id,
            products=len(widget.groups),
        )
        return session.to_response()

    @app.get("/api/v1/widgets/{session_id}", tags=["widgets"])
    async def get_widget(session_id: str) -> dict[str, Any]:
        """Re-read the cart and return the current view."""
        session = _get_session_or_404(session_id)
        await session.cart_feed.refresh()
        return session.to_response()

    @app.post("/api/v1/widgets/{session_id}/selections", tags=["widgets"])
    async def select_variant(session_id: str, req: SelectVariantRequest) -> dict[str, Any]:
        """Choose a variant for one product."""
        session = _get_session_or_404(session_id)
        try:
            session.widget.select(req.heading, req.variant_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Product {req.heading} not found")
        return session.to_response()

    @app.post("/api/v1/widgets/{session_id}/cart-lines", tags=["widgets"])
    async def add_to_cart(session_id: str, req: AddToCartRequest) -> dict[str, Any]:
        """Add the selected variant of a product to the cart."""
        session = _get_session_or_404(session_id)
        await session.cart_feed.refresh()
        try:
            await session.widget.add_to_cart(req.heading)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Product {req.heading} not found")
        return session.to_response()

    @app.delete("/api/v1/widgets/{session_id}", tags=["widgets"])
    async def delete_widget(session_id: str) -> dict[str, Any]:
        """Tear down a widget session."""
        session = state.session_manager.remove(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Widget session {session_id} not found")
        return {"session_id": session_id, "status": "closed"}

    # -------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------

    @app.exception_handler(StorefrontClientError)
    async def storefront_exception_handler(
        request: Request, exc: StorefrontClientError
    ) -> JSONResponse:
        logger.error("storefront_unavailable", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=502,
            content=ErrorResponse(
                error="Storefront unavailable",
                detail=str(exc),
                status_code=502,
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "unhandled_exception", error=str(exc), path=request.url.path
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal server error",
                detail=str(exc),
                status_code=500,
            ).model_dump(),
        )

    return app
