"""Upsell widget session.

Composes the catalog loader, selection state, cart reconciler, and status
banner for one shopper session and produces the view the presentation
layer renders.
"""

from __future__ import annotations

import structlog

from upsell_checkout.components.cart_reconciler import CartReconciler
from upsell_checkout.components.catalog_loader import CatalogLoader
from upsell_checkout.components.selection import SelectionState
from upsell_checkout.components.status import StatusBanner
from upsell_checkout.errors import FetchError
from upsell_checkout.models import (
    CartSnapshot,
    ProductCard,
    ProductGroup,
    Status,
    WidgetView,
)
from upsell_checkout.protocols.cart_feed import CartFeed

logger = structlog.get_logger(__name__)

FETCH_FAILED_MESSAGE = "Failed to fetch product details"


class UpsellWidget:
    """One session of the checkout upsell block.

    Parameters
    ----------
    loader:
        Fetches the upsell catalog; run once by :meth:`mount`.
    cart_feed:
        The host's live cart.
    reconciler:
        Optional reconciler; one bound to *cart_feed* is created otherwise.
    """

    def __init__(
        self,
        loader: CatalogLoader,
        cart_feed: CartFeed,
        reconciler: CartReconciler | None = None,
    ) -> None:
        self._loader = loader
        self._cart_feed = cart_feed
        self._reconciler = reconciler or CartReconciler(cart_feed)
        self._banner = StatusBanner()
        self._groups: list[ProductGroup] = []
        self._selection = SelectionState()
        self._loading = True
        self._mounted = False
        self._closed = False

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def groups(self) -> list[ProductGroup]:
        return list(self._groups)

    @property
    def selection(self) -> SelectionState:
        return self._selection

    @property
    def status(self) -> Status | None:
        return self._banner.current

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def mount(self) -> None:
        """Fetch the catalog and select each product's first variant.

        Only the first call does anything.  A failed fetch leaves the
        widget without products and shows a critical status.
        """
        if self._mounted:
            logger.debug("widget_already_mounted")
            return
        self._mounted = True
        self._loading = True

        try:
            groups = await self._loader.load()
        except FetchError as exc:
            logger.error("catalog_fetch_failed", error=str(exc))
            self._loading = False
            if not self._closed:
                self._groups = []
                self._selection = SelectionState()
                self._banner.show(Status.critical(FETCH_FAILED_MESSAGE))
            return

        self._loading = False
        if self._closed:
            logger.debug("widget_closed_discarding_catalog")
            return
        self._groups = groups
        self._selection = SelectionState.initialize(groups)

    def close(self) -> None:
        """Tear the session down; results of in-flight calls are dropped."""
        self._closed = True

    # ------------------------------------------------------------------
    # Shopper actions
    # ------------------------------------------------------------------

    def select(self, heading: str, variant_id: str) -> None:
        """Choose *variant_id* for the product titled *heading*."""
        self._selection = self._selection.select(heading, variant_id)
        logger.debug("variant_selected", heading=heading, variant_id=variant_id)

    async def add_to_cart(self, heading: str) -> Status:
        """Add the selected variant of *heading* to the cart.

        Raises ``KeyError`` if no product has that heading.
        """
        group = self._group(heading)
        variant = self._selection.selected_variant(group)
        snapshot = self._snapshot()

        status = await self._reconciler.add_to_cart(variant.id, heading, snapshot)
        if self._closed:
            logger.debug("widget_closed_discarding_status", heading=heading)
            return status
        return self._banner.show(status)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self) -> WidgetView:
        """Build the current view from a fresh cart snapshot."""
        snapshot = self._snapshot()
        cards = []
        for group in self._groups:
            selected = self._selection.selected_variant(group)
            cards.append(
                ProductCard(
                    heading=group.heading,
                    variants=list(group.variants),
                    selected=selected,
                    in_cart=self._reconciler.membership_status(selected.id, snapshot).in_cart,
                    has_variant_choice=len(group.variants) > 1,
                )
            )
        return WidgetView(
            status=self._banner.current,
            loading=self._loading,
            products=cards,
        )

    def _snapshot(self) -> CartSnapshot:
        return CartSnapshot.from_lines(self._cart_feed.lines())

    def _group(self, heading: str) -> ProductGroup:
        for group in self._groups:
            if group.heading == heading:
                return group
        raise KeyError(heading)
