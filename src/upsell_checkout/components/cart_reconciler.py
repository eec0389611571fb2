"""Cart membership checks and guarded add-to-cart.

Membership is always evaluated against the snapshot handed in by the
caller; nothing here caches cart state.
"""

from __future__ import annotations

import structlog

from upsell_checkout.errors import MutationRejected
from upsell_checkout.models import (
    CartLineChange,
    CartSnapshot,
    MembershipStatus,
    Status,
)
from upsell_checkout.protocols.cart_feed import CartFeed

logger = structlog.get_logger(__name__)


class CartReconciler:
    """Cross-references selections with the live cart and adds new lines."""

    def __init__(self, cart_feed: CartFeed) -> None:
        self._cart_feed = cart_feed
        # Variant ids with an add in flight
        self._pending: set[str] = set()

    def membership_status(
        self, variant_id: str, snapshot: CartSnapshot
    ) -> MembershipStatus:
        return MembershipStatus(in_cart=variant_id in snapshot)

    def is_pending(self, variant_id: str) -> bool:
        return variant_id in self._pending

    async def add_to_cart(
        self,
        variant_id: str,
        heading: str,
        snapshot: CartSnapshot,
    ) -> Status:
        """Add one unit of *variant_id* unless it is already in the cart.

        Never raises for storefront failures: every outcome is returned as
        a :class:`Status` for the banner.

        Parameters
        ----------
        variant_id:
            Merchandise id of the selected variant.
        heading:
            Product title used in shopper-facing messages.
        snapshot:
            Cart contents at the time the shopper pressed the button.
        """
        if self.membership_status(variant_id, snapshot).in_cart:
            logger.info("cart_line_already_present", heading=heading, variant_id=variant_id)
            return Status.info(f"{heading} is already in the cart")

        if variant_id in self._pending:
            logger.info("cart_line_add_in_flight", heading=heading, variant_id=variant_id)
            return Status.info(f"{heading} is already being added to the cart")

        self._pending.add(variant_id)
        try:
            await self._submit(CartLineChange(merchandise_id=variant_id, quantity=1))
        except MutationRejected as exc:
            logger.error(
                "cart_line_add_rejected",
                heading=heading,
                variant_id=variant_id,
                reason=exc.reason,
            )
            return Status.critical(f"Failed to add {heading}: {exc.reason}")
        except Exception as exc:
            logger.error(
                "cart_line_add_unexpected_error",
                heading=heading,
                variant_id=variant_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return Status.critical(f"An unexpected error occurred while adding {heading}")
        finally:
            self._pending.discard(variant_id)

        logger.info("cart_line_added", heading=heading, variant_id=variant_id)
        return Status.success(f"{heading} added to cart successfully")

    async def _submit(self, change: CartLineChange) -> None:
        """Apply *change*, raising :class:`MutationRejected` on a refusal."""
        result = await self._cart_feed.apply_cart_lines_change(change)
        if result.type == "error":
            raise MutationRejected(result.message)
