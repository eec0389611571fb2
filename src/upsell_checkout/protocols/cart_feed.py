"""Live cart feed backed by a storefront cart.

The host environment owns the cart; this module exposes its current lines
and forwards cart line changes to the storefront.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog

from upsell_checkout.errors import StorefrontClientError
from upsell_checkout.models import CartLine, CartLineChange, CartLineChangeResult
from upsell_checkout.protocols.storefront_client import StorefrontClient

logger = structlog.get_logger(__name__)

_CART_LINES_SELECTION = """
    pageInfo {
      hasNextPage
      endCursor
    }
    edges {
      node {
        quantity
        merchandise {
          ... on ProductVariant {
            id
          }
        }
      }
    }
"""

_CART_LINES_FRAGMENT = (
    """
fragment CartLinesFields on Cart {
  id
  lines(first: 100) {"""
    + _CART_LINES_SELECTION
    + """  }
}
"""
)

CART_CREATE_MUTATION = (
    """
mutation CartCreate {
  cartCreate {
    cart {
      ...CartLinesFields
    }
    userErrors {
      field
      message
    }
  }
}
"""
    + _CART_LINES_FRAGMENT
)

CART_LINES_ADD_MUTATION = (
    """
mutation CartLinesAdd($cartId: ID!, $lines: [CartLineInput!]!) {
  cartLinesAdd(cartId: $cartId, lines: $lines) {
    cart {
      ...CartLinesFields
    }
    userErrors {
      field
      message
    }
  }
}
"""
    + _CART_LINES_FRAGMENT
)

CART_LINES_QUERY = (
    """
query CartLines($cartId: ID!, $after: String) {
  cart(id: $cartId) {
    id
    lines(first: 100, after: $after) {"""
    + _CART_LINES_SELECTION
    + """    }
  }
}
"""
)


class CartFeed(Protocol):
    """Read access to the live cart plus the cart line change operation."""

    def lines(self) -> list[CartLine]: ...

    async def apply_cart_lines_change(
        self, change: CartLineChange
    ) -> CartLineChangeResult: ...


def _parse_lines(cart: dict[str, Any]) -> list[CartLine]:
    """Project a storefront cart payload onto :class:`CartLine` records."""
    try:
        edges = cart["lines"]["edges"]
        return [
            CartLine(
                merchandise_id=edge["node"]["merchandise"]["id"],
                quantity=edge["node"].get("quantity", 1),
            )
            for edge in edges
        ]
    except (KeyError, TypeError) as exc:
        raise StorefrontClientError("Malformed cart payload") from exc


def _next_cursor(cart: dict[str, Any]) -> str | None:
    """Return the cursor of the next page of lines, or ``None`` on the last page."""
    page_info = (cart.get("lines") or {}).get("pageInfo") or {}
    if not page_info.get("hasNextPage"):
        return None
    cursor = page_info.get("endCursor")
    if not cursor:
        raise StorefrontClientError("Cart lines page has no end cursor")
    return cursor


class StorefrontCartFeed:
    """Cart feed for one storefront cart.

    ``lines()`` returns the lines seen in the most recent storefront
    response; call :meth:`refresh` to pick up changes made elsewhere.
    Paged line connections are followed to the end, so the lines always
    cover the whole cart.
    """

    def __init__(
        self,
        client: StorefrontClient,
        cart_id: str,
        lines: list[CartLine] | None = None,
    ) -> None:
        self._client = client
        self._cart_id = cart_id
        self._lines: list[CartLine] = list(lines or [])

    @property
    def cart_id(self) -> str:
        return self._cart_id

    @classmethod
    async def create(cls, client: StorefrontClient) -> StorefrontCartFeed:
        """Create an empty storefront cart and return a feed bound to it."""
        body = await client.query(CART_CREATE_MUTATION, operation_name="CartCreate")
        payload = (body.get("data") or {}).get("cartCreate") or {}
        user_errors = payload.get("userErrors") or []
        cart = payload.get("cart")
        if user_errors or not cart:
            messages = [err.get("message", "") for err in user_errors]
            raise StorefrontClientError(f"Cart creation failed: {'; '.join(messages)}")

        feed = cls(client, cart["id"])
        feed._lines = await feed._collect_lines(cart)
        logger.info("cart_created", cart_id=feed.cart_id)
        return feed

    def lines(self) -> list[CartLine]:
        return list(self._lines)

    async def refresh(self) -> list[CartLine]:
        """Re-read the cart lines from the storefront."""
        cart = await self._fetch_cart()
        self._lines = await self._collect_lines(cart)
        return self.lines()

    async def apply_cart_lines_change(
        self, change: CartLineChange
    ) -> CartLineChangeResult:
        """Send a ``cartLinesAdd`` mutation for *change*.

        Storefront ``userErrors`` come back as an ``error`` result carrying
        their messages; transport failures raise
        :class:`StorefrontClientError`.
        """
        body = await self._client.query(
            CART_LINES_ADD_MUTATION,
            variables={
                "cartId": self._cart_id,
                "lines": [
                    {
                        "merchandiseId": change.merchandise_id,
                        "quantity": change.quantity,
                    }
                ],
            },
            operation_name="CartLinesAdd",
        )
        payload = (body.get("data") or {}).get("cartLinesAdd")
        if payload is None:
            raise StorefrontClientError("cartLinesAdd returned no payload")

        user_errors = payload.get("userErrors") or []
        if user_errors:
            message = "; ".join(err.get("message", "") for err in user_errors)
            return CartLineChangeResult(type="error", message=message)

        cart = payload.get("cart")
        if cart is not None:
            self._lines = await self._collect_lines(cart)
        return CartLineChangeResult(type="success")

    async def _fetch_cart(self, after: str | None = None) -> dict[str, Any]:
        body = await self._client.query(
            CART_LINES_QUERY,
            variables={"cartId": self._cart_id, "after": after},
            operation_name="CartLines",
        )
        cart = (body.get("data") or {}).get("cart")
        if cart is None:
            raise StorefrontClientError(f"Cart {self._cart_id} not found")
        return cart

    async def _collect_lines(self, cart: dict[str, Any]) -> list[CartLine]:
        lines = _parse_lines(cart)
        cursor = _next_cursor(cart)
        while cursor is not None:
            logger.debug("cart_lines_next_page", cart_id=self._cart_id, after=cursor)
            page = await self._fetch_cart(after=cursor)
            lines.extend(_parse_lines(page))
            cursor = _next_cursor(page)
        return lines
