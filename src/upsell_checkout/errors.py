"""Exception hierarchy for the upsell checkout core."""

from __future__ import annotations


class UpsellError(Exception):
    """Base class for every error raised by the upsell core."""


class FetchError(UpsellError):
    """Raised when the upsell catalog cannot be fetched or parsed."""


class MutationError(UpsellError):
    """Base class for failed cart mutations."""


class MutationRejected(MutationError):
    """The storefront processed the cart change but refused it.

    ``reason`` is the merchant-facing message and is safe to show to the
    shopper.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class StorefrontClientError(UpsellError):
    """Raised when a storefront request fails at the transport or GraphQL level."""
