"""Catalog loader for the upsell block.

Fetches the configured variants in one batched storefront query and folds
them into :class:`ProductGroup` records keyed by parent product title.
"""

from __future__ import annotations

from collections.abc import Awaitable, Sequence
from typing import Any, Protocol

import structlog
from pydantic import ValidationError

from upsell_checkout.config import PLACEHOLDER_IMAGE_URL
from upsell_checkout.errors import FetchError
from upsell_checkout.formatting import CurrencyFormatter
from upsell_checkout.models import ProductGroup, VariantNode, VariantRef

logger = structlog.get_logger(__name__)

UPSELL_VARIANTS_QUERY = """
query UpsellVariants($ids: [ID!]!) {
  nodes(ids: $ids) {
    ... on ProductVariant {
      id
      title
      priceV2 {
        amount
        currencyCode
      }
      image {
        url
        altText
      }
      product {
        title
      }
    }
  }
}
"""


class CatalogQuery(Protocol):
    """Signature of :meth:`StorefrontClient.query`."""

    def __call__(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        operation_name: str | None = None,
    ) -> Awaitable[dict[str, Any]]: ...


class CatalogLoader:
    """Loads and groups the upsell variants.

    Parameters
    ----------
    query:
        Coroutine function executing a GraphQL document, normally
        ``StorefrontClient.query``.
    formatter:
        Renders a price amount and currency code for display.
    variant_ids:
        Variants to offer, in request order.  Must not be empty.
    placeholder_image_url:
        Used for variants the storefront returns without an image.
    """

    def __init__(
        self,
        query: CatalogQuery,
        formatter: CurrencyFormatter,
        variant_ids: Sequence[str],
        placeholder_image_url: str = PLACEHOLDER_IMAGE_URL,
    ) -> None:
        if not variant_ids:
            raise ValueError("variant_ids must contain at least one identifier")
        self._query = query
        self._formatter = formatter
        self._variant_ids = list(variant_ids)
        self._placeholder_image_url = placeholder_image_url

    @property
    def variant_ids(self) -> list[str]:
        return list(self._variant_ids)

    async def load(self) -> list[ProductGroup]:
        """Fetch the configured variants and group them by product title.

        Groups are ordered by the position of their first variant in the
        response.

        Raises
        ------
        FetchError
            If the request fails or the response does not have the
            expected shape, or if any identifier is unknown to the
            storefront (a ``null`` node).  Nothing is returned in that case.
        """
        try:
            body = await self._query(
                UPSELL_VARIANTS_QUERY,
                variables={"ids": self._variant_ids},
                operation_name="UpsellVariants",
            )
            raw_nodes = body["data"]["nodes"]
            if not isinstance(raw_nodes, list):
                raise TypeError("nodes is not a list")
            missing = sum(1 for raw in raw_nodes if raw is None)
            if missing:
                logger.warning(
                    "catalog_variants_missing",
                    requested=len(self._variant_ids),
                    missing=missing,
                )
                raise FetchError(f"{missing} catalog variant(s) not found")
            nodes = [VariantNode.model_validate(raw) for raw in raw_nodes]
            groups = self._group(nodes)
        except FetchError:
            raise
        except (KeyError, TypeError, ValidationError) as exc:
            raise FetchError("Malformed catalog response") from exc
        except Exception as exc:
            raise FetchError(f"Catalog request failed: {exc}") from exc

        logger.info(
            "catalog_loaded",
            variants=len(nodes),
            products=len(groups),
        )
        return groups

    def _to_variant(self, node: VariantNode) -> VariantRef:
        image_url = node.image.url if node.image else None
        return VariantRef(
            id=node.id,
            title=node.title,
            price=self._formatter.format_currency(
                node.price_v2.amount, node.price_v2.currency_code
            ),
            image=image_url or self._placeholder_image_url,
        )

    def _group(self, nodes: list[VariantNode]) -> list[ProductGroup]:
        # dict preserves first-seen heading order
        by_heading: dict[str, list[VariantRef]] = {}
        for node in nodes:
            by_heading.setdefault(node.product.title, []).append(self._to_variant(node))

        return [
            ProductGroup(heading=heading, variants=tuple(variants))
            for heading, variants in by_heading.items()
        ]
