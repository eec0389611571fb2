"""Reusable mock storefront mini-application.

Creates a self-contained FastAPI sub-app that answers the storefront
GraphQL operations used by the upsell widget (variant lookup, cart
creation, cart line additions, cart reads) from in-memory state.  Designed
to be mounted inside the main application for demo and testing purposes.
"""

from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from pydantic import BaseModel, Field

_CATALOG_DIR = Path(__file__).parent / "catalogs"


class GraphQLRequest(BaseModel):
    query: str
    variables: dict[str, Any] = Field(default_factory=dict)
    operationName: str | None = None  # noqa: N815


class MockStorefrontApp:
    """A self-contained mock storefront.

    Parameters
    ----------
    name:
        Human-readable shop name.
    variants:
        Variant records loaded from JSON.  Each carries ``id``, ``title``,
        ``price``, ``image``, ``product`` and ``quantity_available``.
    lines_page_size:
        Maximum cart lines returned per page of a cart's line connection.
    """

    def __init__(
        self,
        name: str,
        variants: list[dict[str, Any]],
        lines_page_size: int = 100,
    ) -> None:
        self.name = name
        self.lines_page_size = lines_page_size
        self.variants: dict[str, dict[str, Any]] = {v["id"]: v for v in variants}

        # In-memory state: cart id -> ordered lines
        self._carts: dict[str, list[dict[str, Any]]] = {}

        self.app = self._build_app()

    @classmethod
    def from_catalog(
        cls,
        catalog_file: str = "storefront.json",
        name: str = "Demo Storefront",
        lines_page_size: int = 100,
    ) -> MockStorefrontApp:
        """Create a mock storefront from a JSON file in ``catalogs/``."""
        catalog_path = _CATALOG_DIR / catalog_file
        if not catalog_path.exists():
            raise FileNotFoundError(f"Catalog file not found: {catalog_path}")

        with open(catalog_path, encoding="utf-8") as f:
            variants = json.load(f)
        return cls(name=name, variants=variants, lines_page_size=lines_page_size)

    # ------------------------------------------------------------------
    # Host-side helpers
    # ------------------------------------------------------------------

    def cart_lines(self, cart_id: str) -> list[dict[str, Any]]:
        return [dict(line) for line in self._carts.get(cart_id, [])]

    def seed_cart_line(self, cart_id: str, merchandise_id: str, quantity: int = 1) -> None:
        """Add a line outside the GraphQL API, as another checkout block would."""
        self._merge_line(self._carts.setdefault(cart_id, []), merchandise_id, quantity)

    # ------------------------------------------------------------------
    # Payload builders
    # ------------------------------------------------------------------

    def _variant_node(self, variant_id: str) -> dict[str, Any] | None:
        variant = self.variants.get(variant_id)
        if variant is None:
            return None
        return {
            "id": variant["id"],
            "title": variant["title"],
            "priceV2": variant["price"],
            "image": variant.get("image"),
            "product": variant["product"],
        }

    def _cart_payload(self, cart_id: str, after: str | None = None) -> dict[str, Any]:
        # Cursors are the offset of the next line
        lines = self._carts[cart_id]
        start = int(after) if after else 0
        page = lines[start : start + self.lines_page_size]
        end = start + len(page)
        return {
            "id": cart_id,
            "lines": {
                "pageInfo": {
                    "hasNextPage": end < len(lines),
                    "endCursor": str(end) if page else None,
                },
                "edges": [
                    {
                        "node": {
                            "quantity": line["quantity"],
                            "merchandise": {"id": line["merchandise_id"]},
                        }
                    }
                    for line in page
                ],
            },
        }

    @staticmethod
    def _merge_line(lines: list[dict[str, Any]], merchandise_id: str, quantity: int) -> None:
        for line in lines:
            if line["merchandise_id"] == merchandise_id:
                line["quantity"] += quantity
                return
        lines.append({"merchandise_id": merchandise_id, "quantity": quantity})

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _upsell_variants(self, variables: dict[str, Any]) -> dict[str, Any]:
        ids = variables.get("ids", [])
        return {"data": {"nodes": [self._variant_node(i) for i in ids]}}

    def _cart_create(self, variables: dict[str, Any]) -> dict[str, Any]:
        cart_id = f"gid://shopify/Cart/{uuid.uuid4().hex}"
        self._carts[cart_id] = []
        return {
            "data": {
                "cartCreate": {"cart": self._cart_payload(cart_id), "userErrors": []}
            }
        }

    def _cart_lines_add(self, variables: dict[str, Any]) -> dict[str, Any]:
        cart_id = variables.get("cartId", "")
        if cart_id not in self._carts:
            return {
                "data": {
                    "cartLinesAdd": {
                        "cart": None,
                        "userErrors": [
                            {"field": ["cartId"], "message": "The specified cart does not exist."}
                        ],
                    }
                }
            }

        lines = self._carts[cart_id]
        user_errors: list[dict[str, Any]] = []
        requested = variables.get("lines", [])
        for index, line in enumerate(requested):
            merchandise_id = line.get("merchandiseId", "")
            quantity = int(line.get("quantity", 1))
            variant = self.variants.get(merchandise_id)
            field = ["lines", str(index), "merchandiseId"]
            if variant is None:
                user_errors.append(
                    {
                        "field": field,
                        "message": f"The merchandise with id {merchandise_id} does not exist.",
                    }
                )
                continue
            in_cart = sum(
                existing["quantity"]
                for existing in lines
                if existing["merchandise_id"] == merchandise_id
            )
            if in_cart + quantity > variant.get("quantity_available", 0):
                user_errors.append({"field": field, "message": "Out of stock"})

        if not user_errors:
            for line in requested:
                self._merge_line(lines, line["merchandiseId"], int(line.get("quantity", 1)))

        return {
            "data": {
                "cartLinesAdd": {
                    "cart": self._cart_payload(cart_id),
                    "userErrors": user_errors,
                }
            }
        }

    def _cart_lines(self, variables: dict[str, Any]) -> dict[str, Any]:
        cart_id = variables.get("cartId", "")
        if cart_id not in self._carts:
            return {"data": {"cart": None}}
        return {"data": {"cart": self._cart_payload(cart_id, after=variables.get("after"))}}

    # ------------------------------------------------------------------
    # App builder
    # ------------------------------------------------------------------

    def _build_app(self) -> FastAPI:
        """Construct the FastAPI sub-app with the GraphQL endpoint."""
        app = FastAPI(title=f"Mock Storefront: {self.name}")

        storefront = self  # capture for closures
        operations = {
            "UpsellVariants": storefront._upsell_variants,
            "CartCreate": storefront._cart_create,
            "CartLinesAdd": storefront._cart_lines_add,
            "CartLines": storefront._cart_lines,
        }

        @app.post("/api/graphql")
        async def graphql(req: GraphQLRequest) -> dict[str, Any]:
            """Dispatch a GraphQL request by operation name."""
            handler = operations.get(req.operationName or "")
            if handler is None:
                return {
                    "errors": [
                        {"message": f"Unsupported operation: {req.operationName or 'anonymous'}"}
                    ]
                }
            return handler(req.variables)

        return app
