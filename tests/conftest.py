"""Shared test fixtures for the upsell checkout widget."""

import asyncio

import httpx
import pytest

from upsell_checkout.config import Settings
from upsell_checkout.formatting import SymbolCurrencyFormatter
from upsell_checkout.mock_storefront.storefront_app import MockStorefrontApp
from upsell_checkout.models import CartLine, CartLineChangeResult
from upsell_checkout.protocols.storefront_client import StorefrontClient

STOREFRONT_URL = "http://storefront.test/api/graphql"


class FakeQuery:
    """Stands in for ``StorefrontClient.query`` and records every call."""

    def __init__(self, body=None, error=None):
        self.body = body
        self.error = error
        self.calls = []

    async def __call__(self, query, variables=None, operation_name=None):
        self.calls.append(
            {"query": query, "variables": variables, "operation_name": operation_name}
        )
        if self.error is not None:
            raise self.error
        return self.body


class FakeCartFeed:
    """In-memory cart feed; set ``gate`` to hold mutations in flight."""

    def __init__(self, lines=None, result=None, error=None):
        self._lines = [CartLine(merchandise_id=i) for i in (lines or [])]
        self.result = result or CartLineChangeResult(type="success")
        self.error = error
        self.calls = []
        self.gate: asyncio.Event | None = None

    def lines(self):
        return list(self._lines)

    async def apply_cart_lines_change(self, change):
        self.calls.append(change)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.result.type == "success":
            self._lines.append(
                CartLine(merchandise_id=change.merchandise_id, quantity=change.quantity)
            )
        return self.result


def make_node(variant_id, title, product, amount="10.00", currency="USD", image_url="default"):
    image = None
    if image_url == "default":
        image = {"url": f"https://cdn.test/{variant_id}.png", "altText": title}
    elif image_url is not None:
        image = {"url": image_url, "altText": title}
    return {
        "id": variant_id,
        "title": title,
        "priceV2": {"amount": amount, "currencyCode": currency},
        "image": image,
        "product": {"title": product},
    }


def nodes_body(*nodes):
    return {"data": {"nodes": list(nodes)}}


@pytest.fixture
def settings():
    """Create test settings."""
    return Settings(
        environment="testing",
        storefront_url=STOREFRONT_URL,
    )


@pytest.fixture
def formatter():
    return SymbolCurrencyFormatter()


@pytest.fixture
def tote_nodes():
    """Four variants across two products, three plus one."""
    return [
        make_node("v-tote-s", "Small", "Canvas Tote", "18.0"),
        make_node("v-tote-m", "Medium", "Canvas Tote", "22.0"),
        make_node("v-wrap", "Default Title", "Gift Wrapping", "4.5", image_url=None),
        make_node("v-tote-l", "Large", "Canvas Tote", "26.0"),
    ]


@pytest.fixture
def storefront():
    """Fresh mock storefront loaded from the bundled catalog."""
    return MockStorefrontApp.from_catalog()


@pytest.fixture
async def storefront_client(storefront):
    client = StorefrontClient(
        endpoint=STOREFRONT_URL,
        transport=httpx.ASGITransport(app=storefront.app),
    )
    yield client
    await client.close()
