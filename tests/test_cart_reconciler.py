"""Tests for cart membership and guarded add-to-cart."""

import asyncio

import httpx

from conftest import FakeCartFeed
from upsell_checkout.components.cart_reconciler import CartReconciler
from upsell_checkout.errors import StorefrontClientError
from upsell_checkout.models import CartLineChangeResult, CartSnapshot, StatusSeverity


def _snapshot(*ids):
    return CartSnapshot(merchandise_ids=frozenset(ids))


class TestMembership:
    def test_in_cart(self):
        reconciler = CartReconciler(FakeCartFeed())

        assert reconciler.membership_status("v1", _snapshot("v1", "v2")).in_cart is True

    def test_not_in_cart(self):
        reconciler = CartReconciler(FakeCartFeed())

        assert reconciler.membership_status("v3", _snapshot("v1")).in_cart is False
        assert reconciler.membership_status("v3", CartSnapshot()).in_cart is False


class TestAddToCart:
    async def test_already_in_cart_skips_mutation(self):
        feed = FakeCartFeed(lines=["v1"])
        reconciler = CartReconciler(feed)

        status = await reconciler.add_to_cart("v1", "Widget", _snapshot("v1"))

        assert status.severity == StatusSeverity.INFO
        assert status.message == "Widget is already in the cart"
        assert feed.calls == []

    async def test_guard_holds_on_repeated_calls(self):
        feed = FakeCartFeed(lines=["v1"])
        reconciler = CartReconciler(feed)
        snapshot = _snapshot("v1")

        statuses = [await reconciler.add_to_cart("v1", "Widget", snapshot) for _ in range(3)]

        assert feed.calls == []
        assert all(s.severity == StatusSeverity.INFO for s in statuses)

    async def test_success(self):
        feed = FakeCartFeed()
        reconciler = CartReconciler(feed)

        status = await reconciler.add_to_cart("v1", "Widget", CartSnapshot())

        assert status.severity == StatusSeverity.SUCCESS
        assert status.message == "Widget added to cart successfully"
        assert len(feed.calls) == 1
        change = feed.calls[0]
        assert change.type == "addCartLine"
        assert change.merchandise_id == "v1"
        assert change.quantity == 1

    async def test_structured_rejection_surfaces_reason(self):
        feed = FakeCartFeed(result=CartLineChangeResult(type="error", message="Out of stock"))
        reconciler = CartReconciler(feed)

        status = await reconciler.add_to_cart("v1", "Widget", CartSnapshot())

        assert status.severity == StatusSeverity.CRITICAL
        assert status.message == "Failed to add Widget: Out of stock"
        assert len(feed.calls) == 1

    async def test_transport_failure_hides_detail(self):
        feed = FakeCartFeed(error=RuntimeError("socket hang up at 10.0.0.7"))
        reconciler = CartReconciler(feed)

        status = await reconciler.add_to_cart("v1", "Widget", CartSnapshot())

        assert status.severity == StatusSeverity.CRITICAL
        assert "Widget" in status.message
        assert "socket" not in status.message
        assert "10.0.0.7" not in status.message

    async def test_client_error_is_a_transport_failure(self):
        feed = FakeCartFeed(error=StorefrontClientError("Storefront request failed (503)"))
        reconciler = CartReconciler(feed)

        status = await reconciler.add_to_cart("v1", "Widget", CartSnapshot())

        assert status.message == "An unexpected error occurred while adding Widget"

    async def test_httpx_error_is_a_transport_failure(self):
        feed = FakeCartFeed(error=httpx.ConnectError("boom"))
        reconciler = CartReconciler(feed)

        status = await reconciler.add_to_cart("v1", "Widget", CartSnapshot())

        assert status.severity == StatusSeverity.CRITICAL
        assert "boom" not in status.message


class TestPendingGuard:
    async def test_second_add_while_in_flight_is_rejected(self):
        feed = FakeCartFeed()
        feed.gate = asyncio.Event()
        reconciler = CartReconciler(feed)

        first = asyncio.create_task(reconciler.add_to_cart("v1", "Widget", CartSnapshot()))
        await asyncio.sleep(0)
        assert reconciler.is_pending("v1")

        second = await reconciler.add_to_cart("v1", "Widget", CartSnapshot())
        feed.gate.set()
        first_status = await first

        assert second.severity == StatusSeverity.INFO
        assert second.message == "Widget is already being added to the cart"
        assert first_status.severity == StatusSeverity.SUCCESS
        assert len(feed.calls) == 1
        assert not reconciler.is_pending("v1")

    async def test_different_variants_are_independent(self):
        feed = FakeCartFeed()
        feed.gate = asyncio.Event()
        reconciler = CartReconciler(feed)

        tasks = [
            asyncio.create_task(reconciler.add_to_cart("v1", "Widget", CartSnapshot())),
            asyncio.create_task(reconciler.add_to_cart("v2", "Gadget", CartSnapshot())),
        ]
        await asyncio.sleep(0)
        feed.gate.set()
        statuses = await asyncio.gather(*tasks)

        assert [s.severity for s in statuses] == [StatusSeverity.SUCCESS] * 2
        assert [c.merchandise_id for c in feed.calls] == ["v1", "v2"]

    async def test_pending_released_after_failure(self):
        feed = FakeCartFeed(error=RuntimeError("boom"))
        reconciler = CartReconciler(feed)

        await reconciler.add_to_cart("v1", "Widget", CartSnapshot())

        assert not reconciler.is_pending("v1")
        feed.error = None
        status = await reconciler.add_to_cart("v1", "Widget", CartSnapshot())
        assert status.severity == StatusSeverity.SUCCESS
