"""
Tests for domain/orders.py - Order placement and broadcasting.
"""
import asyncio
from datetime import datetime, timezone

import pytest


def _order(order_id, user_id=1):
    from domain.entities import OrderView

    return OrderView(
        id=order_id,
        user_id=user_id,
        total_cents=100,
        placed_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        lines=(),
    )


async def _start(subscription):
    """Begin iterating so the subscription is registered."""
    pending = asyncio.ensure_future(subscription.__anext__())
    await asyncio.sleep(0.01)
    return pending


class TestOrderBroadcaster:
    """Tests for OrderBroadcaster."""

    @pytest.mark.asyncio
    async def test_delivers_to_every_subscriber(self):
        from domain.orders import OrderBroadcaster

        broadcaster = OrderBroadcaster()
        first = await _start(broadcaster.subscribe())
        second = await _start(broadcaster.subscribe())
        assert broadcaster.subscriber_count == 2

        broadcaster.publish(_order(1))

        assert (await asyncio.wait_for(first, 1)).id == 1
        assert (await asyncio.wait_for(second, 1)).id == 1

    @pytest.mark.asyncio
    async def test_filters_by_user(self):
        from domain.orders import OrderBroadcaster

        broadcaster = OrderBroadcaster()
        pending = await _start(broadcaster.subscribe(user_id=2))

        broadcaster.publish(_order(1, user_id=1))
        broadcaster.publish(_order(2, user_id=2))

        assert (await asyncio.wait_for(pending, 1)).id == 2

    @pytest.mark.asyncio
    async def test_close_ends_subscriptions(self):
        from domain.orders import OrderBroadcaster

        broadcaster = OrderBroadcaster()
        subscription = broadcaster.subscribe()
        pending = await _start(subscription)

        broadcaster.close()

        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(pending, 1)
        assert broadcaster.subscriber_count == 0
        assert broadcaster.closed

    @pytest.mark.asyncio
    async def test_subscribe_after_close_is_empty(self):
        from domain.orders import OrderBroadcaster

        broadcaster = OrderBroadcaster()
        broadcaster.close()

        assert [order async for order in broadcaster.subscribe()] == []

    @pytest.mark.asyncio
    async def test_slow_subscriber_does_not_block_publish(self):
        from domain.orders import OrderBroadcaster

        broadcaster = OrderBroadcaster(queue_size=2)
        subscription = broadcaster.subscribe()
        pending = await _start(subscription)

        for order_id in range(1, 6):
            broadcaster.publish(_order(order_id))

        received = [(await asyncio.wait_for(pending, 1)).id]
        broadcaster.close()
        async for order in subscription:
            received.append(order.id)

        assert received[0] == 1
        assert len(received) <= 3


class TestOrderService:
    """Tests for OrderService against SQLite."""

    @pytest.mark.asyncio
    async def test_place_publishes_after_commit(self, transactor):
        from domain.cart import CartService
        from domain.catalog import BrickService
        from domain.orders import OrderBroadcaster, OrderService

        broadcaster = OrderBroadcaster()
        bricks = BrickService(transactor)
        orders = OrderService(transactor, broadcaster)
        pending = await _start(orders.stream(user_id=3))

        brick = await bricks.create("2x2", "green", 15)
        await CartService(transactor).add(3, brick.id, 2)
        placed = await orders.place(3)

        streamed = await asyncio.wait_for(pending, 1)
        assert streamed == placed
        assert placed.total_cents == 30
        assert [o.id for o in await orders.list(3)] == [placed.id]
        broadcaster.close()

    @pytest.mark.asyncio
    async def test_failed_order_is_not_published(self, transactor):
        from core.errors import ConflictError
        from domain.orders import OrderBroadcaster, OrderService

        broadcaster = OrderBroadcaster()
        orders = OrderService(transactor, broadcaster)
        pending = await _start(orders.stream(user_id=3))

        with pytest.raises(ConflictError):
            await orders.place(3)

        await asyncio.sleep(0.01)
        assert not pending.done()
        broadcaster.close()
        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(pending, 1)

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, transactor):
        from core.errors import ValidationFailedError
        from domain.catalog import BrickService

        with pytest.raises(ValidationFailedError) as exc_info:
            await BrickService(transactor).create("   ", "red", 10)

        assert exc_info.value.field_name == "name"
