"""
Brickstore - Orders

Placing an order turns the user's cart into an order in a single transaction:
the order and its lines are written, the cart is emptied, and only after the
commit is the order announced to live subscribers.
"""
from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional, Set

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from core.errors import ConflictError
from db.models import CartLine, Order, OrderLine
from db.transactor import Transactor
from domain.cart import read_cart
from domain.entities import OrderLineView, OrderView
from observability import get_logger

logger = get_logger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100


class OrderBroadcaster:
    """
    Fans placed orders out to streaming subscribers.

    Each subscriber owns a bounded queue. A subscriber that falls more than
    ``queue_size`` orders behind misses orders rather than slowing down
    order placement. ``close()`` ends every subscription.
    """

    _CLOSED = object()

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscribers: Set[asyncio.Queue] = set()
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, order: OrderView) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(order)
            except asyncio.QueueFull:
                logger.warning("Dropping order for slow subscriber", order_id=order.id)

    async def subscribe(self, user_id: Optional[int] = None) -> AsyncIterator[OrderView]:
        """Yield orders as they are placed (only ``user_id``'s, when given)."""
        if self._closed:
            return
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        try:
            while True:
                item = await queue.get()
                if item is self._CLOSED:
                    return
                if user_id is None or item.user_id == user_id:
                    yield item
        finally:
            self._subscribers.discard(queue)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(self._CLOSED)
        logger.debug("Order broadcaster closed")


class OrderService:
    def __init__(self, transactor: Transactor, broadcaster: OrderBroadcaster):
        self.transactor = transactor
        self.broadcaster = broadcaster

    async def place(self, user_id: int) -> OrderView:
        """Convert the user's cart into an order; an empty cart is a conflict."""

        def checkout(session: Session) -> OrderView:
            cart = read_cart(session, user_id)
            if cart.is_empty:
                raise ConflictError("Cannot place an order with an empty cart")

            order = Order(user_id=user_id, total_cents=cart.total_cents)
            session.add(order)
            session.flush()

            lines = []
            for cart_line in cart.lines:
                line = OrderLine(
                    order_id=order.id,
                    brick_id=cart_line.brick.id,
                    quantity=cart_line.quantity,
                    unit_price_cents=cart_line.brick.price_cents,
                )
                session.add(line)
                lines.append(line)

            session.execute(delete(CartLine).where(CartLine.user_id == user_id))
            session.flush()
            session.refresh(order, attribute_names=["placed_at"])

            return OrderView(
                id=order.id,
                user_id=order.user_id,
                total_cents=order.total_cents,
                placed_at=order.placed_at,
                lines=tuple(OrderLineView.from_row(line) for line in lines),
            )

        view = await self.transactor.transact(checkout)
        logger.info("Order placed", order_id=view.id, user_id=user_id, total_cents=view.total_cents)
        self.broadcaster.publish(view)
        return view

    async def list(self, user_id: int) -> List[OrderView]:
        def query(session: Session) -> List[OrderView]:
            stmt = (
                select(Order)
                .where(Order.user_id == user_id)
                .order_by(Order.placed_at.desc(), Order.id.desc())
            )
            return [OrderView.from_row(row) for row in session.scalars(stmt)]

        return await self.transactor.transact(query)

    def stream(self, user_id: int) -> AsyncIterator[OrderView]:
        return self.broadcaster.subscribe(user_id)
