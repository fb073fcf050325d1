"""
Brickstore - Composition Root

All business wiring happens here, once, from the pooled transactor:
services are built from the transactor and controllers from the services.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from api.controllers import BricksController, CartController, OrderController
from db.transactor import Transactor
from domain.cart import CartService
from domain.catalog import BrickService
from domain.orders import OrderBroadcaster, OrderService
from observability import get_logger

logger = get_logger(__name__)


@dataclass
class Module:
    """The fully wired business module the HTTP surface is assembled from."""

    bricks_controller: BricksController
    cart_controller: CartController
    order_controller: OrderController
    broadcaster: OrderBroadcaster = field(default_factory=OrderBroadcaster)

    async def aclose(self) -> None:
        """Release the module: open order streams end, nothing new is published."""
        self.broadcaster.close()
        logger.info("Business module released")


class MainModule:
    """Factory for :class:`Module`."""

    @staticmethod
    def make(transactor: Transactor) -> Module:
        broadcaster = OrderBroadcaster()
        module = Module(
            bricks_controller=BricksController(BrickService(transactor)),
            cart_controller=CartController(CartService(transactor)),
            order_controller=OrderController(OrderService(transactor, broadcaster)),
            broadcaster=broadcaster,
        )
        logger.info("Business module built")
        return module
