"""
Brickstore - Domain Layer

Services for the bricks catalog, shopping carts and orders, and the value
objects they return. All database work goes through a ``Transactor``.

Usage:
    from domain import BrickService, CartService, OrderService, OrderBroadcaster

    bricks = BrickService(transactor)
    red = await bricks.list(color="red")
"""
from domain.cart import CartService
from domain.catalog import BrickService
from domain.entities import BrickView, CartLineView, CartView, OrderLineView, OrderView
from domain.orders import OrderBroadcaster, OrderService

__all__ = [
    "BrickService",
    "BrickView",
    "CartLineView",
    "CartService",
    "CartView",
    "OrderBroadcaster",
    "OrderLineView",
    "OrderService",
    "OrderView",
]
