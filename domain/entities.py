"""
Brickstore - Domain Entities

Immutable value objects handed from the services to the HTTP layer.

ORM rows never leave a transaction: services copy what the caller needs into
these objects before the session closes, so nothing downstream can trigger a
lazy load on a released connection.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Tuple

from db.models import Brick, CartLine, Order, OrderLine


# =============================================================================
# CATALOG
# =============================================================================


@dataclass(frozen=True, slots=True)
class BrickView:
    """A catalog entry. Prices are integer cents."""
    id: int
    name: str
    color: str
    price_cents: int

    @classmethod
    def from_row(cls, row: Brick) -> "BrickView":
        return cls(id=row.id, name=row.name, color=row.color, price_cents=row.price_cents)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "price_cents": self.price_cents,
        }


# =============================================================================
# CART
# =============================================================================


@dataclass(frozen=True, slots=True)
class CartLineView:
    brick: BrickView
    quantity: int

    @property
    def subtotal_cents(self) -> int:
        return self.brick.price_cents * self.quantity

    @classmethod
    def from_row(cls, row: CartLine) -> "CartLineView":
        return cls(brick=BrickView.from_row(row.brick), quantity=row.quantity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "brick": self.brick.to_dict(),
            "quantity": self.quantity,
            "subtotal_cents": self.subtotal_cents,
        }


@dataclass(frozen=True, slots=True)
class CartView:
    """A user's cart. The total is always price x quantity summed over lines."""
    user_id: int
    lines: Tuple[CartLineView, ...]

    @property
    def total_cents(self) -> int:
        return sum(line.subtotal_cents for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "lines": [line.to_dict() for line in self.lines],
            "total_cents": self.total_cents,
        }


# =============================================================================
# ORDERS
# =============================================================================


@dataclass(frozen=True, slots=True)
class OrderLineView:
    brick_id: int
    quantity: int
    unit_price_cents: int

    @classmethod
    def from_row(cls, row: OrderLine) -> "OrderLineView":
        return cls(
            brick_id=row.brick_id,
            quantity=row.quantity,
            unit_price_cents=row.unit_price_cents,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "brick_id": self.brick_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
        }


@dataclass(frozen=True, slots=True)
class OrderView:
    """A placed order with the prices that were charged."""
    id: int
    user_id: int
    total_cents: int
    placed_at: datetime
    lines: Tuple[OrderLineView, ...]

    @classmethod
    def from_row(cls, row: Order) -> "OrderView":
        return cls(
            id=row.id,
            user_id=row.user_id,
            total_cents=row.total_cents,
            placed_at=row.placed_at,
            lines=tuple(OrderLineView.from_row(line) for line in row.lines),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "total_cents": self.total_cents,
            "placed_at": self.placed_at.isoformat(),
            "lines": [line.to_dict() for line in self.lines],
        }
