"""
Brickstore - SQLAlchemy ORM Models

Catalog, cart and order tables. Money is stored as integer cents.
The schema itself is owned by the alembic scripts; these mappings must stay
in line with ``alembic/versions``.
"""
from datetime import datetime
from typing import List

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Brick(Base):
    """A catalog entry."""
    __tablename__ = "bricks"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    color: Mapped[str] = mapped_column(String(30))
    price_cents: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_bricks_color", "color"),
    )


class CartLine(Base):
    """One brick in a user's cart. A user has at most one line per brick."""
    __tablename__ = "cart_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer)
    brick_id: Mapped[int] = mapped_column(ForeignKey("bricks.id"))
    quantity: Mapped[int] = mapped_column(Integer)

    brick: Mapped[Brick] = relationship(lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "brick_id", name="uq_cart_user_brick"),
        Index("ix_cart_lines_user", "user_id"),
    )


class Order(Base):
    """A placed order; immutable once written."""
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer)
    total_cents: Mapped[int] = mapped_column(Integer)
    placed_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    lines: Mapped[List["OrderLine"]] = relationship(
        back_populates="order",
        lazy="selectin",
        order_by="OrderLine.id",
    )

    __table_args__ = (
        Index("ix_orders_user_placed", "user_id", "placed_at"),
    )


class OrderLine(Base):
    """A brick, quantity and the unit price paid at ordering time."""
    __tablename__ = "order_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"))
    brick_id: Mapped[int] = mapped_column(ForeignKey("bricks.id"))
    quantity: Mapped[int] = mapped_column(Integer)
    unit_price_cents: Mapped[int] = mapped_column(Integer)

    order: Mapped[Order] = relationship(back_populates="lines")

    __table_args__ = (
        Index("ix_order_lines_order", "order_id"),
    )
