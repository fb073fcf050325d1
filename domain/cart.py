"""
Brickstore - Shopping Cart

Carts are persisted per user; adding a brick that is already in the cart
increases the quantity of the existing line.
"""
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import ValidationFailedError
from db.models import CartLine
from db.transactor import Transactor
from domain.catalog import load_brick
from domain.entities import CartLineView, CartView
from observability import get_logger

logger = get_logger(__name__)


def read_cart(session: Session, user_id: int) -> CartView:
    stmt = select(CartLine).where(CartLine.user_id == user_id).order_by(CartLine.id)
    return CartView(
        user_id=user_id,
        lines=tuple(CartLineView.from_row(row) for row in session.scalars(stmt)),
    )


class CartService:
    def __init__(self, transactor: Transactor):
        self.transactor = transactor

    async def add(self, user_id: int, brick_id: int, quantity: int) -> CartView:
        """Put ``quantity`` bricks into the cart and return the updated cart."""
        if quantity <= 0:
            raise ValidationFailedError("Quantity must be positive", field_name="quantity")

        def add_line(session: Session) -> CartView:
            load_brick(session, brick_id)
            # Every concurrent add of the same brick must be counted
            result = session.execute(
                update(CartLine)
                .where(CartLine.user_id == user_id, CartLine.brick_id == brick_id)
                .values(quantity=CartLine.quantity + quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                session.add(CartLine(user_id=user_id, brick_id=brick_id, quantity=quantity))
                session.flush()
            return read_cart(session, user_id)

        try:
            return await self.transactor.transact(add_line)
        except IntegrityError:
            # Another add inserted the line first; it now exists to be incremented
            logger.debug("Cart line created concurrently, retrying", user_id=user_id, brick_id=brick_id)
            return await self.transactor.transact(add_line)

    async def get(self, user_id: int) -> CartView:
        return await self.transactor.transact(lambda session: read_cart(session, user_id))
