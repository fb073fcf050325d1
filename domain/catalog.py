"""
Brickstore - Bricks Catalog
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.errors import NotFoundError, ValidationFailedError
from db.models import Brick
from db.transactor import Transactor
from domain.entities import BrickView
from observability import get_logger

logger = get_logger(__name__)


def load_brick(session: Session, brick_id: int) -> Brick:
    """Fetch a brick row or raise ``NotFoundError``."""
    brick = session.get(Brick, brick_id)
    if brick is None:
        raise NotFoundError(f"Brick {brick_id} does not exist")
    return brick


class BrickService:
    """Reads and extends the catalog."""

    def __init__(self, transactor: Transactor):
        self.transactor = transactor

    async def list(self, color: Optional[str] = None) -> List[BrickView]:
        def query(session: Session) -> List[BrickView]:
            stmt = select(Brick).order_by(Brick.id)
            if color is not None:
                stmt = stmt.where(Brick.color == color)
            return [BrickView.from_row(row) for row in session.scalars(stmt)]

        return await self.transactor.transact(query)

    async def get(self, brick_id: int) -> BrickView:
        return await self.transactor.transact(
            lambda session: BrickView.from_row(load_brick(session, brick_id))
        )

    async def create(self, name: str, color: str, price_cents: int) -> BrickView:
        if price_cents <= 0:
            raise ValidationFailedError("Price must be positive", field_name="price_cents")
        if not name.strip():
            raise ValidationFailedError("Name must not be blank", field_name="name")

        def insert(session: Session) -> BrickView:
            brick = Brick(name=name.strip(), color=color, price_cents=price_cents)
            session.add(brick)
            session.flush()
            return BrickView.from_row(brick)

        view = await self.transactor.transact(insert)
        logger.info("Brick added", brick_id=view.id, color=view.color)
        return view
