"""
Brickstore - HTTP Controllers

Each controller owns an ``APIRouter`` exposed as ``routes``. Routers carry
paths relative to their mount point; the prefixes are assigned in one place
by ``api.main.assemble_routes``.
"""
import json
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from api.auth import get_user_id
from domain.cart import CartService
from domain.catalog import BrickService
from domain.orders import OrderService
from observability import get_logger

logger = get_logger(__name__)

NDJSON = "application/x-ndjson"


# Pydantic models for API
class BrickRequest(BaseModel):
    """Request for adding a brick to the catalog."""
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(..., min_length=1, max_length=30)
    price_cents: int = Field(..., gt=0, description="Unit price in cents")


class CartAddRequest(BaseModel):
    """Request for putting bricks into the caller's cart."""
    brick_id: int
    quantity: int = Field(..., gt=0)


class BricksController:
    """Catalog: ``GET /``, ``GET /{brick_id}``, ``POST /``."""

    def __init__(self, service: BrickService):
        self.service = service
        self.routes = APIRouter(tags=["bricks"])
        self.routes.add_api_route("", self.list_bricks, methods=["GET"])
        self.routes.add_api_route("/{brick_id}", self.get_brick, methods=["GET"])
        self.routes.add_api_route("", self.create_brick, methods=["POST"], status_code=201)

    async def list_bricks(self, color: Optional[str] = Query(default=None)) -> List[Dict[str, Any]]:
        return [brick.to_dict() for brick in await self.service.list(color=color)]

    async def get_brick(self, brick_id: int) -> Dict[str, Any]:
        return (await self.service.get(brick_id)).to_dict()

    async def create_brick(self, request: BrickRequest) -> Dict[str, Any]:
        brick = await self.service.create(request.name, request.color, request.price_cents)
        return brick.to_dict()


class CartController:
    """Cart: ``POST /add``, ``GET /``."""

    def __init__(self, service: CartService):
        self.service = service
        self.routes = APIRouter(tags=["cart"])
        self.routes.add_api_route("/add", self.add_to_cart, methods=["POST"])
        self.routes.add_api_route("", self.get_cart, methods=["GET"])

    async def add_to_cart(
        self,
        request: CartAddRequest,
        user_id: int = Depends(get_user_id),
    ) -> Dict[str, Any]:
        cart = await self.service.add(user_id, request.brick_id, request.quantity)
        return cart.to_dict()

    async def get_cart(self, user_id: int = Depends(get_user_id)) -> Dict[str, Any]:
        return (await self.service.get(user_id)).to_dict()


class OrderController:
    """Orders: ``POST /``, ``GET /``, ``GET /stream``."""

    def __init__(self, service: OrderService):
        self.service = service
        self.routes = APIRouter(tags=["order"])
        self.routes.add_api_route("", self.place_order, methods=["POST"], status_code=201)
        self.routes.add_api_route("", self.list_orders, methods=["GET"])
        self.routes.add_api_route("/stream", self.stream_orders, methods=["GET"])

    async def place_order(self, user_id: int = Depends(get_user_id)) -> Dict[str, Any]:
        return (await self.service.place(user_id)).to_dict()

    async def list_orders(self, user_id: int = Depends(get_user_id)) -> List[Dict[str, Any]]:
        return [order.to_dict() for order in await self.service.list(user_id)]

    async def stream_orders(self, user_id: int = Depends(get_user_id)) -> StreamingResponse:
        """
        Stream the caller's new orders, one JSON document per line.

        The response stays open until the client disconnects or the service
        shuts down; it relies on the listener never timing out idle connections.
        """
        logger.info("Order stream opened", user_id=user_id)
        return StreamingResponse(self._ndjson(user_id), media_type=NDJSON)

    async def _ndjson(self, user_id: int) -> AsyncIterator[str]:
        try:
            async for order in self.service.stream(user_id):
                yield json.dumps(order.to_dict()) + "\n"
        finally:
            logger.info("Order stream closed", user_id=user_id)
