"""Product aggregate with reserve/restock routes."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..api.dependencies import store_dependency
from ..domain import Aggregate, Event, handles
from ..errors import InvalidTransition
from ..store.base import EventStore


class Product(Aggregate):
    event_types = ("ProductReserved", "ProductRestocked")

    def __init__(self, store: EventStore, id: Optional[str] = None) -> None:
        super().__init__(store, id)
        self.status: Optional[str] = None
        self.quantity: Optional[int] = None

    @handles("ProductReserved")
    def onProductReserved(self, event: Event) -> None:
        if not self.quantity or self.status == "sold-out":
            raise InvalidTransition()
        self.quantity -= 1
        self.status = "available" if self.quantity > 0 else "sold-out"

    @handles("ProductRestocked")
    def onProductRestocked(self, event: Event) -> None:
        amount = event["amount"]
        if amount <= 0:
            raise InvalidTransition()
        self.quantity = (self.quantity or 0) + amount
        self.status = "available"


STORE_NAME = "products"

router = APIRouter(tags=["Products"])
get_product_store = store_dependency(STORE_NAME)


class RestockRequest(BaseModel):
    """Request to restock a product."""

    amount: int = Field(..., gt=0, description="Units added to stock")


@router.post("/products/{product_id}/buy")
async def buy_product(product_id: str, store: EventStore = Depends(get_product_store)) -> Dict[str, Any]:
    product = Product(store, product_id)
    # Hydrate to learn the next event number
    await product.hydrate()
    await product.commit(Event(number=product.version + 1, type="ProductReserved"))
    return product.to_dict()


@router.post("/products/{product_id}/restock")
async def restock_product(
    product_id: str,
    request: RestockRequest,
    store: EventStore = Depends(get_product_store),
) -> Dict[str, Any]:
    product = Product(store, product_id)
    await product.hydrate()
    await product.commit(
        Event(number=product.version + 1, type="ProductRestocked", payload={"amount": request.amount})
    )
    return product.to_dict()
