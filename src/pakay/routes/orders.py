"""Demo order endpoints.

Ids are plain integers here. Routes use HashIdRoute, so the tokens in
incoming URLs are already decoded, and links built with request.url_for
come out encoded.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from pakay.declarations import hash_ids
from pakay.router import HashIdRoute

router = APIRouter(prefix="/api/v1", tags=["orders"], route_class=HashIdRoute)


class Order(BaseModel):
    id: int
    customer_id: int
    total: float
    links: dict[str, str] = Field(default_factory=dict)


_ORDERS: dict[int, Order] = {
    order.id: order
    for order in (
        Order(id=1, customer_id=7, total=19.99),
        Order(id=2, customer_id=7, total=5.00),
        Order(id=5, customer_id=9, total=120.50),
    )
}


def _get_order(order_id: int) -> Order:
    order = _ORDERS.get(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return order


def _with_links(order: Order, request: Request) -> dict:
    body = order.model_dump(mode="json")
    body["links"] = {
        "self": str(request.url_for("order_show", order_id=order.id)),
        "customer_orders": str(request.url_for("customer_orders", customer_id=order.customer_id)),
    }
    return body


@router.get("/orders", name="order_list")
@hash_ids("customer_id")
def list_orders(request: Request, customer_id: int | None = None):
    orders = [o for o in _ORDERS.values() if customer_id is None or o.customer_id == customer_id]
    return [_with_links(o, request) for o in orders]


@router.get("/orders/{order_id}", name="order_show")
@hash_ids("order_id")
def show_order(order_id: int, request: Request):
    return _with_links(_get_order(order_id), request)


@router.get("/customers/{customer_id}/orders", name="customer_orders")
def customer_orders(customer_id: int, request: Request):
    """Orders placed by one customer.

    @Hash("customer_id")
    """
    orders = [o for o in _ORDERS.values() if o.customer_id == customer_id]
    return [_with_links(o, request) for o in orders]


@router.get("/customers/{customer_id}/orders/{order_id}", name="customer_order")
def customer_order(customer_id: int, order_id: int, request: Request):
    """One order, addressed through its customer.

    @Hash({"customer_id", "order_id"})
    """
    order = _get_order(order_id)
    if order.customer_id != customer_id:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return _with_links(order, request)
