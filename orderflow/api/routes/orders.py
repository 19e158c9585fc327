# orderflow/api/routes/orders.py
from fastapi import APIRouter, Depends, HTTPException, Body

from orderflow.api.deps import get_current_actor, get_order_service
from orderflow.api.schemas.order import (
    OfferCreate, OfferList, OfferMutationResponse, OfferOut, OrderCreate, OrderMutationResponse, OrderOut,
)
from orderflow.core.errors import OrderNotFound, OrderValidationError
from orderflow.models.capability import Capability
from orderflow.models.order import Order
from orderflow.services.order_service import OrderService
from orderflow.services.transition_validator import can_view

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _visible_order(service: OrderService, order_id: str, actor: Capability) -> Order:
    # orders the actor is not a party to are reported exactly like missing ones
    try:
        order = service.get_order(order_id)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    if not can_view(order, actor):
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("/", status_code=201, response_model=OrderMutationResponse)
def create_order(
    payload: OrderCreate = Body(...),
    actor: Capability = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    """
    Start a pending order with the calling user as buyer.
    Body: { "seller_id": "<partner id>", "seller_type": "gallery" }
    """
    try:
        order = service.create_order(actor, payload.seller_id, payload.seller_type)
    except OrderValidationError as e:
        return OrderMutationResponse.failure(e.error)
    return OrderMutationResponse.success(order)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    actor: Capability = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    return OrderOut.from_order(_visible_order(service, order_id, actor))


@router.get("/{order_id}/offers", response_model=OfferList)
def list_offers(
    order_id: str,
    actor: Capability = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    order = _visible_order(service, order_id, actor)
    return OfferList(offers=[OfferOut.model_validate(o) for o in service.list_offers(order.id)])


@router.post("/{order_id}/offers", status_code=201, response_model=OfferMutationResponse)
def create_offer(
    order_id: str,
    payload: OfferCreate = Body(...),
    actor: Capability = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    """
    Make an offer on an order. Buyers make the first offer while the order is
    pending; after submission either side may counter.
    Body: { "amount_cents": 100000, "side": "buyer"|"seller", "note": "..." }
    """
    try:
        offer = service.create_offer(order_id, actor, payload.side, payload.amount_cents, payload.note)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except OrderValidationError as e:
        return OfferMutationResponse.failure(e.error)
    return OfferMutationResponse.success(offer)


@router.post("/{order_id}/submit", response_model=OrderMutationResponse)
def submit_order(
    order_id: str,
    actor: Capability = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    """
    Buyer submits a pending order carrying an offer; the seller then has a
    limited time to respond before the order is rejected.
    """
    try:
        order = service.submit(order_id, actor)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except OrderValidationError as e:
        return OrderMutationResponse.failure(e.error)
    return OrderMutationResponse.success(order)
