# orderflow/api/routes/offers.py
from fastapi import APIRouter, Depends, HTTPException

from orderflow.api.deps import get_current_actor, get_order_service
from orderflow.api.schemas.order import OrderMutationResponse
from orderflow.core.errors import OfferNotFound, OrderNotFound, OrderValidationError
from orderflow.models.capability import Capability
from orderflow.services.order_service import OrderService

router = APIRouter(prefix="/api/offers", tags=["offers"])


@router.post("/{offer_id}/seller_accept", response_model=OrderMutationResponse)
def seller_accept_offer(
    offer_id: str,
    actor: Capability = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    """
    Seller accepts the buyer's last offer, approving the order.

    An offer id that resolves to nothing is a 404. Everything else (wrong state,
    stale offer, own offer, no permission) comes back as a typed error in the
    `order_or_error` envelope with status 200.
    """
    try:
        order = service.seller_accept_offer(offer_id, actor)
    except (OfferNotFound, OrderNotFound):
        raise HTTPException(status_code=404, detail="Offer not found")
    except OrderValidationError as e:
        return OrderMutationResponse.failure(e.error)
    return OrderMutationResponse.success(order)


@router.post("/{offer_id}/buyer_accept", response_model=OrderMutationResponse)
def buyer_accept_offer(
    offer_id: str,
    actor: Capability = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    """Buyer accepts the seller's counter-offer. Same envelope as seller_accept."""
    try:
        order = service.buyer_accept_offer(offer_id, actor)
    except (OfferNotFound, OrderNotFound):
        raise HTTPException(status_code=404, detail="Offer not found")
    except OrderValidationError as e:
        return OrderMutationResponse.failure(e.error)
    return OrderMutationResponse.success(order)
