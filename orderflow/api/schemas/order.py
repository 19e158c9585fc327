from typing import List, Literal, Optional, Any, Dict
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

from orderflow.core.errors import ErrorDetail
from orderflow.models.offer import Offer
from orderflow.models.order import Order, BUYER, SELLER, GALLERY


class OrderCreate(BaseModel):
    seller_id: str = Field(..., min_length=1, description="Partner id of the seller")
    seller_type: Literal["gallery"] = Field(GALLERY, description="Seller party type")


class OfferCreate(BaseModel):
    amount_cents: int = Field(..., ge=0, description="Offered amount in minor units")
    side: str = Field(BUYER, pattern=f"^({BUYER}|{SELLER})$", description="Which party is making the offer")
    note: Optional[str] = Field(None, max_length=1000)


class OrderOut(BaseModel):
    id: str
    state: str
    state_reason: Optional[str] = None
    seller_id: str
    seller_type: str
    buyer_id: str
    buyer_type: str
    last_offer_id: Optional[str] = None
    state_expires_at: Optional[datetime] = None
    state_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    version: int = 0

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_order(cls, order: Order) -> "OrderOut":
        return cls.model_validate(order)


class OfferOut(BaseModel):
    id: str
    order_id: str
    from_id: str
    from_type: str
    amount_cents: int
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ErrorOut(BaseModel):
    type: str
    code: str
    data: Optional[Dict[str, Any]] = None


class OrderOrError(BaseModel):
    """Either `order` (mutation succeeded) or `error` (a business rule refused it)."""
    order: Optional[OrderOut] = None
    error: Optional[ErrorOut] = None


class OrderMutationResponse(BaseModel):
    order_or_error: OrderOrError

    @classmethod
    def success(cls, order: Order) -> "OrderMutationResponse":
        return cls(order_or_error=OrderOrError(order=OrderOut.from_order(order)))

    @classmethod
    def failure(cls, error: ErrorDetail) -> "OrderMutationResponse":
        return cls(order_or_error=OrderOrError(error=ErrorOut(**error.to_dict())))


class OfferMutationResponse(BaseModel):
    offer: Optional[OfferOut] = None
    error: Optional[ErrorOut] = None

    @classmethod
    def success(cls, offer: Offer) -> "OfferMutationResponse":
        return cls(offer=OfferOut.model_validate(offer))

    @classmethod
    def failure(cls, error: ErrorDetail) -> "OfferMutationResponse":
        return cls(error=ErrorOut(**error.to_dict()))


class OfferList(BaseModel):
    offers: List[OfferOut]
