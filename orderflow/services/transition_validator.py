"""
Transition rules for orders and offers.

Every function here is pure: it looks at an order (and offer / actor) and returns
None when the requested action is allowed, or an ErrorDetail describing why not.
Nothing is read from or written to storage.

Permission failures are reported as `not_found` on purpose so that an actor
cannot learn whether an order or offer it may not act on exists.
"""
from __future__ import annotations
from typing import Optional

from orderflow.core import errors
from orderflow.core.errors import ErrorDetail, validation_error
from orderflow.models.capability import Capability
from orderflow.models.offer import Offer
from orderflow.models.order import Order, BUYER, SELLER, PENDING, SUBMITTED, APPROVED, GALLERY


def validate_transition(order: Order, to_state: str) -> Optional[ErrorDetail]:
    """`invalid_state` unless the order's state machine has an edge to `to_state`."""
    if not order.can_transition(to_state):
        return validation_error(errors.INVALID_STATE, state=order.state)
    return None


def hide_permission_failure() -> ErrorDetail:
    # actor is not allowed to act here; answer as if the target did not exist
    return validation_error(errors.NOT_FOUND)


def validate_accept_offer(order: Order, offer: Optional[Offer], capability: Capability,
                          side: str = SELLER) -> Optional[ErrorDetail]:
    """
    Decide whether `side` (seller or buyer) may accept `offer` on `order`.

    Checks, in order:
      - order must be submitted                            -> invalid_state
      - offer must exist and actor must act for `side`     -> not_found
      - offer must be the order's last offer               -> not_last_offer
      - offer must come from the other side                -> cannot_accept_offer
    """
    if order.state != SUBMITTED:
        return validation_error(errors.INVALID_STATE, state=order.state)
    if offer is None:
        return validation_error(errors.NOT_FOUND)
    if not capability.may_act_for(order.party_id(side), order.party_type(side)):
        return hide_permission_failure()
    if offer.id != order.last_offer_id:
        return validation_error(errors.NOT_LAST_OFFER)
    if offer.from_type == order.party_type(side):
        return validation_error(errors.CANNOT_ACCEPT_OFFER)
    return validate_transition(order, APPROVED)


def validate_submit(order: Order, capability: Capability) -> Optional[ErrorDetail]:
    if order.state != PENDING:
        return validation_error(errors.INVALID_STATE, state=order.state)
    if not capability.may_act_for(order.buyer_id, order.buyer_type):
        return hide_permission_failure()
    if not order.last_offer_id:
        return validation_error(errors.MISSING_OFFER)
    return None


def validate_create_offer(order: Order, capability: Capability, side: str) -> Optional[ErrorDetail]:
    """
    Buyers make the opening offer while the order is pending; once submitted
    either side may counter. Terminal and approved orders take no offers.
    """
    if order.state == PENDING and side != BUYER:
        return validation_error(errors.INVALID_STATE, state=order.state)
    if order.state not in (PENDING, SUBMITTED):
        return validation_error(errors.INVALID_STATE, state=order.state)
    if not capability.may_act_for(order.party_id(side), order.party_type(side)):
        return hide_permission_failure()
    return None


def can_view(order: Order, capability: Capability) -> bool:
    return (capability.may_act_for(order.buyer_id, order.buyer_type)
            or capability.may_act_for(order.seller_id, order.seller_type))


def validate_create_order(capability: Capability, seller_id: str, seller_type: str) -> Optional[ErrorDetail]:
    """
    Orders are placed by a user with a gallery. The buyer must not be able to
    act for the seller, or it could accept its own offers.
    """
    if seller_type != GALLERY:
        return validation_error(errors.INVALID_SELLER, seller_type=seller_type)
    if capability.may_act_for(seller_id, seller_type) or seller_id == capability.user_id:
        return validation_error(errors.INVALID_SELLER)
    return None
