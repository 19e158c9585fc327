# orderflow/services/order_service.py
"""
Order service: runs validated transitions, persists them with a conditional
update and schedules expiration callbacks for timed states.

Every write is "set these fields only if state and version are still what we
read". A concurrent writer (another request, or the expiration worker) that got
there first makes our write fail, and the caller sees `invalid_state` instead
of an order that is both approved and rejected.
"""
from __future__ import annotations
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol

from orderflow.config import Settings, settings as default_settings
from orderflow.core import errors
from orderflow.core.clock import Clock, format_timestamp, utcnow
from orderflow.core.errors import OfferNotFound, OrderNotFound, OrderValidationError, validation_error
from orderflow.database import FileBackedDB
from orderflow.models.capability import Capability
from orderflow.models.offer import Offer
from orderflow.models.order import (
    Order, ABANDONED, APPROVED, BUYER, BUYER_LAPSED, GALLERY, PENDING, REJECTED, SELLER, SELLER_LAPSED,
    SUBMITTED, TIMED_STATES, USER,
)
from orderflow.services import transition_validator as validator

logger = logging.getLogger(__name__)

ORDERS = "orders"
OFFERS = "offers"


class ExpirationScheduler(Protocol):
    def schedule(self, order_id: str, expected_state: str, run_at: datetime) -> Dict[str, Any]:
        ...


class OrderService:
    def __init__(self, db: FileBackedDB, scheduler: ExpirationScheduler, clock: Clock = utcnow,
                 settings: Optional[Settings] = None):
        self.db = db
        self.scheduler = scheduler
        self.clock = clock
        self.settings = settings or default_settings

    # --- lookups ---

    def find_order(self, order_id: str) -> Optional[Order]:
        row = self.db.get_record(ORDERS, "id", order_id)
        return Order.from_dict(row) if row else None

    def get_order(self, order_id: str) -> Order:
        order = self.find_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def get_offer(self, offer_id: str) -> Offer:
        row = self.db.get_record(OFFERS, "id", offer_id)
        if not row:
            raise OfferNotFound(offer_id)
        return Offer.from_dict(row)

    def list_offers(self, order_id: str) -> List[Offer]:
        offers = [Offer.from_dict(r) for r in self.db.list_records(OFFERS, order_id=order_id)]
        return sorted(offers, key=lambda o: format_timestamp(o.created_at))

    def state_duration(self, state: str) -> Optional[timedelta]:
        hours = {
            PENDING: self.settings.PENDING_EXPIRATION_HOURS,
            SUBMITTED: self.settings.SUBMITTED_EXPIRATION_HOURS,
            APPROVED: self.settings.APPROVED_EXPIRATION_HOURS,
        }.get(state)
        return timedelta(hours=hours) if hours is not None else None

    # --- user-facing operations ---

    def create_order(self, capability: Capability, seller_id: str, seller_type: str = GALLERY) -> Order:
        """Start a pending order with the calling user as buyer."""
        if not capability.user_id:
            raise OrderValidationError(validator.hide_permission_failure())
        seller_id = str(seller_id)
        error = validator.validate_create_order(capability, seller_id, seller_type)
        if error:
            logger.info("Order for seller %s:%s refused: %s", seller_type, seller_id, error.code)
            raise OrderValidationError(error)
        now = self.clock()
        order = Order(
            seller_id=str(seller_id),
            seller_type=seller_type,
            buyer_id=capability.user_id,
            buyer_type=USER,
            state=PENDING,
            created_at=now,
            state_updated_at=now,
            state_expires_at=now + self.state_duration(PENDING),
        )
        row = self.db.create_record(ORDERS, order.to_dict(), id_field="id")
        order.id = row["id"]
        logger.info("Order %s created (buyer=%s seller=%s:%s)", order.id, order.buyer_id, seller_type, seller_id)
        self._schedule_expiration(order)
        return order

    def create_offer(self, order_id: str, capability: Capability, side: str, amount_cents: int,
                     note: Optional[str] = None) -> Offer:
        """
        Record a new offer from `side` and make it the order's last offer.
        The offer row is only written once the order pointer has been claimed.
        """
        order = self.get_order(order_id)
        error = validator.validate_create_offer(order, capability, side)
        if error:
            raise OrderValidationError(error)

        offer = Offer(
            order_id=order.id,
            from_id=order.party_id(side),
            from_type=order.party_type(side),
            amount_cents=int(amount_cents),
            note=note,
            id=uuid.uuid4().hex,
            created_at=self.clock(),
        )
        updated = self.db.compare_and_update(
            ORDERS, "id", order.id,
            {"state": order.state, "version": order.version},
            {"last_offer_id": offer.id, "version": order.version + 1},
        )
        if updated is None:
            raise OrderValidationError(self._stale_error(order.id))
        self.db.create_record(OFFERS, offer.to_dict(), id_field="id")
        logger.info("Offer %s created on order %s by %s %s", offer.id, order.id, side, offer.from_id)
        return offer

    def submit(self, order_id: str, capability: Capability) -> Order:
        order = self.get_order(order_id)
        error = validator.validate_submit(order, capability)
        if error:
            raise OrderValidationError(error)
        return self._transition(order, SUBMITTED, actor=capability.user_id)

    def seller_accept_offer(self, offer_id: str, capability: Capability) -> Order:
        return self._accept_offer(offer_id, capability, SELLER)

    def buyer_accept_offer(self, offer_id: str, capability: Capability) -> Order:
        return self._accept_offer(offer_id, capability, BUYER)

    def _accept_offer(self, offer_id: str, capability: Capability, side: str) -> Order:
        # unknown offer ids propagate as OfferNotFound (a transport-level 404)
        offer = self.get_offer(offer_id)
        order = self.get_order(offer.order_id)
        error = validator.validate_accept_offer(order, offer, capability, side=side)
        if error:
            logger.info("Accept of offer %s on order %s refused: %s", offer.id, order.id, error.code)
            raise OrderValidationError(error)
        return self._transition(order, APPROVED, actor=capability.user_id, meta={"offer_id": offer.id})

    # --- internal lifecycle triggers (expiration path) ---

    def abandon(self, order: Order) -> Order:
        return self._transition(order, ABANDONED, reason=BUYER_LAPSED)

    def reject(self, order: Order, reason: str = SELLER_LAPSED) -> Order:
        return self._transition(order, REJECTED, reason=reason)

    # --- persistence ---

    def _transition(self, order: Order, to_state: str, actor: Optional[str] = None,
                    meta: Optional[Dict[str, Any]] = None, reason: Optional[str] = None) -> Order:
        error = validator.validate_transition(order, to_state)
        if error:
            raise OrderValidationError(error)

        from_state, from_version = order.state, order.version
        now = self.clock()
        # the caller's order keeps reflecting what is persisted until the write succeeds
        moved = replace(order, state_history=list(order.state_history))
        moved.transition_to(to_state, actor=actor, meta=meta, at=now)

        duration = self.state_duration(to_state) if to_state in TIMED_STATES else None
        moved.state_expires_at = now + duration if duration else None
        moved.state_reason = reason

        updates = {
            "state": moved.state,
            "state_reason": moved.state_reason or "",
            "state_updated_at": format_timestamp(now),
            "state_expires_at": format_timestamp(moved.state_expires_at),
            "state_history": moved.to_dict()["state_history"],
            "version": moved.version,
        }
        # the state we decided on must still be the persisted one
        updated = self.db.compare_and_update(
            ORDERS, "id", order.id, {"state": from_state, "version": from_version}, updates
        )
        if updated is None:
            logger.info("Order %s moved under us; %s -> %s not applied", order.id, from_state, to_state)
            raise OrderValidationError(self._stale_error(order.id))

        logger.info("Order %s transitioned %s -> %s", order.id, from_state, to_state)
        if moved.state_expires_at:
            self._schedule_expiration(moved)
        return Order.from_dict(updated)

    def _stale_error(self, order_id: str):
        current = self.find_order(order_id)
        return validation_error(errors.INVALID_STATE, state=current.state if current else None)

    def _schedule_expiration(self, order: Order) -> None:
        self.scheduler.schedule(order.id, order.state, order.state_expires_at)
        logger.debug("Scheduled expiration of order %s (%s) at %s", order.id, order.state, order.state_expires_at)
