# orderflow/models/order.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
from datetime import datetime
import json

from orderflow.core.clock import format_timestamp, parse_timestamp
from orderflow.core.state_machine import StateMachine

PENDING = "pending"
SUBMITTED = "submitted"
APPROVED = "approved"
REJECTED = "rejected"
ABANDONED = "abandoned"

# states that carry a deadline and get an expiration callback when entered
TIMED_STATES = (PENDING, SUBMITTED, APPROVED)

# party types
USER = "user"
GALLERY = "gallery"

BUYER = "buyer"
SELLER = "seller"

# state reasons recorded on timeouts
BUYER_LAPSED = "buyer_lapsed"
SELLER_LAPSED = "seller_lapsed"


@dataclass
class Order:
    """
    Order aggregate: a transaction between a buyer party and a seller party.
    `last_offer_id` points at the most recently created Offer for this order.
    """
    seller_id: str
    seller_type: str
    buyer_id: str
    buyer_type: str = USER
    id: Optional[str] = None
    state: str = PENDING
    state_reason: Optional[str] = None
    last_offer_id: Optional[str] = None
    state_expires_at: Optional[datetime] = None
    state_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    state_history: List[Dict[str, Any]] = field(default_factory=list)
    # optimistic concurrency control
    version: int = 0

    ALLOWED_TRANSITIONS = {
        PENDING: [SUBMITTED, ABANDONED],
        SUBMITTED: [APPROVED, REJECTED],
        APPROVED: [REJECTED],
        REJECTED: [],
        ABANDONED: [],
    }

    def _make_state_machine(self) -> StateMachine:
        return StateMachine(state=self.state, allowed_transitions=self.ALLOWED_TRANSITIONS,
                            version=self.version, history=list(self.state_history))

    def can_transition(self, new_state: str) -> bool:
        return self._make_state_machine().can_transition(new_state)

    @property
    def is_terminal(self) -> bool:
        return self._make_state_machine().is_terminal()

    def party_id(self, side: str) -> str:
        return self.seller_id if side == SELLER else self.buyer_id

    def party_type(self, side: str) -> str:
        return self.seller_type if side == SELLER else self.buyer_type

    def transition_to(self, new_state: str, actor: Optional[str] = None, meta: Optional[Dict[str, Any]] = None,
                      at: Optional[datetime] = None) -> None:
        """
        Transition to a new state using the StateMachine. Raises InvalidTransition.
        On success updates self.state, self.state_history and increments self.version.
        Nothing is persisted here.
        """
        sm = self._make_state_machine()
        result = sm.apply(new_state, actor=actor, meta=meta, at=at)
        self.state = result["state"]
        self.state_history = result["history"]
        self.version = int(result["version"])
        self.state_updated_at = at

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Order":
        if d is None:
            raise ValueError("Cannot construct Order from None")

        # history is serialized as a JSON string in the CSV cell
        history_raw = d.get("state_history") or "[]"
        if isinstance(history_raw, str):
            try:
                state_history = json.loads(history_raw) or []
            except json.JSONDecodeError:
                state_history = []
        else:
            state_history = list(history_raw)

        try:
            version = int(float(d.get("version") or 0))
        except ValueError:
            version = 0

        return cls(
            id=d.get("id") or None,
            seller_id=str(d.get("seller_id") or ""),
            seller_type=str(d.get("seller_type") or GALLERY),
            buyer_id=str(d.get("buyer_id") or ""),
            buyer_type=str(d.get("buyer_type") or USER),
            state=str(d.get("state") or PENDING),
            state_reason=d.get("state_reason") or None,
            last_offer_id=d.get("last_offer_id") or None,
            state_expires_at=parse_timestamp(d.get("state_expires_at")),
            state_updated_at=parse_timestamp(d.get("state_updated_at")),
            created_at=parse_timestamp(d.get("created_at")),
            state_history=state_history,
            version=version,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the order into a dict suitable for CSV writing. History is serialized as a JSON string.
        """
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "seller_type": self.seller_type,
            "buyer_id": self.buyer_id,
            "buyer_type": self.buyer_type,
            "state": self.state,
            "state_reason": self.state_reason or "",
            "last_offer_id": self.last_offer_id or "",
            "state_expires_at": format_timestamp(self.state_expires_at),
            "state_updated_at": format_timestamp(self.state_updated_at),
            "created_at": format_timestamp(self.created_at),
            "state_history": json.dumps(self.state_history or [], ensure_ascii=False),
            "version": int(self.version or 0),
        }
