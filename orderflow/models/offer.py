# orderflow/models/offer.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Dict, Any
from datetime import datetime

from orderflow.core.clock import format_timestamp, parse_timestamp


@dataclass(frozen=True)
class Offer:
    """
    A proposal attached to an order, made by either party. Offers are never
    changed after creation; a newer offer supersedes them via order.last_offer_id.
    """
    order_id: str
    from_id: str
    from_type: str
    amount_cents: int = 0
    note: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Offer":
        if d is None:
            raise ValueError("Cannot construct Offer from None")
        try:
            amount_cents = int(float(d.get("amount_cents") or 0))
        except ValueError:
            amount_cents = 0
        return cls(
            id=d.get("id") or None,
            order_id=str(d.get("order_id") or ""),
            from_id=str(d.get("from_id") or ""),
            from_type=str(d.get("from_type") or ""),
            amount_cents=amount_cents,
            note=d.get("note") or None,
            created_at=parse_timestamp(d.get("created_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "from_id": self.from_id,
            "from_type": self.from_type,
            "amount_cents": int(self.amount_cents),
            "note": self.note or "",
            "created_at": format_timestamp(self.created_at),
        }
