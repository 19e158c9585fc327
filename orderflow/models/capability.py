# orderflow/models/capability.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from orderflow.models.order import USER


@dataclass(frozen=True)
class Capability:
    """
    What the calling actor is allowed to act for: its own user id plus the
    partner (gallery) ids it belongs to. Resolved once per request from the token.
    """
    user_id: Optional[str] = None
    partner_ids: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def build(cls, user_id: Optional[str], partner_ids: Iterable[str] = ()) -> "Capability":
        return cls(user_id=str(user_id) if user_id else None,
                   partner_ids=frozenset(str(p) for p in partner_ids if p))

    def may_act_for(self, party_id: Optional[str], party_type: str) -> bool:
        """User parties match the actor's own id; partner parties match its partner ids only."""
        if not party_id:
            return False
        if party_type == USER:
            return party_id == self.user_id
        return party_id in self.partner_ids
