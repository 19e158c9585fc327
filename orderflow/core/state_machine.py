from __future__ import annotations
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone


class InvalidTransition(ValueError):
    pass


HistoryEntry = Dict[str, Any]


class StateMachine:
    """
    Small, generic state machine with:
      - allowed transitions map
      - history recording (with actor / metadata)
      - a version counter bumped on every transition

    It only computes the next state; persisting it (and re-checking that nobody
    else moved the record in between) is the caller's job.

    Usage:
      sm = StateMachine(state="submitted", allowed_transitions=ALLOWED_TRANSITIONS)
      result = sm.apply("approved", actor=user_id)
      order.state = result["state"]
      order.state_history = result["history"]
      order.version = result["version"]
    """

    def __init__(self, state: str, allowed_transitions: Dict[str, List[str]], version: int = 0,
                 history: Optional[List[HistoryEntry]] = None):
        self.state = state or ""
        self.allowed_transitions = allowed_transitions or {}
        self.version = int(version or 0)
        self.history: List[HistoryEntry] = list(history or [])

    def can_transition(self, to_state: str) -> bool:
        allowed = self.allowed_transitions.get(self.state, [])
        return to_state in allowed

    def is_terminal(self) -> bool:
        return not self.allowed_transitions.get(self.state)

    def apply(self, to_state: str, actor: Optional[str] = None, meta: Optional[Dict[str, Any]] = None,
              at: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Attempt to transition to `to_state`. Raises InvalidTransition.
        Returns dict with keys: state, history (full list), version (new).
        """
        to_state = (to_state or "").strip()
        if not to_state:
            raise InvalidTransition("Empty target state")

        # self-loops are not edges: approved -> approved is as illegal as rejected -> approved
        if not self.can_transition(to_state):
            raise InvalidTransition(f"Invalid transition: {self.state} -> {to_state}")

        entry: HistoryEntry = {
            "from": self.state,
            "to": to_state,
            "at": (at or datetime.now(timezone.utc)).isoformat(),
            "actor": actor,
            "meta": dict(meta or {}),
        }

        self.state = to_state
        self.history.append(entry)
        self.version = int(self.version) + 1

        return {"state": self.state, "history": list(self.history), "version": self.version}
