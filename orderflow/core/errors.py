from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# error types
VALIDATION = "validation"

# error codes surfaced in the mutation envelope
INVALID_STATE = "invalid_state"
NOT_FOUND = "not_found"
NOT_LAST_OFFER = "not_last_offer"
CANNOT_ACCEPT_OFFER = "cannot_accept_offer"
MISSING_OFFER = "missing_offer"
INVALID_SELLER = "invalid_seller"


@dataclass(frozen=True)
class ErrorDetail:
    """A business-rule failure, rendered to clients as {type, code, data}."""
    code: str
    type: str = VALIDATION
    data: Optional[Dict[str, Any]] = field(default=None)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "code": self.code, "data": dict(self.data) if self.data else None}


def validation_error(code: str, **data: Any) -> ErrorDetail:
    return ErrorDetail(code=code, data=data or None)


class OrderValidationError(Exception):
    """Raised by the order service when a transition is refused. Nothing has been written."""

    def __init__(self, error: ErrorDetail):
        super().__init__(f"{error.type}: {error.code}")
        self.error = error


class OrderNotFound(LookupError):
    pass


class OfferNotFound(LookupError):
    pass
