# orderflow/api/deps.py
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError

from orderflow.config import settings
from orderflow.database import db, FileBackedDB
from orderflow.models.capability import Capability
from orderflow.services.expiration import ExpirationQueue
from orderflow.services.order_service import OrderService

# tokens are issued by an external identity service; we only verify them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def get_db() -> FileBackedDB:
    """
    Dependency that returns the file-backed DB object.
    Usage:
        db = Depends(get_db)
    """
    return db


def get_expiration_queue(db: FileBackedDB = Depends(get_db)) -> ExpirationQueue:
    return ExpirationQueue(db)


def get_order_service(
    db: FileBackedDB = Depends(get_db),
    queue: ExpirationQueue = Depends(get_expiration_queue),
) -> OrderService:
    return OrderService(db, queue)


def _decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a JWT. Returns the claims, or None if the token is invalid
    or carries no subject.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return payload


async def get_current_actor(request: Request, token: Optional[str] = Depends(oauth2_scheme)) -> Capability:
    """
    Resolve the calling actor from the Authorization header (Bearer) or the
    'access_token' cookie.

    Expected claims:
     - sub: the user id
     - partner_ids: list of partner (gallery) ids the user may act for
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

    claims = _decode_token(token) if token else None
    if claims is None:
        cookie_token = request.cookies.get("access_token")
        if cookie_token:
            claims = _decode_token(cookie_token)

    if claims is None:
        raise credentials_exception

    partner_ids = claims.get("partner_ids") or []
    if isinstance(partner_ids, str):
        partner_ids = [p.strip() for p in partner_ids.split(",")]
    return Capability.build(claims["sub"], partner_ids)
