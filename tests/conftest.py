# tests/conftest.py
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt

# ensure project root is importable
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from orderflow.config import settings  # noqa: E402
from orderflow.database import FileBackedDB  # noqa: E402
from orderflow.main import app  # noqa: E402
from orderflow.api import deps  # noqa: E402
from orderflow.models.offer import Offer  # noqa: E402
from orderflow.models.order import Order, GALLERY, SUBMITTED, USER  # noqa: E402
from orderflow.services.expiration import ExpirationQueue, ExpirationWorker, ExpireOrderJob  # noqa: E402
from orderflow.services.order_service import OrderService  # noqa: E402

SELLER_ID = "partner-1"
BUYER_ID = "user-1"


class FrozenClock:
    """Stands in for the wall clock; time only moves when a test moves it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def db(tmp_path):
    """A file-backed DB rooted in a per-test temp directory."""
    return FileBackedDB(tmp_path / "data")


@pytest.fixture
def queue(db, clock):
    return ExpirationQueue(db, clock)


@pytest.fixture
def service(db, queue, clock):
    return OrderService(db, queue, clock)


@pytest.fixture
def expire_job(service, clock):
    return ExpireOrderJob(service, clock)


@pytest.fixture
def worker(queue, expire_job, clock):
    return ExpirationWorker(queue, expire_job, clock)


@pytest.fixture
def client(db, queue, service):
    app.dependency_overrides[deps.get_db] = lambda: db
    app.dependency_overrides[deps.get_expiration_queue] = lambda: queue
    app.dependency_overrides[deps.get_order_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_header():
    """
    Helper that returns a callable building an Authorization header for an actor.
    Usage: hdr = auth_header(user_id="user-1", partner_ids=["partner-1"])
    """
    def _h(user_id: str = BUYER_ID, partner_ids=(SELLER_ID,)):
        token = jwt.encode({"sub": user_id, "partner_ids": list(partner_ids)},
                           settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
        return {"Authorization": f"Bearer {token}"}
    return _h


@pytest.fixture
def make_order(db, clock):
    """
    Write an order straight into the orders table, bypassing the service.
    Usage: order = make_order(state="submitted", seller_id="partner-1")
    """
    def _fn(state: str = SUBMITTED, seller_id: str = SELLER_ID, seller_type: str = GALLERY,
            buyer_id: str = BUYER_ID, buyer_type: str = USER, expires_in: timedelta = timedelta(days=2)):
        order = Order(
            seller_id=seller_id,
            seller_type=seller_type,
            buyer_id=buyer_id,
            buyer_type=buyer_type,
            state=state,
            created_at=clock(),
            state_updated_at=clock(),
            state_expires_at=clock() + expires_in,
        )
        row = db.create_record("orders", order.to_dict(), id_field="id")
        return Order.from_dict(row)
    return _fn


@pytest.fixture
def make_offer(db, clock):
    """
    Write an offer for `order`, by default from the buyer, and point the order's
    last_offer_id at it.
    """
    def _fn(order: Order, from_id: str = None, from_type: str = USER, amount_cents: int = 100000,
            make_last: bool = True):
        offer = Offer(
            order_id=order.id,
            from_id=from_id or order.buyer_id,
            from_type=from_type,
            amount_cents=amount_cents,
            created_at=clock(),
        )
        row = db.create_record("offers", offer.to_dict(), id_field="id")
        if make_last:
            db.update_record("orders", "id", order.id, {"last_offer_id": row["id"]})
        return Offer.from_dict(row)
    return _fn


@pytest.fixture
def reload(service):
    def _fn(order: Order) -> Order:
        return service.get_order(order.id)
    return _fn
