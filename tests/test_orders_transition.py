from orderflow.models.order import ABANDONED, PENDING, SUBMITTED

from conftest import SELLER_ID


def _create_order(client, headers):
    resp = client.post("/api/orders/", json={"seller_id": SELLER_ID}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["order_or_error"]["order"]


def test_buyer_creates_offers_and_submits(client, auth_header):
    buyer = auth_header(user_id="buyer-7", partner_ids=())
    order = _create_order(client, buyer)
    assert order["state"] == PENDING
    assert order["buyer_id"] == "buyer-7"
    assert order["seller_type"] == "gallery"

    resp = client.post(f"/api/orders/{order['id']}/offers", json={"amount_cents": 120000}, headers=buyer)
    assert resp.status_code == 201, resp.text
    offer = resp.json()["offer"]
    assert offer["from_id"] == "buyer-7"

    resp = client.post(f"/api/orders/{order['id']}/submit", headers=buyer)
    assert resp.status_code == 200, resp.text
    assert resp.json()["order_or_error"]["order"]["state"] == SUBMITTED
    assert resp.json()["order_or_error"]["order"]["last_offer_id"] == offer["id"]


def test_seller_counter_offer_is_listed(client, auth_header):
    buyer = auth_header(user_id="buyer-7", partner_ids=())
    seller = auth_header(user_id="gallery-staff", partner_ids=[SELLER_ID])
    order = _create_order(client, buyer)
    client.post(f"/api/orders/{order['id']}/offers", json={"amount_cents": 100000}, headers=buyer)
    client.post(f"/api/orders/{order['id']}/submit", headers=buyer)

    resp = client.post(f"/api/orders/{order['id']}/offers",
                       json={"amount_cents": 110000, "side": "seller", "note": "Framed"}, headers=seller)
    assert resp.status_code == 201, resp.text
    counter = resp.json()["offer"]
    assert counter["from_type"] == "gallery"

    resp = client.get(f"/api/orders/{order['id']}/offers", headers=seller)
    assert resp.status_code == 200
    assert [o["amount_cents"] for o in resp.json()["offers"]] == [100000, 110000]


def test_submit_twice_returns_invalid_state(client, auth_header):
    buyer = auth_header(user_id="buyer-7", partner_ids=())
    order = _create_order(client, buyer)
    client.post(f"/api/orders/{order['id']}/offers", json={"amount_cents": 100000}, headers=buyer)
    client.post(f"/api/orders/{order['id']}/submit", headers=buyer)

    resp = client.post(f"/api/orders/{order['id']}/submit", headers=buyer)
    assert resp.status_code == 200
    error = resp.json()["order_or_error"]["error"]
    assert error["code"] == "invalid_state"
    assert error["data"] == {"state": SUBMITTED}


def test_seller_cannot_open_with_an_offer(client, auth_header):
    buyer = auth_header(user_id="buyer-7", partner_ids=())
    seller = auth_header(user_id="gallery-staff", partner_ids=[SELLER_ID])
    order = _create_order(client, buyer)

    resp = client.post(f"/api/orders/{order['id']}/offers",
                       json={"amount_cents": 100000, "side": "seller"}, headers=seller)
    assert resp.status_code == 201
    assert resp.json()["error"]["code"] == "invalid_state"


def test_order_of_someone_else_is_not_found(client, auth_header):
    order = _create_order(client, auth_header(user_id="buyer-7", partner_ids=()))
    stranger = auth_header(user_id="nosy", partner_ids=["another-partner-id"])

    assert client.get(f"/api/orders/{order['id']}", headers=stranger).status_code == 404
    assert client.get("/api/orders/missing", headers=stranger).status_code == 404
    assert client.post("/api/orders/missing/submit", headers=stranger).status_code == 404


def test_get_shows_expired_order(client, auth_header, worker, clock):
    buyer = auth_header(user_id="buyer-7", partner_ids=())
    order = _create_order(client, buyer)

    clock.advance(hours=48, seconds=1)
    worker.run_pending()

    resp = client.get(f"/api/orders/{order['id']}", headers=buyer)
    assert resp.status_code == 200
    assert resp.json()["state"] == ABANDONED
    assert resp.json()["state_reason"] == "buyer_lapsed"


def test_bad_token_is_rejected(client):
    resp = client.get("/api/orders/anything", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_token_in_cookie(client, auth_header):
    token = auth_header(user_id="buyer-7", partner_ids=())["Authorization"].split(" ", 1)[1]
    client.cookies.set("access_token", token)
    resp = client.post("/api/orders/", json={"seller_id": SELLER_ID})
    assert resp.status_code == 201, resp.text


def test_only_gallery_sellers_are_accepted(client, auth_header):
    buyer = auth_header(user_id="buyer-7", partner_ids=())
    resp = client.post("/api/orders/", json={"seller_id": "user-2", "seller_type": "user"}, headers=buyer)
    assert resp.status_code == 422


def test_buyer_cannot_order_from_themselves(client, auth_header):
    buyer = auth_header(user_id="buyer-7", partner_ids=())
    resp = client.post("/api/orders/", json={"seller_id": "buyer-7"}, headers=buyer)
    assert resp.status_code == 201
    assert resp.json()["order_or_error"]["error"]["code"] == "invalid_seller"
