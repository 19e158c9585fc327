from orderflow.models.order import APPROVED, GALLERY, PENDING, SUBMITTED


def _accept(client, offer_id, headers):
    return client.post(f"/api/offers/{offer_id}/seller_accept", headers=headers)


def _error(resp):
    assert resp.status_code == 200, resp.text
    return resp.json()["order_or_error"]["error"]


def test_not_in_submitted_state(client, auth_header, make_order, make_offer, reload):
    order = make_order(state=PENDING)
    offer = make_offer(order)

    error = _error(_accept(client, offer.id, auth_header()))

    assert error["type"] == "validation"
    assert error["code"] == "invalid_state"
    assert reload(order).state == PENDING


def test_not_the_last_offer(client, auth_header, make_order, make_offer, reload):
    order = make_order()
    offer = make_offer(order)
    make_offer(order)  # a newer offer supersedes the first

    error = _error(_accept(client, offer.id, auth_header()))

    assert error["type"] == "validation"
    assert error["code"] == "not_last_offer"
    assert reload(order).state == SUBMITTED


def test_user_without_permission_to_this_partner(client, auth_header, make_order, make_offer, reload):
    order = make_order(seller_id="another-partner-id")
    offer = make_offer(order)

    error = _error(_accept(client, offer.id, auth_header()))

    assert error["type"] == "validation"
    assert error["code"] == "not_found"
    assert reload(order).state == SUBMITTED


def test_offer_from_seller(client, auth_header, make_order, make_offer, reload):
    order = make_order()
    offer = make_offer(order, from_id=order.seller_id, from_type=GALLERY)

    error = _error(_accept(client, offer.id, auth_header()))

    assert error["type"] == "validation"
    assert error["code"] == "cannot_accept_offer"
    assert reload(order).state == SUBMITTED


def test_offer_does_not_exist(client, auth_header):
    resp = _accept(client, "-1", auth_header())
    assert resp.status_code == 404


def test_with_proper_permission_approves_the_order(client, auth_header, make_order, make_offer, reload):
    order = make_order()
    offer = make_offer(order)
    assert reload(order).state == SUBMITTED

    resp = _accept(client, offer.id, auth_header())

    assert resp.status_code == 200, resp.text
    body = resp.json()["order_or_error"]
    assert body["error"] is None
    assert body["order"]["id"] == order.id
    assert body["order"]["state"] == APPROVED
    assert reload(order).state == APPROVED


def test_requires_authentication(client, make_order, make_offer, reload):
    order = make_order()
    offer = make_offer(order)

    resp = client.post(f"/api/offers/{offer.id}/seller_accept")

    assert resp.status_code == 401
    assert reload(order).state == SUBMITTED


def test_buyer_accepts_seller_counter_offer(client, auth_header, make_order, make_offer, reload):
    order = make_order()
    counter = make_offer(order, from_id=order.seller_id, from_type=GALLERY)

    resp = client.post(f"/api/offers/{counter.id}/buyer_accept", headers=auth_header(partner_ids=()))

    assert resp.status_code == 200, resp.text
    assert resp.json()["order_or_error"]["order"]["state"] == APPROVED
    assert reload(order).state == APPROVED
