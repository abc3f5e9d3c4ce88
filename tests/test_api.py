"""End-to-end flows through the HTTP surface."""
from chaintrack.models import Log


def _auth(client, email, password="secret-pass"):
    resp = client.post("/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def test_register_login_and_me(client):
    resp = client.post("/register", json={
        "email": "New.User@Example.com", "password": "pw-123456", "name": "New", "role": "seller",
    })
    assert resp.status_code == 200
    assert resp.json()["email"] == "new.user@example.com"

    again = client.post("/register", json={
        "email": "new.user@example.com", "password": "x", "name": "Dup", "role": "buyer",
    })
    assert again.status_code == 400

    assert client.post("/login", json={"email": "new.user@example.com", "password": "wrong"}).status_code == 401

    me = client.get("/me", headers=_auth(client, "new.user@example.com", "pw-123456"))
    assert me.json()["role"] == "seller"


def test_unknown_role_is_rejected(client):
    resp = client.post("/register", json={
        "email": "x@example.com", "password": "pw", "name": "X", "role": "admin",
    })
    assert resp.status_code == 422


def test_requests_need_a_token(client):
    assert client.get("/orders").status_code in (401, 403)


def test_error_shape(client, manufacturer, buyer):
    resp = client.post("/products", json={"name": "Kettle"}, headers=_auth(client, buyer.email))
    assert resp.status_code == 403
    body = resp.json()
    assert body["error"] == "AuthorizationError"
    assert "detail" in body and "context" in body

    missing = client.get("/products/999", headers=_auth(client, buyer.email))
    assert missing.status_code == 404
    assert missing.json()["context"] == {"entity": "product", "id": 999}


def test_bulk_order_flow(client, manufacturer, seller, buyer):
    maker_h = _auth(client, manufacturer.email)
    seller_h = _auth(client, seller.email)
    buyer_h = _auth(client, buyer.email)

    product = client.post("/products", json={"name": "Rope 20m"}, headers=maker_h).json()
    assert product["is_serialized"] is False
    client.post("/stock/produce", json={"product_id": product["id"], "quantity": 5}, headers=maker_h)
    client.post("/stock/dispatch", json={"product_id": product["id"], "seller_id": seller.id, "quantity": 5},
                headers=maker_h)

    resp = client.post("/orders", json={"product_id": product["id"], "seller_id": seller.id, "quantity": 7},
                       headers=buyer_h)
    assert resp.status_code == 409
    assert resp.json()["error"] == "InsufficientStockError"

    order = client.post("/orders", json={"product_id": product["id"], "seller_id": seller.id, "quantity": 2},
                        headers=buyer_h)
    assert order.status_code == 201
    order_id = order.json()["id"]
    assert order.json()["status"] == "Awaiting Confirmation"

    # Delivery before confirmation is a precondition failure
    early = client.post(f"/orders/{order_id}/deliver", headers=buyer_h)
    assert early.status_code == 409
    assert early.json()["context"]["actual"] == "Awaiting Confirmation"

    assert client.post(f"/orders/{order_id}/confirm", headers=seller_h).json()["status"] == "Confirmed"
    assert client.post(f"/orders/{order_id}/deliver", headers=buyer_h).json()["status"] == "Delivered"
    assert client.post(f"/orders/{order_id}/return", headers=buyer_h).json()["status"] == "Return Requested"
    resolved = client.post(f"/orders/{order_id}/return/resolve", json={"accept": True}, headers=seller_h)
    assert resolved.json()["status"] == "Returned"

    totals = client.get(f"/stock/{product['id']}/totals", headers=maker_h).json()
    assert totals["on_hand"] == 5
    assert totals["sold"] == 0


def test_cancel_removes_order(client, manufacturer, seller, buyer):
    maker_h = _auth(client, manufacturer.email)
    buyer_h = _auth(client, buyer.email)
    product = client.post("/products", json={"name": "Nails"}, headers=maker_h).json()
    client.post("/stock/produce", json={"product_id": product["id"], "quantity": 3}, headers=maker_h)
    client.post("/stock/dispatch", json={"product_id": product["id"], "seller_id": seller.id, "quantity": 3},
                headers=maker_h)

    order_id = client.post("/orders", json={"product_id": product["id"], "seller_id": seller.id, "quantity": 3},
                           headers=buyer_h).json()["id"]
    assert client.delete(f"/orders/{order_id}", headers=buyer_h).status_code == 204
    assert client.get(f"/orders/{order_id}", headers=buyer_h).status_code == 404

    stock = client.get("/stock", params={"product_id": product["id"]}, headers=maker_h).json()
    assert [(row["owner_id"], row["quantity"]) for row in stock] == [(seller.id, 3)]


def test_serialized_flow_and_verification(client, manufacturer, seller, buyer):
    maker_h = _auth(client, manufacturer.email)
    seller_h = _auth(client, seller.email)
    buyer_h = _auth(client, buyer.email)

    product = client.post("/products", json={"name": "Drone", "is_serialized": True}, headers=maker_h).json()
    created = client.post("/units/batch", json={"product_id": product["id"], "serials": ["D-1", "D-2"]},
                          headers=maker_h)
    assert created.status_code == 201
    unit_ids = [u["id"] for u in created.json()]
    # Tokens never leave the server through the unit listing
    assert all("auth_token" not in u and "unique_auth_hash" not in u for u in created.json())

    client.post("/units/dispatch", json={"unit_ids": unit_ids, "seller_id": seller.id}, headers=maker_h)
    qr = client.get(f"/units/{unit_ids[0]}/qr", headers=maker_h).json()
    assert qr["payload"] == "D-1"

    order_id = client.post("/orders", json={"product_id": product["id"], "seller_id": seller.id, "quantity": 1},
                           headers=buyer_h).json()["id"]
    confirmed = client.post(f"/orders/{order_id}/confirm", json={"unit_ids": [unit_ids[0]]}, headers=seller_h)
    assert confirmed.status_code == 200
    assert confirmed.json()["assigned_units"][0]["auth_token"] is None

    seen_by_buyer = client.get(f"/orders/{order_id}", headers=buyer_h).json()
    token = seen_by_buyer["assigned_units"][0]["auth_token"]
    assert token

    ok = client.post("/verify", json={"serial_number": "D-1", "token": token})
    assert ok.json()["valid"] is True
    assert ok.json()["unit"]["product_name"] == "Drone"

    forged = client.post("/verify", json={"serial_number": "D-2", "token": token})
    assert forged.json() == {"valid": False, "unit": None}


def test_cart_checkout(client, manufacturer, seller, buyer):
    maker_h = _auth(client, manufacturer.email)
    buyer_h = _auth(client, buyer.email)
    product = client.post("/products", json={"name": "Tape"}, headers=maker_h).json()
    client.post("/stock/produce", json={"product_id": product["id"], "quantity": 4}, headers=maker_h)
    client.post("/stock/dispatch", json={"product_id": product["id"], "seller_id": seller.id, "quantity": 4},
                headers=maker_h)

    client.post("/cart/add", json={"product_id": product["id"], "seller_id": seller.id, "qty": 1}, headers=buyer_h)
    cart = client.post("/cart/add", json={"product_id": product["id"], "seller_id": seller.id, "qty": 2},
                       headers=buyer_h).json()
    assert cart["total_items"] == 3

    placed = client.post("/cart/checkout", headers=buyer_h)
    assert placed.status_code == 200
    assert [o["quantity"] for o in placed.json()] == [3]
    assert client.get("/cart", headers=buyer_h).json()["items"] == []
    assert client.post("/cart/checkout", headers=buyer_h).status_code == 422


def test_audit_trail(client, db, manufacturer):
    maker_h = _auth(client, manufacturer.email)
    client.post("/products", json={"name": "Bolt"}, headers=maker_h)
    client.post("/verify", json={"serial_number": "nope", "token": "00"})

    logs = client.get("/logs", headers=maker_h).json()
    assert [row["action"] for row in logs["items"]][:2] == ["PRODUCT_CREATE", "LOGIN"]
    assert db.query(Log).filter(Log.action == "VERIFY", Log.status == "FAIL").count() == 1
