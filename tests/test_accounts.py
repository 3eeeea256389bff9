from app.onekappa.db import session_scope
from app.onekappa.modules.notifications.service import create_notification
from tests.factories import csrf_headers, login, make_product, make_seller, make_user

ADDRESS = {"street": "1 Main St", "city": "Louisville", "state": "ky", "zip": "40202"}


def _login(flask_app, client, email="buyer@example.com"):
    with session_scope(flask_app) as s:
        make_user(s, email)
    return login(client, email)


def test_first_address_becomes_default(client, flask_app):
    token = _login(flask_app, client)

    r = client.post("/api/addresses", json=ADDRESS, headers=csrf_headers(token))
    assert r.status_code == 201
    assert r.json["is_default"] is True
    assert r.json["state"] == "KY"
    assert r.json["country"] == "US"

    r = client.post("/api/addresses", json={**ADDRESS, "street": "2 Oak Ave"}, headers=csrf_headers(token))
    assert r.json["is_default"] is False


def test_only_one_default_address(client, flask_app):
    token = _login(flask_app, client)
    first = client.post("/api/addresses", json=ADDRESS, headers=csrf_headers(token)).json
    second = client.post("/api/addresses", json={**ADDRESS, "is_default": True}, headers=csrf_headers(token)).json
    assert second["is_default"] is True

    rows = client.get("/api/addresses").json
    assert [a["id"] for a in rows if a["is_default"]] == [second["id"]]

    client.post(f"/api/addresses/{first['id']}/set-default", headers=csrf_headers(token))
    assert client.get("/api/addresses/default").json["id"] == first["id"]


def test_deleting_default_promotes_newest(client, flask_app):
    token = _login(flask_app, client)
    first = client.post("/api/addresses", json=ADDRESS, headers=csrf_headers(token)).json
    client.post("/api/addresses", json={**ADDRESS, "street": "2 Oak Ave"}, headers=csrf_headers(token))
    third = client.post("/api/addresses", json={**ADDRESS, "street": "3 Elm Rd"}, headers=csrf_headers(token)).json

    r = client.delete(f"/api/addresses/{first['id']}", headers=csrf_headers(token))
    assert r.status_code == 200
    assert client.get("/api/addresses/default").json["id"] == third["id"]


def test_address_validation_and_ownership(client, flask_app):
    token = _login(flask_app, client)
    r = client.post("/api/addresses", json={"street": "1 Main St", "state": "Kentucky"}, headers=csrf_headers(token))
    assert r.status_code == 400
    assert "City is required." in r.json["details"]
    assert "State must be a 2-letter code." in r.json["details"]

    mine = client.post("/api/addresses", json=ADDRESS, headers=csrf_headers(token)).json
    client.post("/auth/logout")
    token = _login(flask_app, client, email="other@example.com")
    assert client.get(f"/api/addresses/{mine['id']}").status_code == 404
    assert client.get("/api/addresses/default").status_code == 404


def test_notifications_are_private(client, flask_app):
    with session_scope(flask_app) as s:
        create_notification(s, user_email="buyer@example.com", type="ORDER_CONFIRMED", title="Order Confirmed", message="ok")
        create_notification(s, user_email="buyer@example.com", type="ORDER_SHIPPED", title="Shipped", message="ok")
    token = _login(flask_app, client)

    assert client.get("/api/notifications/someone@example.com").status_code == 403
    rows = client.get("/api/notifications/Buyer@Example.com").json
    assert len(rows) == 2
    assert client.get("/api/notifications/buyer@example.com/count").json == {"count": 2}

    r = client.put(f"/api/notifications/{rows[0]['id']}/read", headers=csrf_headers(token))
    assert r.json["is_read"] is True
    assert client.get("/api/notifications/buyer@example.com/count").json == {"count": 1}

    r = client.put("/api/notifications/buyer@example.com/read-all", headers=csrf_headers(token))
    assert r.json == {"updated": 1}

    r = client.delete(f"/api/notifications/{rows[1]['id']}", headers=csrf_headers(token))
    assert r.status_code == 200
    assert len(client.get("/api/notifications/buyer@example.com").json) == 1


def test_favorites(client, flask_app):
    with session_scope(flask_app) as s:
        product_id = make_product(s, make_seller(s, "seller@example.com")).id
    token = _login(flask_app, client)

    r = client.post(f"/api/favorites/{product_id}", headers=csrf_headers(token))
    assert r.status_code == 201
    assert r.json["favorited"] is True
    assert client.get(f"/api/favorites/check/{product_id}").json == {"favorited": True}
    assert [p["id"] for p in client.get("/api/favorites").json] == [product_id]

    r = client.delete(f"/api/favorites/{product_id}", headers=csrf_headers(token))
    assert r.json["favorited"] is False
    assert client.delete(f"/api/favorites/{product_id}", headers=csrf_headers(token)).status_code == 404
    assert client.post("/api/favorites/9999", headers=csrf_headers(token)).status_code == 404


def test_update_me(client, flask_app):
    token = _login(flask_app, client)

    r = client.put(
        "/api/users/me",
        json={"name": "Jordan", "onboarding_status": "ONBOARDING_STARTED", "features": {"dark_mode": True}},
        headers=csrf_headers(token),
    )
    assert r.status_code == 200
    assert r.json["name"] == "Jordan"
    assert r.json["onboarding_status"] == "ONBOARDING_STARTED"
    assert r.json["features"] == {"dark_mode": True}
    assert r.json["is_verified_member"] is False

    r = client.put("/api/users/me", json={"onboarding_status": "DONE"}, headers=csrf_headers(token))
    assert r.status_code == 400
