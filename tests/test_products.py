import io

from app.onekappa.db import session_scope
from app.onekappa.models import AuditEvent
from app.onekappa.modules.notifications.models import Notification
from app.onekappa.modules.products.models import Product
from app.onekappa.modules.sellers.models import Seller
from tests.factories import PNG, csrf_headers, login, make_chapter, make_member, make_product, make_seller, make_user


def _seller(flask_app, status="APPROVED"):
    with session_scope(flask_app) as s:
        user = make_user(s, "seller@example.com", roles=("seller",))
        return make_seller(s, "seller@example.com", user=user, status=status).id


def test_seller_creates_product(client, flask_app):
    seller_id = _seller(flask_app)
    token = login(client, "seller@example.com")

    r = client.post(
        "/api/products",
        json={"name": "Crimson Cane", "price_cents": 4500, "is_kappa_branded": True},
        headers=csrf_headers(token),
    )
    assert r.status_code == 201
    assert r.json["seller_id"] == seller_id
    assert r.json["status"] == "ACTIVE"
    assert r.json["is_kappa_branded"] is True

    with session_scope(flask_app) as s:
        assert s.query(AuditEvent).filter(AuditEvent.action == "product.create").count() == 1


def test_product_validation(client, flask_app):
    _seller(flask_app)
    token = login(client, "seller@example.com")

    r = client.post("/api/products", json={"name": "", "price_cents": 0}, headers=csrf_headers(token))
    assert r.status_code == 400
    assert r.json["details"] == ["Name is required.", "Price must be a positive whole number of cents."]

    r = client.post("/api/products", json={"name": "Cane", "price_cents": 100, "category_id": 999}, headers=csrf_headers(token))
    assert r.status_code == 400
    assert r.json["error"] == "Category not found"


def test_pending_seller_cannot_list(client, flask_app):
    _seller(flask_app, status="PENDING")
    token = login(client, "seller@example.com")

    r = client.post("/api/products", json={"name": "Cane", "price_cents": 100}, headers=csrf_headers(token))
    assert r.status_code == 403


def test_product_upload_with_image(client, flask_app):
    _seller(flask_app)
    token = login(client, "seller@example.com")

    r = client.post(
        "/api/products",
        data={"name": "Paddle", "price_cents": "9000", "images": (io.BytesIO(PNG), "paddle.png", "image/png")},
        headers=csrf_headers(token),
        content_type="multipart/form-data",
    )
    assert r.status_code == 201
    assert r.json["image_url"]
    assert len(r.json["images"]) == 1


def test_reactivating_product_notifies_blocked_buyers(client, flask_app):
    with session_scope(flask_app) as s:
        user = make_user(s, "seller@example.com", roles=("seller",))
        product = make_product(s, make_seller(s, "seller@example.com", user=user), status="INACTIVE")
        s.add(
            Notification(
                user_email="buyer@example.com",
                type="PURCHASE_BLOCKED",
                title="Purchase Unavailable",
                message="blocked",
                related_product_id=product.id,
            )
        )
        product_id = product.id
    token = login(client, "seller@example.com")

    r = client.put(f"/api/products/{product_id}", json={"price_cents": 11000}, headers=csrf_headers(token))
    assert r.status_code == 200
    with session_scope(flask_app) as s:
        assert s.query(Notification).filter(Notification.type == "ITEM_AVAILABLE").count() == 0

    r = client.put(f"/api/products/{product_id}", json={"status": "ACTIVE"}, headers=csrf_headers(token))
    assert r.status_code == 200
    with session_scope(flask_app) as s:
        rows = s.query(Notification).filter(Notification.type == "ITEM_AVAILABLE").all()
        assert [n.user_email for n in rows] == ["buyer@example.com"]


def _own_product(flask_app, seller_id, **kw):
    with session_scope(flask_app) as s:
        return make_product(s, s.get(Seller, seller_id), **kw).id


def test_seller_cannot_touch_others_or_admin_removed(client, flask_app):
    seller_id = _seller(flask_app)
    removed_id = _own_product(flask_app, seller_id, name="Removed", status="ADMIN_DELETE")
    own_id = _own_product(flask_app, seller_id, name="Mine")
    with session_scope(flask_app) as s:
        other_id = make_product(s, make_seller(s, "other@example.com"), name="Not Mine").id
    token = login(client, "seller@example.com")

    assert client.put(f"/api/products/{other_id}", json={"name": "x"}, headers=csrf_headers(token)).status_code == 403
    assert client.delete(f"/api/products/{other_id}", headers=csrf_headers(token)).status_code == 403

    r = client.put(f"/api/products/{removed_id}", json={"status": "ACTIVE"}, headers=csrf_headers(token))
    assert r.status_code == 400

    # SOLD is only ever set by a completed checkout
    r = client.put(f"/api/products/{own_id}", json={"status": "SOLD"}, headers=csrf_headers(token))
    assert r.status_code == 400
    with session_scope(flask_app) as s:
        assert s.get(Product, own_id).status == "ACTIVE"


def test_seller_deactivates_product(client, flask_app):
    seller_id = _seller(flask_app)
    product_id = _own_product(flask_app, seller_id)
    token = login(client, "seller@example.com")

    r = client.delete(f"/api/products/{product_id}", headers=csrf_headers(token))
    assert r.json["status"] == "INACTIVE"
    assert [p["id"] for p in client.get("/api/products/mine").json] == [product_id]
    assert client.get("/api/products").json == []



def test_public_listing_and_purchase_flag(client, flask_app):
    with session_scope(flask_app) as s:
        seller = make_seller(s, "seller@example.com")
        make_product(s, seller, name="Kappa Tie", is_kappa_branded=True)
        make_product(s, seller, name="Plain Tie")
        make_product(s, make_seller(s, "pending@example.com", status="PENDING"), name="Hidden")
        make_user(s, "brother@example.com")
        make_member(s, "brother@example.com", make_chapter(s))

    rows = client.get("/api/products").json
    assert {p["name"]: p["can_purchase"] for p in rows} == {"Kappa Tie": False, "Plain Tie": True}
    assert [p["name"] for p in client.get("/api/products?q=plain").json] == ["Plain Tie"]
    assert [p["name"] for p in client.get("/api/products?kappa=true").json] == ["Kappa Tie"]

    login(client, "brother@example.com")
    rows = client.get("/api/products").json
    assert all(p["can_purchase"] for p in rows)


def test_hidden_product_detail_is_404(client, flask_app):
    with session_scope(flask_app) as s:
        product_id = make_product(s, make_seller(s, "seller@example.com"), status="INACTIVE").id

    assert client.get(f"/api/products/{product_id}").status_code == 404
