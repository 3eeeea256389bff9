from app.onekappa.db import session_scope
from app.onekappa.modules.checkout.models import Order
from app.onekappa.modules.sellers.models import Seller
from tests.factories import csrf_headers, login, make_chapter, make_product, make_promoter, make_seller, make_user


def _seller(flask_app, **kw):
    with session_scope(flask_app) as s:
        user = make_user(s, "seller@example.com", roles=("seller",))
        return make_seller(s, "seller@example.com", user=user, **kw).id


def test_seller_profile_update_and_slug(client, flask_app):
    seller_id = _seller(flask_app)
    token = login(client, "seller@example.com")

    r = client.put(
        "/api/sellers/me",
        json={"business_name": "Crimson & Cream Co", "business_state": "ky", "slug": "Crimson & Cream Co"},
        headers=csrf_headers(token),
    )
    assert r.status_code == 200
    assert r.json["business_name"] == "Crimson & Cream Co"
    assert r.json["slug"] == "crimson-cream-co"

    with session_scope(flask_app) as s:
        assert s.get(Seller, seller_id).business_state == "KY"
        make_product(s, s.get(Seller, seller_id), name="Pin")

    r = client.get("/api/sellers/slug/crimson-cream-co")
    assert r.status_code == 200
    assert [p["name"] for p in r.json["products"]] == ["Pin"]


def test_public_seller_views_hide_pending(client, flask_app):
    with session_scope(flask_app) as s:
        approved_id = make_seller(s, "a@example.com").id
        pending_id = make_seller(s, "p@example.com", status="PENDING").id

    assert [x["id"] for x in client.get("/api/sellers").json] == [approved_id]
    assert client.get(f"/api/sellers/{pending_id}").status_code == 404


def test_seller_metrics(client, flask_app):
    seller_id = _seller(flask_app)
    with session_scope(flask_app) as s:
        seller = s.get(Seller, seller_id)
        sold = make_product(s, seller, name="Sold", status="SOLD")
        make_product(s, seller, name="Listed")
        s.add(Order(product_id=sold.id, buyer_email="b@example.com", amount_cents=12500, stripe_session_id="cs_paid", status="PAID"))
        s.add(Order(product_id=sold.id, buyer_email="c@example.com", amount_cents=12500, stripe_session_id="cs_open"))
    login(client, "seller@example.com")

    assert client.get("/api/sellers/me/metrics").json == {
        "total_sales_cents": 12500,
        "total_orders": 1,
        "active_products": 1,
        "pending_orders": 1,
    }


def test_stripe_onboarding_creates_account(client, flask_app, fake_stripe):
    _seller(flask_app, stripe_account_id=None)
    token = login(client, "seller@example.com")

    r = client.post("/api/sellers/me/stripe-onboarding", headers=csrf_headers(token))
    assert r.status_code == 200
    assert r.json == {"url": "https://connect.stripe.test/acct_new_1", "stripe_account_id": "acct_new_1"}

    # a second call reuses the account
    r = client.post("/api/sellers/me/stripe-onboarding", headers=csrf_headers(token))
    assert r.json["stripe_account_id"] == "acct_new_1"
    assert fake_stripe.express_accounts == ["seller@example.com"]


def test_stripe_onboarding_requires_approval_and_config(client, flask_app):
    _seller(flask_app, status="PENDING", stripe_account_id=None)
    token = login(client, "seller@example.com")
    assert client.post("/api/sellers/me/stripe-onboarding", headers=csrf_headers(token)).status_code == 403

    with session_scope(flask_app) as s:
        s.query(Seller).update({Seller.status: "APPROVED"})
    # no STRIPE_SECRET_KEY in the test config
    assert client.post("/api/sellers/me/stripe-onboarding", headers=csrf_headers(token)).status_code == 503


def test_promoter_application_and_profile(client, flask_app):
    with session_scope(flask_app) as s:
        make_user(s, "promoter@example.com")
        chapter_id = make_chapter(s).id
    token = login(client, "promoter@example.com")

    assert client.get("/api/promoters/me").status_code == 403

    r = client.post("/api/promoters/apply", json={"name": "Dee Events"}, headers=csrf_headers(token))
    assert r.status_code == 201
    assert r.json["email"] == "promoter@example.com"
    assert r.json["status"] == "PENDING"

    r = client.post("/api/promoters/apply", json={"name": "Dee Events"}, headers=csrf_headers(token))
    assert r.status_code == 400

    r = client.put("/api/promoters/me/sponsoring-chapter", json={"sponsoring_chapter_id": "1"}, headers=csrf_headers(token))
    assert r.status_code == 400
    r = client.put("/api/promoters/me/sponsoring-chapter", json={"sponsoring_chapter_id": 999}, headers=csrf_headers(token))
    assert r.status_code == 404
    r = client.put(
        "/api/promoters/me/sponsoring-chapter", json={"sponsoring_chapter_id": chapter_id}, headers=csrf_headers(token)
    )
    assert r.status_code == 200
    assert r.json["sponsoring_chapter_id"] == chapter_id


def test_promoter_me_for_approved_promoter(client, flask_app):
    with session_scope(flask_app) as s:
        make_promoter(s, make_user(s, "promoter@example.com", roles=("promoter",)))
    login(client, "promoter@example.com")

    assert client.get("/api/promoters/me").json["status"] == "APPROVED"
