import pytest

from app.onekappa.db import session_scope
from app.onekappa.models import AuditEvent
from app.onekappa.modules.checkout.models import Order
from app.onekappa.modules.checkout.service import (
    application_fee_cents,
    create_product_checkout,
    validate_product_for_purchase,
)
from app.onekappa.modules.members.service import can_purchase_product
from app.onekappa.modules.notifications.models import Notification
from app.onekappa.modules.payments.stripe_client import StripeError
from tests.factories import make_chapter, make_member, make_product, make_seller, make_user


def _seed_product(flask_app, **product_kwargs):
    seller_kwargs = product_kwargs.pop("seller_kwargs", {})
    with session_scope(flask_app) as s:
        chapter = make_chapter(s)
        seller = make_seller(s, "seller@example.com", chapter=chapter, **seller_kwargs)
        product = make_product(s, seller, **product_kwargs)
        return product.id, chapter.id


def test_can_purchase_product_gating():
    assert can_purchase_product(False, False) is True
    assert can_purchase_product(False, True) is True
    assert can_purchase_product(True, True) is True
    assert can_purchase_product(True, False) is False


def test_application_fee_is_eight_percent_rounded():
    assert application_fee_cents(10000) == 800
    assert application_fee_cents(1999) == 160
    assert application_fee_cents(1) == 0


def test_validation_codes_in_order(flask_app):
    with session_scope(flask_app) as s:
        assert validate_product_for_purchase(s, 999, False).code == "PRODUCT_NOT_FOUND"

        seller = make_seller(s, "pending@example.com", status="PENDING")
        kappa = make_product(s, seller, is_kappa_branded=True)
        assert validate_product_for_purchase(s, kappa.id, False).code == "AUTH_REQUIRED_FOR_KAPPA_BRANDED"
        assert validate_product_for_purchase(s, kappa.id, True).code == "SELLER_NOT_APPROVED"

        inactive = make_product(s, seller, status="INACTIVE")
        assert validate_product_for_purchase(s, inactive.id, True).code == "PRODUCT_NOT_FOUND"

        no_stripe = make_seller(s, "nostripe@example.com", stripe_account_id=None)
        p = make_product(s, no_stripe)
        check = validate_product_for_purchase(s, p.id, False)
        assert check.code == "STRIPE_NOT_CONNECTED"
        assert check.http_status == 400

        ready = make_seller(s, "ready@example.com")
        ok = validate_product_for_purchase(s, make_product(s, ready).id, False)
        assert ok.ok is True
        assert ok.seller.id == ready.id


def test_stripe_not_ready_when_account_cannot_charge(flask_app, fake_stripe):
    fake_stripe.account = {"charges_enabled": False, "capabilities": {}}
    product_id, _ = _seed_product(flask_app)
    with session_scope(flask_app) as s:
        check = validate_product_for_purchase(s, product_id, False, fake_stripe)
        assert check.code == "STRIPE_NOT_READY"


def test_checkout_missing_product_is_404(client, fake_stripe):
    r = client.post("/api/checkout/12345", json={"buyer_email": "buyer@example.com"}, headers=_csrf(client))
    assert r.status_code == 404
    assert r.json["code"] == "PRODUCT_NOT_FOUND"


def test_kappa_branded_requires_verified_member(client, flask_app, fake_stripe):
    product_id, _ = _seed_product(flask_app, is_kappa_branded=True)
    r = client.post(f"/api/checkout/{product_id}", json={"buyer_email": "buyer@example.com"}, headers=_csrf(client))
    assert r.status_code == 403
    assert r.json["error"] == "AUTH_REQUIRED_FOR_KAPPA_BRANDED"
    assert fake_stripe.sessions == []


def test_blocked_purchase_notifies_seller_and_buyer(client, flask_app, fake_stripe):
    product_id, _ = _seed_product(flask_app, seller_kwargs={"stripe_account_id": None})
    r = client.post(f"/api/checkout/{product_id}", json={"buyer_email": "Buyer@Example.com"}, headers=_csrf(client))
    assert r.status_code == 400
    assert r.json["code"] == "STRIPE_NOT_CONNECTED"

    with session_scope(flask_app) as s:
        rows = s.query(Notification).filter(Notification.type == "PURCHASE_BLOCKED").all()
        assert sorted(n.user_email for n in rows) == ["buyer@example.com", "seller@example.com"]


def test_checkout_session_is_destination_charge(client, flask_app, fake_stripe):
    product_id, chapter_id = _seed_product(flask_app, price_cents=12500)
    r = client.post(
        f"/api/checkout/{product_id}",
        json={
            "buyer_email": "buyer@example.com",
            "shipping_cents": 599,
            "shipping_address": {"street": "1 Main St", "city": "Louisville", "state": "ky", "zip": "40202"},
        },
        headers=_csrf(client),
    )
    assert r.status_code == 200
    assert r.json["sessionId"] == "cs_test_1"
    assert r.json["url"].startswith("https://checkout.stripe.test/")

    params = fake_stripe.sessions[0]
    intent = params["payment_intent_data"]
    assert intent["application_fee_amount"] == 1000
    assert intent["transfer_data"] == {"destination": "acct_seller"}
    assert intent["on_behalf_of"] == "acct_seller"
    assert params["metadata"] == {"product_id": str(product_id), "chapter_id": str(chapter_id)}
    assert [li["price_data"]["unit_amount"] for li in params["line_items"]] == [12500, 599]
    assert params["success_url"] == "http://localhost:3000/success?session_id={CHECKOUT_SESSION_ID}"

    with session_scope(flask_app) as s:
        order = s.query(Order).one()
        assert order.status == "PENDING"
        assert order.amount_cents == 12500
        assert order.shipping_cents == 599
        assert order.chapter_id == chapter_id
        assert order.shipping_state == "KY"
        assert s.query(AuditEvent).filter(AuditEvent.action == "order.create").count() == 1

    r = client.get("/api/checkout/session/cs_test_1")
    assert r.status_code == 200
    assert r.json["order"]["status"] == "PENDING"
    assert r.json["product"]["id"] == product_id


def test_checkout_without_stripe_is_503(client, flask_app):
    product_id, _ = _seed_product(flask_app)
    r = client.post(f"/api/checkout/{product_id}", json={"buyer_email": "buyer@example.com"}, headers=_csrf(client))
    assert r.status_code == 503


def test_negative_shipping_rejected(client, flask_app, fake_stripe):
    product_id, _ = _seed_product(flask_app)
    r = client.post(
        f"/api/checkout/{product_id}",
        json={"buyer_email": "buyer@example.com", "shipping_cents": -1},
        headers=_csrf(client),
    )
    assert r.status_code == 400


def test_verified_member_can_buy_kappa_branded(client, flask_app, fake_stripe):
    product_id, _ = _seed_product(flask_app, is_kappa_branded=True)
    with session_scope(flask_app) as s:
        make_user(s, "brother@example.com")
        make_member(s, "brother@example.com", None)

    from tests.factories import csrf_headers, login

    token = login(client, "brother@example.com")
    r = client.post(f"/api/checkout/{product_id}", json={}, headers=csrf_headers(token))
    assert r.status_code == 200
    assert fake_stripe.sessions[0]["customer_email"] == "brother@example.com"


def _csrf(client):
    return {"X-CSRF-Token": client.get("/auth/csrf").json["csrf_token"]}


def test_stripe_failure_leaves_no_order(client, flask_app, fake_stripe):
    product_id, _ = _seed_product(flask_app)
    fake_stripe.session_error = StripeError("Stripe is down", status=503)

    r = client.post(f"/api/checkout/{product_id}", json={"buyer_email": "buyer@example.com"}, headers=_csrf(client))
    assert r.status_code == 500
    assert r.json["error"] == "Failed to create checkout session"
    with session_scope(flask_app) as s:
        assert s.query(Order).count() == 0
        assert s.query(AuditEvent).filter(AuditEvent.action == "order.create").count() == 0


def test_create_product_checkout_rejects_failed_check(flask_app, fake_stripe):
    product_id, _ = _seed_product(flask_app, is_kappa_branded=True)
    with session_scope(flask_app) as s:
        check = validate_product_for_purchase(s, product_id, False)
        assert check.code == "AUTH_REQUIRED_FOR_KAPPA_BRANDED"
        with pytest.raises(ValueError):
            create_product_checkout(
                s,
                check,
                buyer_email="buyer@example.com",
                user=None,
                stripe=fake_stripe,
                frontend_url="http://localhost:3000",
            )
        assert s.query(Order).count() == 0
    assert fake_stripe.sessions == []
