from app.onekappa.db import session_scope
from app.onekappa.modules.checkout.models import Order
from app.onekappa.modules.notifications.models import Notification
from app.onekappa.modules.products.models import Product
from app.onekappa.modules.stewards.models import StewardClaim, StewardListing
from tests.conftest import WEBHOOK_SECRET
from tests.factories import (
    csrf_headers,
    login,
    make_chapter,
    make_listing,
    make_member,
    make_product,
    make_seller,
    make_steward,
    make_user,
    post_webhook,
)


def _event(event_type, session):
    return {"id": "evt_test", "type": event_type, "data": {"object": session}}


def _seed_order(flask_app, session_id="cs_order_1"):
    with session_scope(flask_app) as s:
        seller = make_seller(s, "seller@example.com")
        product = make_product(s, seller)
        order = Order(
            product_id=product.id,
            buyer_email="buyer@example.com",
            amount_cents=product.price_cents,
            stripe_session_id=session_id,
            status="PENDING",
        )
        s.add(order)
        s.flush()
        return order.id, product.id


def _seed_claim(flask_app, session_id="cs_claim_1"):
    with session_scope(flask_app) as s:
        chapter = make_chapter(s, stripe_account_id="acct_chapter")
        steward_user = make_user(s, "steward@example.com")
        steward = make_steward(s, steward_user, chapter)
        listing = make_listing(s, steward, chapter, shipping_cents=1000, donation_cents=2000, status="CLAIMED")
        member = make_member(s, "claimant@example.com", chapter)
        claim = StewardClaim(
            listing_id=listing.id,
            claimant_fraternity_member_id=member.id,
            stripe_session_id=session_id,
            total_amount_cents=3150,
            shipping_cents=1000,
            platform_fee_cents=150,
            chapter_donation_cents=2000,
            status="PENDING",
        )
        s.add(claim)
        s.flush()
        return claim.id, listing.id, member.id


def test_missing_signature_is_400(client):
    r = client.post("/api/webhook/stripe", data=b"{}")
    assert r.status_code == 400


def test_bad_signature_is_400(client):
    r = client.post("/api/webhook/stripe", data=b"{}", headers={"Stripe-Signature": "t=1,v1=deadbeef"})
    assert r.status_code == 400


def test_completed_session_marks_order_paid(client, flask_app, fake_stripe):
    order_id, product_id = _seed_order(flask_app)
    r = post_webhook(client, _event("checkout.session.completed", {"id": "cs_order_1"}), WEBHOOK_SECRET)
    assert r.status_code == 200
    assert r.json == {"received": True}

    with session_scope(flask_app) as s:
        assert s.get(Order, order_id).status == "PAID"
        assert s.get(Product, product_id).status == "SOLD"
        confirmations = s.query(Notification).filter(Notification.type == "ORDER_CONFIRMED").all()
        assert [n.user_email for n in confirmations] == ["buyer@example.com"]


def test_redelivered_event_is_idempotent(client, flask_app, fake_stripe):
    _seed_order(flask_app)
    event = _event("checkout.session.completed", {"id": "cs_order_1"})
    post_webhook(client, event, WEBHOOK_SECRET)
    post_webhook(client, event, WEBHOOK_SECRET)

    with session_scope(flask_app) as s:
        assert s.query(Notification).filter(Notification.type == "ORDER_CONFIRMED").count() == 1


def test_expired_session_fails_order(client, flask_app, fake_stripe):
    order_id, product_id = _seed_order(flask_app)
    post_webhook(client, _event("checkout.session.expired", {"id": "cs_order_1"}), WEBHOOK_SECRET)

    with session_scope(flask_app) as s:
        assert s.get(Order, order_id).status == "FAILED"
        assert s.get(Product, product_id).status == "ACTIVE"


def test_completed_claim_transfers_shipping_and_donation(client, flask_app, fake_stripe):
    claim_id, listing_id, member_id = _seed_claim(flask_app)
    session = {
        "id": "cs_claim_1",
        "metadata": {
            "type": "steward_claim",
            "listing_id": str(listing_id),
            "steward_account_id": "acct_steward",
            "chapter_account_id": "acct_chapter",
            "transfer_group": "steward_claim_grp",
        },
    }
    r = post_webhook(client, _event("checkout.session.completed", session), WEBHOOK_SECRET)
    assert r.status_code == 200

    with session_scope(flask_app) as s:
        assert s.get(StewardClaim, claim_id).status == "PAID"
        listing = s.get(StewardListing, listing_id)
        assert listing.status == "CLAIMED"
        assert listing.claimed_by_fraternity_member_id == member_id
        assert listing.claimed_at is not None

    legs = {t["destination"]: t for t in fake_stripe.transfers}
    assert legs["acct_steward"]["amount_cents"] == 1000
    assert legs["acct_chapter"]["amount_cents"] == 2000
    assert legs["acct_steward"]["transfer_group"] == "steward_claim_grp"
    assert legs["acct_steward"]["idempotency_key"] == f"steward-claim-{claim_id}-shipping"
    assert legs["acct_chapter"]["idempotency_key"] == f"steward-claim-{claim_id}-donation"


def test_expired_claim_releases_listing(client, flask_app, fake_stripe):
    claim_id, listing_id, _ = _seed_claim(flask_app)
    post_webhook(client, _event("checkout.session.expired", {"id": "cs_claim_1"}), WEBHOOK_SECRET)

    with session_scope(flask_app) as s:
        assert s.get(StewardClaim, claim_id).status == "FAILED"
        listing = s.get(StewardListing, listing_id)
        assert listing.status == "ACTIVE"
        assert listing.claimed_by_fraternity_member_id is None
    assert fake_stripe.transfers == []


def test_unknown_event_type_is_acknowledged(client, fake_stripe):
    r = post_webhook(client, _event("payment_intent.created", {"id": "pi_1"}), WEBHOOK_SECRET)
    assert r.status_code == 200
    assert r.json == {"received": True}


def test_paid_claim_on_listing_owned_by_another_member_is_flagged(client, flask_app, fake_stripe):
    claim_id, listing_id, member_id = _seed_claim(flask_app)
    with session_scope(flask_app) as s:
        owner = make_member(s, "owner@example.com", None, number="O-1")
        listing = s.get(StewardListing, listing_id)
        listing.claimed_by_fraternity_member_id = owner.id
        owner_id = owner.id

    session = {
        "id": "cs_claim_1",
        "metadata": {"steward_account_id": "acct_steward", "chapter_account_id": "acct_chapter"},
    }
    r = post_webhook(client, _event("checkout.session.completed", session), WEBHOOK_SECRET)
    assert r.status_code == 200

    with session_scope(flask_app) as s:
        assert s.get(StewardClaim, claim_id).status == "REFUND_REQUIRED"
        assert s.get(StewardListing, listing_id).claimed_by_fraternity_member_id == owner_id
    assert fake_stripe.transfers == []


def test_two_claimants_cannot_both_pay(client, flask_app, fake_stripe):
    with session_scope(flask_app) as s:
        chapter = make_chapter(s, stripe_account_id="acct_chapter")
        steward = make_steward(s, make_user(s, "steward@example.com"), chapter)
        listing_id = make_listing(s, steward, chapter).id
        for email in ("first@example.com", "second@example.com"):
            make_user(s, email)
            make_member(s, email, chapter)

    first, second = flask_app.test_client(), flask_app.test_client()
    r1 = first.post(f"/api/steward-checkout/{listing_id}", headers=csrf_headers(login(first, "first@example.com")))
    r2 = second.post(f"/api/steward-checkout/{listing_id}", headers=csrf_headers(login(second, "second@example.com")))
    assert (r1.status_code, r2.status_code) == (200, 409)

    post_webhook(client, _event("checkout.session.completed", {"id": r1.json["sessionId"]}), WEBHOOK_SECRET)
    with session_scope(flask_app) as s:
        assert [c.status for c in s.query(StewardClaim).all()] == ["PAID"]
