import io

from app.onekappa.db import session_scope
from app.onekappa.modules.chapters.models import Chapter
from app.onekappa.modules.payments.stripe_client import StripeError
from app.onekappa.modules.platform_settings.service import set_setting
from app.onekappa.modules.stewards.models import StewardClaim, StewardListing
from app.onekappa.modules.stewards.service import calculate_steward_platform_fee
from tests.factories import (
    PNG,
    csrf_headers,
    login,
    make_chapter,
    make_listing,
    make_member,
    make_steward,
    make_user,
)


def test_platform_fee_percentage_setting(flask_app):
    with session_scope(flask_app) as s:
        set_setting(s, "steward_platform_fee_percentage", "0.10")
        assert calculate_steward_platform_fee(s, 1000, 2000) == 300


def test_platform_fee_falls_back_to_flat_cents(flask_app):
    with session_scope(flask_app) as s:
        set_setting(s, "steward_platform_fee_percentage", "")
        set_setting(s, "steward_platform_fee_flat_cents", "250")
        assert calculate_steward_platform_fee(s, 1000, 2000) == 250


def test_platform_fee_ignores_out_of_range_percentage(flask_app):
    with session_scope(flask_app) as s:
        set_setting(s, "steward_platform_fee_percentage", "1.5")
        set_setting(s, "steward_platform_fee_flat_cents", "")
        # default 5%
        assert calculate_steward_platform_fee(s, 1000, 2000) == 150


def test_platform_fee_default_when_unset(flask_app):
    with session_scope(flask_app) as s:
        set_setting(s, "steward_platform_fee_percentage", "not-a-number")
        set_setting(s, "steward_platform_fee_flat_cents", "-5")
        assert calculate_steward_platform_fee(s, 999, 0) == 50


def _seed_marketplace(flask_app, chapter_account="acct_chapter", steward_account="acct_steward"):
    with session_scope(flask_app) as s:
        chapter = make_chapter(s, stripe_account_id=chapter_account)
        steward_user = make_user(s, "steward@example.com", roles=("steward",))
        make_member(s, "steward@example.com", chapter, number="S-1")
        steward = make_steward(s, steward_user, chapter, stripe_account_id=steward_account)
        listing = make_listing(s, steward, chapter, shipping_cents=1000, donation_cents=2000)
        make_user(s, "claimant@example.com")
        make_member(s, "claimant@example.com", chapter, number="C-1")
        return listing.id, chapter.id


def test_claim_checkout_creates_pending_claim(client, flask_app, fake_stripe):
    listing_id, _ = _seed_marketplace(flask_app)
    token = login(client, "claimant@example.com")

    r = client.post(f"/api/steward-checkout/{listing_id}", headers=csrf_headers(token))
    assert r.status_code == 200
    assert r.json["total_amount_cents"] == 3150

    params = fake_stripe.sessions[0]
    names = [li["price_data"]["product_data"]["name"].split(":")[0] for li in params["line_items"]]
    assert names == ["Shipping", "Platform Fee", "Chapter Donation"]
    assert params["metadata"]["transfer_group"] == params["payment_intent_data"]["transfer_group"]
    assert params["success_url"].startswith(f"http://localhost:3000/steward-checkout/{listing_id}/success")
    assert params["cancel_url"] == f"http://localhost:3000/steward-listing/{listing_id}"

    with session_scope(flask_app) as s:
        claim = s.query(StewardClaim).one()
        assert claim.status == "PENDING"
        assert (claim.shipping_cents, claim.platform_fee_cents, claim.chapter_donation_cents) == (1000, 150, 2000)
        listing = s.get(StewardListing, listing_id)
        assert listing.status == "CLAIMED"
        assert listing.claimed_by_fraternity_member_id is None


def test_claim_requires_verified_member(client, flask_app, fake_stripe):
    listing_id, _ = _seed_marketplace(flask_app)
    with session_scope(flask_app) as s:
        make_user(s, "outsider@example.com")
    token = login(client, "outsider@example.com")

    r = client.post(f"/api/steward-checkout/{listing_id}", headers=csrf_headers(token))
    assert r.status_code == 403
    assert r.json["code"] == "NOT_VERIFIED_MEMBER"


def test_claim_refused_without_chapter_stripe(client, flask_app, fake_stripe):
    listing_id, _ = _seed_marketplace(flask_app, chapter_account=None)
    token = login(client, "claimant@example.com")

    r = client.post(f"/api/steward-checkout/{listing_id}", headers=csrf_headers(token))
    assert r.status_code == 400
    assert "Chapter Stripe account" in r.json["error"]
    with session_scope(flask_app) as s:
        assert s.query(StewardClaim).count() == 0
        assert s.get(StewardListing, listing_id).status == "ACTIVE"


def test_paid_listing_cannot_be_claimed_again(client, flask_app, fake_stripe):
    listing_id, _ = _seed_marketplace(flask_app)
    with session_scope(flask_app) as s:
        listing = s.get(StewardListing, listing_id)
        other = make_member(s, "earlier@example.com", None, number="E-1")
        listing.status = "CLAIMED"
        listing.claimed_by_fraternity_member_id = other.id
    token = login(client, "claimant@example.com")

    r = client.post(f"/api/steward-checkout/{listing_id}", headers=csrf_headers(token))
    assert r.status_code == 400


def test_missing_listing_is_404(client, flask_app, fake_stripe):
    _seed_marketplace(flask_app)
    token = login(client, "claimant@example.com")
    r = client.post("/api/steward-checkout/9999", headers=csrf_headers(token))
    assert r.status_code == 404


def test_steward_manages_own_listings(client, flask_app):
    _, chapter_id = _seed_marketplace(flask_app)
    token = login(client, "steward@example.com")

    r = client.post(
        "/api/stewards/listings",
        json={"name": "Cane", "shipping_cost_cents": 800, "chapter_donation_cents": 1200},
        headers=csrf_headers(token),
    )
    assert r.status_code == 201
    new_id = r.json["id"]
    assert r.json["sponsoring_chapter_id"] == chapter_id

    r = client.put(f"/api/stewards/listings/{new_id}", json={"name": "Kappa Cane"}, headers=csrf_headers(token))
    assert r.status_code == 200
    assert r.json["name"] == "Kappa Cane"

    r = client.delete(f"/api/stewards/listings/{new_id}", headers=csrf_headers(token))
    assert r.status_code == 200
    assert client.get(f"/api/stewards/listings/{new_id}").status_code == 404

    mine = client.get("/api/stewards/me/listings").json
    assert {x["id"] for x in mine} >= {new_id}


def test_marketplace_lists_active_listings(client, flask_app):
    listing_id, chapter_id = _seed_marketplace(flask_app)
    r = client.get("/api/stewards/marketplace", query_string={"chapter_id": chapter_id})
    assert r.status_code == 200
    assert [x["id"] for x in r.json] == [listing_id]


def test_verified_member_can_apply_once(client, flask_app):
    with session_scope(flask_app) as s:
        chapter = make_chapter(s)
        make_user(s, "applicant@example.com")
        make_member(s, "applicant@example.com", chapter)
    token = login(client, "applicant@example.com")

    r = client.post("/api/stewards/apply", json={}, headers=csrf_headers(token))
    assert r.status_code == 201
    assert r.json["status"] == "PENDING"

    r = client.post("/api/stewards/apply", json={}, headers=csrf_headers(token))
    assert r.status_code == 400


def test_pending_claim_blocks_second_claimant(client, flask_app, fake_stripe):
    listing_id, chapter_id = _seed_marketplace(flask_app)
    with session_scope(flask_app) as s:
        make_user(s, "latecomer@example.com")
        make_member(s, "latecomer@example.com", s.get(Chapter, chapter_id), number="L-1")

    token = login(client, "claimant@example.com")
    assert client.post(f"/api/steward-checkout/{listing_id}", headers=csrf_headers(token)).status_code == 200

    other = flask_app.test_client()
    token = login(other, "latecomer@example.com")
    r = other.post(f"/api/steward-checkout/{listing_id}", headers=csrf_headers(token))
    assert r.status_code == 409
    assert len(fake_stripe.sessions) == 1

    with session_scope(flask_app) as s:
        assert s.query(StewardClaim).count() == 1


def test_listing_with_pending_claim_cannot_be_removed(client, flask_app, fake_stripe):
    listing_id, _ = _seed_marketplace(flask_app)
    token = login(client, "claimant@example.com")
    assert client.post(f"/api/steward-checkout/{listing_id}", headers=csrf_headers(token)).status_code == 200

    steward = flask_app.test_client()
    token = login(steward, "steward@example.com")
    r = steward.delete(f"/api/stewards/listings/{listing_id}", headers=csrf_headers(token))
    assert r.status_code == 400
    with session_scope(flask_app) as s:
        assert s.get(StewardListing, listing_id).status == "CLAIMED"


def test_stripe_failure_rolls_back_claim(client, flask_app, fake_stripe):
    listing_id, _ = _seed_marketplace(flask_app)
    fake_stripe.session_error = StripeError("card network unavailable", status=502)
    token = login(client, "claimant@example.com")

    r = client.post(f"/api/steward-checkout/{listing_id}", headers=csrf_headers(token))
    assert r.status_code == 500
    assert r.json["error"] == "Failed to create checkout session"

    with session_scope(flask_app) as s:
        assert s.query(StewardClaim).count() == 0
        listing = s.get(StewardListing, listing_id)
        assert listing.status == "ACTIVE"
        assert listing.claimed_by_fraternity_member_id is None

    # listing is claimable again once Stripe recovers
    fake_stripe.session_error = None
    assert client.post(f"/api/steward-checkout/{listing_id}", headers=csrf_headers(token)).status_code == 200


def test_listing_upload_keeps_every_image(client, flask_app):
    _seed_marketplace(flask_app)
    token = login(client, "steward@example.com")

    r = client.post(
        "/api/stewards/listings",
        data={
            "name": "Line Jacket",
            "shipping_cost_cents": "900",
            "chapter_donation_cents": "1500",
            "images": [(io.BytesIO(PNG), "front.png", "image/png"), (io.BytesIO(PNG), "back.png", "image/png")],
        },
        headers=csrf_headers(token),
        content_type="multipart/form-data",
    )
    assert r.status_code == 201
    images = r.json["images"]
    assert [img["display_order"] for img in images] == [0, 1]
    assert r.json["image_url"] == images[0]["image_url"]
    listing_id = r.json["id"]

    r = client.put(
        f"/api/stewards/listings/{listing_id}",
        data={"images": (io.BytesIO(PNG), "tag.png", "image/png")},
        headers=csrf_headers(token),
        content_type="multipart/form-data",
    )
    assert r.status_code == 200
    assert [img["display_order"] for img in r.json["images"]] == [0, 1, 2]
    assert r.json["image_url"] == images[0]["image_url"]

    detail = client.get(f"/api/stewards/listings/{listing_id}").json
    assert len(detail["images"]) == 3


def test_listing_image_url_field_becomes_first_image(client, flask_app):
    _seed_marketplace(flask_app)
    token = login(client, "steward@example.com")

    r = client.post(
        "/api/stewards/listings",
        json={
            "name": "Crest Print",
            "shipping_cost_cents": 500,
            "chapter_donation_cents": 500,
            "image_url": "https://cdn.example.com/crest.png",
        },
        headers=csrf_headers(token),
    )
    assert r.status_code == 201
    assert r.json["images"][0]["image_url"] == "https://cdn.example.com/crest.png"
