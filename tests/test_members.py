from app.onekappa.db import session_scope
from app.onekappa.models import User
from app.onekappa.modules.checkout.models import Order
from app.onekappa.modules.stewards.models import StewardClaim
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
)


def test_member_registration_is_pending(client, flask_app):
    with session_scope(flask_app) as s:
        make_user(s, "brother@example.com")
        chapter_id = make_chapter(s).id
    token = login(client, "brother@example.com")

    r = client.post(
        "/api/members/register",
        json={
            "name": "Jordan Price",
            "membership_number": "KAP-1001",
            "initiated_chapter_id": chapter_id,
            "initiated_year": 2004,
            "profession": "Engineer",
        },
        headers=csrf_headers(token),
    )
    assert r.status_code == 201
    assert r.json["verification_status"] == "PENDING"
    assert r.json["membership_number"] == "KAP-1001"

    with session_scope(flask_app) as s:
        user = s.query(User).filter(User.email == "brother@example.com").one()
        assert user.onboarding_status == "ONBOARDING_FINISHED"
        assert user.name == "Jordan Price"

    r = client.post(
        "/api/members/register",
        json={"name": "Again", "membership_number": "KAP-1002", "initiated_chapter_id": chapter_id},
        headers=csrf_headers(token),
    )
    assert r.status_code == 400

    # unverified members stay out of the directory
    assert client.get("/api/members").json == []


def test_member_registration_validation(client, flask_app):
    with session_scope(flask_app) as s:
        make_user(s, "brother@example.com")
    token = login(client, "brother@example.com")

    r = client.post("/api/members/register", json={"initiated_year": 1800}, headers=csrf_headers(token))
    assert r.status_code == 400
    assert r.json["details"] == [
        "Name is required.",
        "Membership number is required.",
        "Initiated chapter is required.",
        "Initiated year is invalid.",
    ]

    r = client.post(
        "/api/members/register",
        json={"name": "Jordan", "membership_number": "KAP-1", "initiated_chapter_id": 999},
        headers=csrf_headers(token),
    )
    assert r.status_code == 400
    assert r.json["error"] == "Initiated chapter not found"


def test_member_profile_and_directory(client, flask_app):
    with session_scope(flask_app) as s:
        make_user(s, "brother@example.com")
        chapter = make_chapter(s)
        member_id = make_member(s, "brother@example.com", chapter).id
        make_member(s, "pending@example.com", chapter, status="PENDING")
    token = login(client, "brother@example.com")

    r = client.put(
        "/api/members/me",
        json={"profession": "Architect", "social_links": {"linkedin": "https://linkedin.example/jp"}},
        headers=csrf_headers(token),
    )
    assert r.status_code == 200
    assert r.json["profession"] == "Architect"
    assert r.json["social_links"] == {"linkedin": "https://linkedin.example/jp"}

    rows = client.get("/api/members?q=archi").json
    assert [m["id"] for m in rows] == [member_id]
    # the public view leaves out contact details
    assert "email" not in rows[0]
    assert client.get(f"/api/members/{member_id}").status_code == 200


def test_member_me_without_profile(client, flask_app):
    with session_scope(flask_app) as s:
        make_user(s, "guest@example.com")
    login(client, "guest@example.com")

    assert client.get("/api/members/me").status_code == 404


def test_chapters_listing(client, flask_app):
    with session_scope(flask_app) as s:
        make_chapter(s, name="Alpha", stripe_account_id="acct_alpha")
        closed = make_chapter(s, name="Omega")
        closed.is_active = False

    rows = client.get("/api/chapters").json
    assert [c["name"] for c in rows] == ["Alpha"]
    assert rows[0]["has_stripe_account"] is True
    assert "stripe_account_id" not in rows[0]
    assert len(client.get("/api/chapters?include_inactive=1").json) == 2
    assert client.get("/api/chapters/999").status_code == 404


def test_donation_total_counts_paid_orders_and_claims(client, flask_app):
    with session_scope(flask_app) as s:
        chapter = make_chapter(s, stripe_account_id="acct_chapter")
        product = make_product(s, make_seller(s, "seller@example.com", chapter=chapter))
        s.add_all(
            [
                Order(product_id=product.id, buyer_email="a@example.com", amount_cents=10000, stripe_session_id="cs_1", status="PAID", chapter_id=chapter.id),
                Order(product_id=product.id, buyer_email="b@example.com", amount_cents=5000, stripe_session_id="cs_2", status="PENDING", chapter_id=chapter.id),
            ]
        )
        steward_user = make_user(s, "steward@example.com")
        listing = make_listing(s, make_steward(s, steward_user, chapter), chapter, status="CLAIMED")
        claimant = make_member(s, "claimant@example.com", chapter)
        s.add(
            StewardClaim(
                listing_id=listing.id,
                claimant_fraternity_member_id=claimant.id,
                stripe_session_id="cs_claim",
                total_amount_cents=3150,
                shipping_cents=1000,
                platform_fee_cents=150,
                chapter_donation_cents=2000,
                status="PAID",
            )
        )

    # 3% of the paid order plus the steward donation
    assert client.get("/api/donations/total").json == {"total_donations_cents": 300 + 2000}
