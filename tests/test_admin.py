from datetime import datetime, timedelta

from app.onekappa.db import session_scope
from app.onekappa.models import AuditEvent, User
from app.onekappa.modules.events.models import Event
from app.onekappa.modules.members.models import FraternityMember
from app.onekappa.modules.notifications.models import Notification
from app.onekappa.modules.products.models import Product
from app.onekappa.modules.sellers.models import Seller
from app.onekappa.modules.stewards.models import Steward
from tests.factories import (
    csrf_headers,
    login,
    make_chapter,
    make_member,
    make_product,
    make_promoter,
    make_seller,
    make_steward,
    make_user,
)


def _admin(flask_app, client):
    with session_scope(flask_app) as s:
        make_user(s, "admin@example.com", roles=("admin",))
    return login(client, "admin@example.com")


def test_seller_application_then_approval(client, flask_app, fake_stripe):
    with session_scope(flask_app) as s:
        chapter_id = make_chapter(s).id

    anon_token = client.get("/auth/csrf").json["csrf_token"]
    r = client.post(
        "/api/sellers/apply",
        json={"name": "Marcus Hill", "email": "marcus@example.com", "sponsoring_chapter_id": chapter_id, "business_name": "Crimson Goods"},
        headers=csrf_headers(anon_token),
    )
    assert r.status_code == 201
    seller_id = r.json["id"]
    assert r.json["status"] == "PENDING"

    r = client.post(
        "/api/sellers/apply",
        json={"name": "Marcus Hill", "email": "marcus@example.com", "sponsoring_chapter_id": chapter_id},
        headers=csrf_headers(anon_token),
    )
    assert r.status_code == 400

    token = _admin(flask_app, client)
    r = client.post(f"/admin/api/sellers/{seller_id}/approve", headers=csrf_headers(token))
    assert r.status_code == 200
    assert r.json["seller"]["status"] == "APPROVED"
    assert fake_stripe.express_accounts == ["marcus@example.com"]

    with session_scope(flask_app) as s:
        seller = s.get(Seller, seller_id)
        assert seller.stripe_account_id == "acct_new_1"
        # no login yet for this email, so an invitation is issued
        assert seller.invitation_token
        invitation = seller.invitation_token
        assert s.query(AuditEvent).filter(AuditEvent.action == "seller.approve").count() == 1

    client.post("/auth/logout")
    r = client.post(
        "/auth/register",
        json={"email": "marcus@example.com", "password": "longenough", "invitation_token": invitation},
    )
    assert r.status_code == 201
    assert r.json["seller_id"] == seller_id

    with session_scope(flask_app) as s:
        user = s.query(User).filter(User.email == "marcus@example.com").one()
        assert "seller" in user.role_keys


def test_approval_notifies_blocked_buyers(client, flask_app, fake_stripe):
    with session_scope(flask_app) as s:
        seller = make_seller(s, "seller@example.com", status="PENDING", stripe_account_id=None)
        product = make_product(s, seller)
        s.add(
            Notification(
                user_email="buyer@example.com",
                type="PURCHASE_BLOCKED",
                title="Purchase Unavailable",
                message="blocked",
                related_product_id=product.id,
            )
        )
        seller_id, product_id = seller.id, product.id
    token = _admin(flask_app, client)

    client.post(f"/admin/api/sellers/{seller_id}/approve", headers=csrf_headers(token))

    with session_scope(flask_app) as s:
        available = s.query(Notification).filter(Notification.type == "ITEM_AVAILABLE").all()
        assert [(n.user_email, n.related_product_id) for n in available] == [("buyer@example.com", product_id)]


def test_reject_seller(client, flask_app):
    with session_scope(flask_app) as s:
        seller_id = make_seller(s, "seller@example.com", status="PENDING").id
    token = _admin(flask_app, client)

    r = client.post(f"/admin/api/sellers/{seller_id}/reject", json={"reason": "Incomplete"}, headers=csrf_headers(token))
    assert r.status_code == 200
    assert r.json["seller"]["status"] == "REJECTED"


def test_member_verification_grants_member_role(client, flask_app):
    with session_scope(flask_app) as s:
        make_user(s, "brother@example.com")
        member_id = make_member(s, "brother@example.com", make_chapter(s), status="PENDING").id
    token = _admin(flask_app, client)

    r = client.put(
        f"/admin/api/members/{member_id}/verification",
        json={"status": "verified", "notes": "Roster match"},
        headers=csrf_headers(token),
    )
    assert r.status_code == 200
    assert r.json["verification_status"] == "VERIFIED"

    with session_scope(flask_app) as s:
        assert s.get(FraternityMember, member_id).verification_date is not None
        user = s.query(User).filter(User.email == "brother@example.com").one()
        assert "member" in user.role_keys

    r = client.put(f"/admin/api/members/{member_id}/verification", json={"status": "BOGUS"}, headers=csrf_headers(token))
    assert r.status_code == 400


def test_product_moderation_requires_reason(client, flask_app):
    with session_scope(flask_app) as s:
        seller = make_seller(s, "seller@example.com")
        product_id = make_product(s, seller).id
    token = _admin(flask_app, client)

    r = client.delete(f"/admin/api/products/{product_id}", headers=csrf_headers(token))
    assert r.status_code == 400

    r = client.delete(f"/admin/api/products/{product_id}?reason=Counterfeit", headers=csrf_headers(token))
    assert r.status_code == 200
    assert r.json["status"] == "ADMIN_DELETE"

    with session_scope(flask_app) as s:
        assert s.get(Product, product_id).status == "ADMIN_DELETE"
        ev = s.query(AuditEvent).filter(AuditEvent.entity_type == "Product", AuditEvent.reason == "Counterfeit").one()
        assert ev.actor_user_email == "admin@example.com"
        assert s.query(Notification).filter(Notification.user_email == "seller@example.com").count() == 1


def test_event_cancel_notifies_promoter(client, flask_app):
    with session_scope(flask_app) as s:
        promoter_user = make_user(s, "promoter@example.com", roles=("promoter",))
        promoter = make_promoter(s, promoter_user)
        event = Event(promoter_id=promoter.id, title="Founders Gala", event_date=datetime.utcnow() + timedelta(days=10))
        s.add(event)
        s.flush()
        event_id = event.id
    token = _admin(flask_app, client)

    r = client.delete(f"/admin/api/events/{event_id}", json={"reason": "Venue closed"}, headers=csrf_headers(token))
    assert r.status_code == 200
    assert r.json["status"] == "CANCELLED"

    with session_scope(flask_app) as s:
        n = s.query(Notification).filter(Notification.user_email == "promoter@example.com").one()
        assert n.type == "ADMIN_ACTION"


def test_platform_setting_update(client, flask_app):
    token = _admin(flask_app, client)

    r = client.get("/admin/api/platform-settings")
    assert {row["key"] for row in r.json} >= {"steward_platform_fee_percentage", "steward_platform_fee_flat_cents"}

    r = client.put(
        "/admin/api/platform-settings/steward_platform_fee_percentage",
        json={"value": "0.07"},
        headers=csrf_headers(token),
    )
    assert r.status_code == 200
    assert r.json["value"] == "0.07"

    r = client.put("/admin/api/platform-settings/steward_platform_fee_percentage", json={}, headers=csrf_headers(token))
    assert r.status_code == 400


def test_chapter_stripe_account_must_look_like_account(client, flask_app):
    with session_scope(flask_app) as s:
        chapter_id = make_chapter(s).id
    token = _admin(flask_app, client)

    r = client.put(f"/admin/api/chapters/{chapter_id}/stripe-account", json={"stripe_account_id": "nope"}, headers=csrf_headers(token))
    assert r.status_code == 400
    r = client.put(
        f"/admin/api/chapters/{chapter_id}/stripe-account",
        json={"stripe_account_id": "acct_chapter"},
        headers=csrf_headers(token),
    )
    assert r.status_code == 200
    assert r.json["stripe_account_id"] == "acct_chapter"


def test_promoter_approval_grants_role(client, flask_app):
    with session_scope(flask_app) as s:
        user = make_user(s, "promoter@example.com")
        promoter_id = make_promoter(s, user, status="PENDING").id
    token = _admin(flask_app, client)

    r = client.post(f"/admin/api/promoters/{promoter_id}/approve", headers=csrf_headers(token))
    assert r.status_code == 200
    assert r.json["promoter"]["status"] == "APPROVED"
    with session_scope(flask_app) as s:
        assert "promoter" in s.query(User).filter(User.email == "promoter@example.com").one().role_keys


def test_audit_log_lists_events(client, flask_app):
    token = _admin(flask_app, client)
    client.put("/admin/api/platform-settings/foo", json={"value": "1"}, headers=csrf_headers(token))

    r = client.get("/admin/api/audit")
    assert r.status_code == 200
    assert any(row["action"] == "platform_setting.update" for row in r.json)

    r = client.get("/admin/api/audit?date_from=yesterday")
    assert r.status_code == 400


def test_steward_approval_creates_connect_account(client, flask_app, fake_stripe):
    with session_scope(flask_app) as s:
        user = make_user(s, "steward@example.com")
        steward_id = make_steward(s, user, make_chapter(s), status="PENDING", stripe_account_id=None).id
    token = _admin(flask_app, client)

    r = client.post(f"/admin/api/stewards/{steward_id}/approve", headers=csrf_headers(token))
    assert r.status_code == 200
    assert r.json["steward"]["status"] == "APPROVED"
    with session_scope(flask_app) as s:
        assert s.get(Steward, steward_id).stripe_account_id == "acct_new_1"
        assert "steward" in s.query(User).filter(User.email == "steward@example.com").one().role_keys

    assert client.post(f"/admin/api/stewards/{steward_id}/promote", headers=csrf_headers(token)).status_code == 404


def test_reports_need_donations_permission(client, flask_app):
    with session_scope(flask_app) as s:
        make_user(s, "guest@example.com")
    login(client, "guest@example.com")

    r = client.get("/admin/api/donations")
    assert r.status_code == 403
    assert r.json["missing_permission"] == "admin.donations"

    client.post("/auth/logout")
    _admin(flask_app, client)
    assert client.get("/admin/api/donations").json == []
    assert client.get("/admin/api/stewards/activity").json == []
