"""
Admin JSON API (/admin/api). Every endpoint is gated by require_permission and
every state change is written to the audit trail by the service it calls.
"""
from datetime import date, datetime, time, timedelta

from flask import Blueprint, current_app, jsonify, request

from app.onekappa.db import db_session
from app.onekappa.models import AuditEvent
from app.onekappa.modules.chapters.models import Chapter
from app.onekappa.modules.chapters.service import serialize_chapter, set_chapter_stripe_account
from app.onekappa.modules.checkout.models import Order
from app.onekappa.modules.checkout.service import serialize_order
from app.onekappa.modules.donations.service import donations_by_chapter, steward_activity, steward_donations_by_chapter
from app.onekappa.modules.events.models import Event
from app.onekappa.modules.events.service import (
    admin_cancel_event,
    admin_update_event,
    serialize_event,
    validate_event_payload,
)
from app.onekappa.modules.members.models import FraternityMember
from app.onekappa.modules.members.service import serialize_member, set_verification
from app.onekappa.modules.payments.stripe_client import stripe_client_from_config
from app.onekappa.modules.platform_settings.service import list_settings, serialize_setting, set_setting
from app.onekappa.modules.products.attributes import (
    create_definition,
    delete_definition,
    serialize_definition,
    update_definition,
    validate_definition_payload,
)
from app.onekappa.modules.products.models import CategoryAttributeDefinition, Product, ProductCategory
from app.onekappa.modules.products.service import (
    admin_delete_product,
    admin_update_product,
    serialize_product,
    validate_product_payload,
)
from app.onekappa.modules.promoters.models import Promoter
from app.onekappa.modules.promoters.service import decide_promoter, serialize_promoter
from app.onekappa.modules.sellers.models import Seller
from app.onekappa.modules.sellers.service import approve_seller, reject_seller, serialize_seller
from app.onekappa.modules.stewards.models import Steward
from app.onekappa.modules.stewards.service import decide_steward, serialize_steward
from app.onekappa.rbac import require_permission
from app.onekappa.storage import StorageError, store_image
from app.onekappa.utils import clean_str, current_user, parse_int, request_payload

bp = Blueprint("admin", __name__)


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def _status_filter() -> str | None:
    return (request.args.get("status") or "").strip().upper() or None


def _reason(payload: dict) -> str | None:
    return clean_str(payload.get("reason")) or clean_str(request.args.get("reason"))


def _reason_required():
    return jsonify({"error": "A reason is required"}), 400


def _not_found(what: str):
    return jsonify({"error": f"{what} not found"}), 404


@bp.get("/me")
@require_permission("admin.view")
def me():
    user = current_user()
    perms = sorted({p.key for r in user.roles for p in r.permissions})
    return jsonify({"id": user.id, "email": user.email, "roles": user.role_keys, "permissions": perms})


@bp.get("/audit")
@require_permission("admin.view")
def audit_list():
    """
    Last 200 audit events with simple filters:
    - action (contains)
    - actor_email (contains)
    - entity_type (exact)
    - date range (YYYY-MM-DD)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor_email = (request.args.get("actor_email") or "").strip()
    entity_type = (request.args.get("entity_type") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")
    if (request.args.get("date_from") or "").strip() and not date_from:
        return jsonify({"error": "date_from must be YYYY-MM-DD"}), 400
    if (request.args.get("date_to") or "").strip() and not date_to:
        return jsonify({"error": "date_to must be YYYY-MM-DD"}), 400

    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        # inclusive end-date (treat as whole day)
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return jsonify(
        [
            {
                "id": e.id,
                "created_at": e.created_at.isoformat(),
                "request_id": e.request_id,
                "actor_user_email": e.actor_user_email,
                "client_ip": e.client_ip,
                "action": e.action,
                "entity_type": e.entity_type,
                "entity_id": e.entity_id,
                "reason": e.reason,
                "metadata_json": e.metadata_json,
            }
            for e in events
        ]
    )


# ---------- Sellers ----------
@bp.get("/sellers")
@require_permission("admin.approvals")
def sellers_list():
    q = db_session().query(Seller)
    status = _status_filter()
    if status:
        q = q.filter(Seller.status == status)
    return jsonify([serialize_seller(x, private=True) for x in q.order_by(Seller.created_at.desc()).all()])


@bp.post("/sellers/<int:seller_id>/approve")
@require_permission("admin.approvals")
def seller_approve(seller_id: int):
    s = db_session()
    seller = s.get(Seller, seller_id)
    if not seller:
        return _not_found("Seller")
    warnings = approve_seller(s, seller, current_user(), stripe_client_from_config(current_app.config))
    s.commit()
    return jsonify({"seller": serialize_seller(seller, private=True), "warnings": warnings})


@bp.post("/sellers/<int:seller_id>/reject")
@require_permission("admin.approvals")
def seller_reject(seller_id: int):
    s = db_session()
    seller = s.get(Seller, seller_id)
    if not seller:
        return _not_found("Seller")
    reject_seller(s, seller, current_user(), _reason(request_payload()))
    s.commit()
    return jsonify({"seller": serialize_seller(seller, private=True)})


# ---------- Promoters ----------
@bp.get("/promoters")
@require_permission("admin.approvals")
def promoters_list():
    q = db_session().query(Promoter)
    status = _status_filter()
    if status:
        q = q.filter(Promoter.status == status)
    return jsonify([serialize_promoter(x, private=True) for x in q.order_by(Promoter.created_at.desc()).all()])


@bp.post("/promoters/<int:promoter_id>/<decision>")
@require_permission("admin.approvals")
def promoter_decide(promoter_id: int, decision: str):
    if decision not in ("approve", "reject"):
        return _not_found("Action")
    s = db_session()
    promoter = s.get(Promoter, promoter_id)
    if not promoter:
        return _not_found("Promoter")
    decide_promoter(s, promoter, decision == "approve", current_user(), _reason(request_payload()))
    s.commit()
    return jsonify({"promoter": serialize_promoter(promoter, private=True)})


# ---------- Stewards ----------
@bp.get("/stewards")
@require_permission("admin.approvals")
def stewards_list():
    q = db_session().query(Steward)
    status = _status_filter()
    if status:
        q = q.filter(Steward.status == status)
    return jsonify([serialize_steward(x) for x in q.order_by(Steward.created_at.desc()).all()])


@bp.get("/stewards/activity")
@require_permission("admin.donations")
def stewards_activity():
    return jsonify(steward_activity(db_session()))


@bp.get("/stewards/donations")
@require_permission("admin.donations")
def stewards_donations():
    s = db_session()
    totals = steward_donations_by_chapter(s)
    chapters = {c.id: c.name for c in s.query(Chapter).filter(Chapter.id.in_(list(totals))).all()} if totals else {}
    rows = [
        {"chapter_id": cid, "chapter_name": chapters.get(cid), "donations_cents": cents}
        for cid, cents in sorted(totals.items(), key=lambda kv: -kv[1])
    ]
    return jsonify(rows)


@bp.post("/stewards/<int:steward_id>/<decision>")
@require_permission("admin.approvals")
def steward_decide(steward_id: int, decision: str):
    if decision not in ("approve", "reject"):
        return _not_found("Action")
    s = db_session()
    steward = s.get(Steward, steward_id)
    if not steward:
        return _not_found("Steward")
    warnings = decide_steward(
        s,
        steward,
        decision == "approve",
        current_user(),
        stripe=stripe_client_from_config(current_app.config),
        reason=_reason(request_payload()),
    )
    s.commit()
    return jsonify({"steward": serialize_steward(steward), "warnings": warnings})


# ---------- Members ----------
@bp.get("/members")
@require_permission("admin.members")
def members_list():
    q = db_session().query(FraternityMember)
    status = _status_filter()
    if status:
        q = q.filter(FraternityMember.verification_status == status)
    rows = q.order_by(FraternityMember.created_at.desc()).all()
    return jsonify([serialize_member(m, private=True) for m in rows])


@bp.put("/members/<int:member_id>/verification")
@require_permission("admin.members")
def member_verification(member_id: int):
    s = db_session()
    member = s.get(FraternityMember, member_id)
    if not member:
        return _not_found("Member")
    payload = request_payload()
    try:
        set_verification(s, member, (clean_str(payload.get("status")) or "").upper(), current_user(), clean_str(payload.get("notes")))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_member(member, private=True))


# ---------- Chapters ----------
@bp.get("/chapters")
@require_permission("admin.chapters")
def chapters_list():
    rows = db_session().query(Chapter).order_by(Chapter.name.asc()).all()
    return jsonify([serialize_chapter(c, private=True) for c in rows])


@bp.put("/chapters/<int:chapter_id>/stripe-account")
@require_permission("admin.chapters")
def chapter_stripe_account(chapter_id: int):
    s = db_session()
    chapter = s.get(Chapter, chapter_id)
    if not chapter:
        return _not_found("Chapter")
    try:
        set_chapter_stripe_account(s, chapter, clean_str(request_payload().get("stripe_account_id")), current_user())
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_chapter(chapter, private=True))


# ---------- Platform settings ----------
@bp.get("/platform-settings")
@require_permission("admin.settings")
def platform_settings_list():
    return jsonify([serialize_setting(r) for r in list_settings(db_session())])


@bp.put("/platform-settings/<key>")
@require_permission("admin.settings")
def platform_setting_update(key: str):
    s = db_session()
    payload = request_payload()
    if "value" not in payload:
        return jsonify({"error": "value is required"}), 400
    value = payload.get("value")
    row = set_setting(
        s,
        key,
        None if value is None else str(value).strip(),
        user=current_user(),
        description=clean_str(payload.get("description")),
    )
    s.commit()
    return jsonify(serialize_setting(row))


# ---------- Products ----------
@bp.get("/products")
@require_permission("admin.moderate")
def products_list():
    q = db_session().query(Product)
    status = _status_filter()
    if status:
        q = q.filter(Product.status == status)
    seller_id = parse_int(request.args.get("seller_id"))
    if seller_id:
        q = q.filter(Product.seller_id == seller_id)
    return jsonify([serialize_product(p) for p in q.order_by(Product.created_at.desc()).all()])


@bp.get("/products/<int:product_id>")
@require_permission("admin.moderate")
def product_detail(product_id: int):
    product = db_session().get(Product, product_id)
    if not product:
        return _not_found("Product")
    return jsonify(serialize_product(product))


@bp.put("/products/<int:product_id>")
@require_permission("admin.moderate")
def product_update(product_id: int):
    s = db_session()
    product = s.get(Product, product_id)
    if not product:
        return _not_found("Product")
    payload = request_payload()
    reason = _reason(payload)
    if not reason:
        return _reason_required()
    errors = validate_product_payload(payload, partial=True)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    try:
        admin_update_product(s, product, payload, current_user(), reason)
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_product(product))


@bp.delete("/products/<int:product_id>")
@require_permission("admin.moderate")
def product_delete(product_id: int):
    s = db_session()
    product = s.get(Product, product_id)
    if not product:
        return _not_found("Product")
    reason = _reason(request_payload())
    if not reason:
        return _reason_required()
    admin_delete_product(s, product, current_user(), reason)
    s.commit()
    return jsonify({"ok": True, "id": product.id, "status": product.status})


# ---------- Category attributes ----------
@bp.post("/categories/<int:category_id>/attributes")
@require_permission("admin.catalog")
def category_attribute_create(category_id: int):
    s = db_session()
    category = s.get(ProductCategory, category_id)
    if not category:
        return _not_found("Category")
    payload = request_payload()
    errors = validate_definition_payload(payload)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    try:
        definition = create_definition(s, category, payload, current_user())
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_definition(definition)), 201


@bp.put("/category-attributes/<int:definition_id>")
@require_permission("admin.catalog")
def category_attribute_update(definition_id: int):
    s = db_session()
    definition = s.get(CategoryAttributeDefinition, definition_id)
    if not definition:
        return _not_found("Attribute")
    payload = request_payload()
    errors = validate_definition_payload(payload, partial=True)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    try:
        update_definition(s, definition, payload, current_user())
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_definition(definition))


@bp.delete("/category-attributes/<int:definition_id>")
@require_permission("admin.catalog")
def category_attribute_delete(definition_id: int):
    s = db_session()
    definition = s.get(CategoryAttributeDefinition, definition_id)
    if not definition:
        return _not_found("Attribute")
    delete_definition(s, definition, current_user())
    s.commit()
    return jsonify({"ok": True, "id": definition_id})


# ---------- Events ----------
@bp.get("/events")
@require_permission("admin.moderate")
def events_list():
    q = db_session().query(Event)
    status = _status_filter()
    if status:
        q = q.filter(Event.status == status)
    return jsonify([serialize_event(e) for e in q.order_by(Event.event_date.desc()).all()])


@bp.get("/events/<int:event_id>")
@require_permission("admin.moderate")
def event_detail(event_id: int):
    event = db_session().get(Event, event_id)
    if not event:
        return _not_found("Event")
    return jsonify(serialize_event(event))


@bp.put("/events/<int:event_id>")
@require_permission("admin.moderate")
def event_update(event_id: int):
    s = db_session()
    event = s.get(Event, event_id)
    if not event:
        return _not_found("Event")
    payload = request_payload()
    reason = _reason(payload)
    if not reason:
        return _reason_required()
    errors = validate_event_payload(payload, partial=True)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    try:
        admin_update_event(s, event, payload, current_user(), reason)
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_event(event))


@bp.delete("/events/<int:event_id>")
@require_permission("admin.moderate")
def event_delete(event_id: int):
    s = db_session()
    event = s.get(Event, event_id)
    if not event:
        return _not_found("Event")
    reason = _reason(request_payload())
    if not reason:
        return _reason_required()
    admin_cancel_event(s, event, current_user(), reason)
    s.commit()
    return jsonify({"ok": True, "id": event.id, "status": event.status})


# ---------- Orders & donations ----------
@bp.get("/orders")
@require_permission("admin.donations")
def orders_list():
    q = db_session().query(Order)
    status = _status_filter()
    if status:
        q = q.filter(Order.status == status)
    return jsonify([serialize_order(o) for o in q.order_by(Order.created_at.desc()).limit(500).all()])


@bp.get("/donations")
@require_permission("admin.donations")
def donations_per_chapter():
    return jsonify(donations_by_chapter(db_session()))


# ---------- Uploads ----------
@bp.post("/upload")
@require_permission("admin.upload")
def upload():
    f = request.files.get("file") or request.files.get("image")
    if not f or not f.filename:
        return jsonify({"error": "No file uploaded"}), 400
    folder = (request.form.get("folder") or "products").strip()
    try:
        key, url = store_image(current_app.config, folder, f.filename, f.read(), f.mimetype)
    except StorageError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"url": url, "key": key}), 201
