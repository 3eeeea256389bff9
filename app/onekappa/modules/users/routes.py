from __future__ import annotations

from datetime import datetime

from flask import Blueprint, jsonify

from app.onekappa.constants import ONBOARDING_STATUSES
from app.onekappa.db import db_session
from app.onekappa.modules.checkout.models import Order
from app.onekappa.modules.checkout.service import serialize_order
from app.onekappa.modules.members.service import member_for_user
from app.onekappa.modules.promoters.service import promoter_for_user
from app.onekappa.modules.sellers.service import seller_for_user
from app.onekappa.modules.stewards.service import steward_for_user
from app.onekappa.rbac import login_required
from app.onekappa.utils import clean_str, current_user, iso, request_payload

bp = Blueprint("users", __name__)


def serialize_me(s, user) -> dict:
    member = member_for_user(s, user)
    seller = seller_for_user(s, user)
    promoter = promoter_for_user(s, user)
    steward = steward_for_user(s, user)
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "roles": sorted(user.role_keys),
        "onboarding_status": user.onboarding_status,
        "features": user.features or {},
        "fraternity_member_id": member.id if member else None,
        "is_verified_member": bool(member and member.verification_status == "VERIFIED"),
        "seller_id": seller.id if seller else None,
        "seller_status": seller.status if seller else None,
        "promoter_id": promoter.id if promoter else None,
        "promoter_status": promoter.status if promoter else None,
        "steward_id": steward.id if steward else None,
        "steward_status": steward.status if steward else None,
        "last_login": iso(user.last_login),
        "created_at": iso(user.created_at),
    }


@bp.get("/me")
@login_required
def me():
    return jsonify(serialize_me(db_session(), current_user()))


@bp.put("/me")
@login_required
def me_update():
    s = db_session()
    user = current_user()
    payload = request_payload()

    if "onboarding_status" in payload:
        status = clean_str(payload.get("onboarding_status"))
        if status not in ONBOARDING_STATUSES:
            return jsonify({"error": f"Invalid onboarding_status. Must be one of: {', '.join(ONBOARDING_STATUSES)}"}), 400
        user.onboarding_status = status
    if "features" in payload:
        if not isinstance(payload.get("features"), dict):
            return jsonify({"error": "features must be an object"}), 400
        user.features = {**(user.features or {}), **payload["features"]}
    if clean_str(payload.get("name")):
        user.name = clean_str(payload.get("name"))
    user.updated_at = datetime.utcnow()
    s.commit()
    return jsonify(serialize_me(s, user))


@bp.get("/me/orders")
@login_required
def me_orders():
    user = current_user()
    orders = (
        db_session()
        .query(Order)
        .filter((Order.user_id == user.id) | (Order.buyer_email == user.email.lower()))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return jsonify([serialize_order(o) for o in orders])
