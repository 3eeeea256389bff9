from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.onekappa.db import db_session
from app.onekappa.modules.members.models import FraternityMember
from app.onekappa.modules.members.service import (
    member_for_user,
    register_member,
    serialize_member,
    update_member_profile,
    validate_member_payload,
)
from app.onekappa.rbac import login_required
from app.onekappa.storage import StorageError
from app.onekappa.utils import current_user, parse_int, request_payload, uploaded_image_url

bp = Blueprint("members", __name__)


@bp.post("/register")
@login_required
def register():
    s = db_session()
    u = current_user()
    payload = request_payload()

    errors = validate_member_payload(payload)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400

    try:
        headshot_url = uploaded_image_url("headshot", "headshots")
        member = register_member(s, payload, u, headshot_url=headshot_url)
    except (ValueError, StorageError) as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_member(member, private=True)), 201


@bp.get("/me")
@login_required
def me():
    member = member_for_user(db_session(), current_user())
    if not member:
        return jsonify({"error": "Member profile not found"}), 404
    return jsonify(serialize_member(member, private=True))


@bp.put("/me")
@login_required
def me_update():
    s = db_session()
    u = current_user()
    member = member_for_user(s, u)
    if not member:
        return jsonify({"error": "Member profile not found"}), 404
    payload = request_payload()
    try:
        headshot_url = uploaded_image_url("headshot", "headshots")
    except StorageError as e:
        return jsonify({"error": str(e)}), 400
    if headshot_url:
        payload["headshot_url"] = headshot_url
    update_member_profile(s, member, payload, u)
    s.commit()
    return jsonify(serialize_member(member, private=True))


@bp.get("")
def directory():
    s = db_session()
    q = s.query(FraternityMember).filter(FraternityMember.verification_status == "VERIFIED")

    search = (request.args.get("q") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(
            (FraternityMember.name.ilike(like))
            | (FraternityMember.profession.ilike(like))
            | (FraternityMember.location.ilike(like))
        )
    chapter_id = parse_int(request.args.get("chapter_id"))
    if chapter_id:
        q = q.filter(FraternityMember.initiated_chapter_id == chapter_id)

    members = q.order_by(FraternityMember.name.asc()).all()
    return jsonify([serialize_member(m) for m in members])


@bp.get("/<int:member_id>")
def member_detail(member_id: int):
    m = db_session().get(FraternityMember, member_id)
    if not m or m.verification_status != "VERIFIED":
        abort(404)
    return jsonify(serialize_member(m))
