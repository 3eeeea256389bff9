from __future__ import annotations

from flask import Blueprint, jsonify

from app.onekappa.db import db_session
from app.onekappa.mailer import send_application_received_email
from app.onekappa.modules.promoters.service import (
    promoter_for_user,
    serialize_promoter,
    set_sponsoring_chapter,
    submit_promoter_application,
    validate_promoter_application,
)
from app.onekappa.rbac import login_required
from app.onekappa.storage import StorageError
from app.onekappa.utils import current_user, optional_user, request_payload, uploaded_image_url

bp = Blueprint("promoters", __name__)


@bp.post("/apply")
def apply():
    s = db_session()
    payload = request_payload()
    user = optional_user()
    if user and not payload.get("email"):
        payload["email"] = user.email

    errors = validate_promoter_application(payload)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    try:
        headshot_url = uploaded_image_url("headshot", "headshots")
        promoter = submit_promoter_application(s, payload, user, headshot_url=headshot_url)
    except (ValueError, StorageError) as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    send_application_received_email("promoter", promoter.email, promoter.name)
    return jsonify(serialize_promoter(promoter, private=True)), 201


@bp.get("/me")
@login_required
def me():
    promoter = promoter_for_user(db_session(), current_user())
    if not promoter:
        return jsonify({"error": "Not a promoter"}), 403
    return jsonify(serialize_promoter(promoter, private=True))


@bp.put("/me/sponsoring-chapter")
@login_required
def me_sponsoring_chapter():
    s = db_session()
    promoter = promoter_for_user(s, current_user())
    if not promoter:
        return jsonify({"error": "Not a promoter"}), 403

    chapter_id = request_payload().get("sponsoring_chapter_id")
    if not isinstance(chapter_id, int) or isinstance(chapter_id, bool):
        return jsonify({"error": "Valid sponsoring_chapter_id is required"}), 400
    try:
        set_sponsoring_chapter(s, promoter, chapter_id, current_user())
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    s.commit()
    return jsonify(serialize_promoter(promoter, private=True))
