from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.onekappa.db import db_session
from app.onekappa.modules.notifications.service import (
    delete_notification,
    list_notifications,
    mark_all_read,
    mark_read,
    serialize_notification,
    unread_count,
)
from app.onekappa.rbac import login_required
from app.onekappa.utils import current_user, parse_int

bp = Blueprint("notifications", __name__)


def _is_own_email(email: str) -> bool:
    return email.strip().lower() == current_user().email.lower()


def _forbidden():
    return jsonify({"error": "You can only access your own notifications"}), 403


@bp.get("/<email>")
@login_required
def notifications_list(email: str):
    if not _is_own_email(email):
        return _forbidden()
    limit = parse_int(request.args.get("limit")) or 50
    limit = max(1, min(limit, 200))
    rows = list_notifications(db_session(), email, limit=limit)
    return jsonify([serialize_notification(n) for n in rows])


@bp.get("/<email>/count")
@login_required
def notifications_count(email: str):
    if not _is_own_email(email):
        return _forbidden()
    return jsonify({"count": unread_count(db_session(), email)})


@bp.put("/<int:notification_id>/read")
@login_required
def notification_read(notification_id: int):
    s = db_session()
    n = mark_read(s, notification_id, current_user().email)
    if not n:
        return jsonify({"error": "Notification not found"}), 404
    s.commit()
    return jsonify(serialize_notification(n))


@bp.put("/<email>/read-all")
@login_required
def notifications_read_all(email: str):
    if not _is_own_email(email):
        return _forbidden()
    s = db_session()
    updated = mark_all_read(s, email)
    s.commit()
    return jsonify({"updated": updated})


@bp.delete("/<int:notification_id>")
@login_required
def notification_delete(notification_id: int):
    s = db_session()
    if not delete_notification(s, notification_id, current_user().email):
        return jsonify({"error": "Notification not found"}), 404
    s.commit()
    return jsonify({"ok": True})
