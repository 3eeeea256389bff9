from __future__ import annotations

from datetime import datetime

from flask import Blueprint, abort, jsonify, request
from sqlalchemy import and_, or_

from app.onekappa.db import db_session
from app.onekappa.modules.chapters.models import Chapter
from app.onekappa.modules.events.models import Event, EventType, SavedEvent
from app.onekappa.modules.events.recurrence import expand_events
from app.onekappa.modules.events.service import (
    close_event,
    create_event,
    is_event_saved,
    save_event,
    serialize_event,
    serialize_event_type,
    serialize_occurrence,
    unsave_event,
    upcoming_dates,
    update_event,
    validate_event_payload,
)
from app.onekappa.modules.promoters.service import promoter_for_user
from app.onekappa.rbac import login_required, require_permission
from app.onekappa.storage import StorageError
from app.onekappa.utils import current_user, parse_bool, parse_int, request_payload, uploaded_image_url

bp = Blueprint("events", __name__)
saved_bp = Blueprint("saved_events", __name__)


def _approved_promoter_or_none():
    promoter = promoter_for_user(db_session(), current_user())
    if not promoter or promoter.status != "APPROVED":
        return None
    return promoter


def _own_event(event_id: int) -> Event:
    event = db_session().get(Event, event_id)
    if not event:
        abort(404)
    promoter = _approved_promoter_or_none()
    if promoter is None or event.promoter_id != promoter.id:
        abort(403)
    return event


# ---------- Browse ----------
@bp.get("")
def events_list():
    """
    Active events, soonest first. Recurring series are expanded into dated
    instances for the next 90 days unless ``expand=0``.
    """
    s = db_session()
    now = datetime.utcnow()
    include_past = parse_bool(request.args.get("include_past"))
    q = s.query(Event).filter(Event.status == "ACTIVE")
    if not include_past:
        q = q.filter(
            or_(
                and_(Event.is_recurring.is_(False), Event.event_date >= now),
                and_(
                    Event.is_recurring.is_(True),
                    or_(Event.recurrence_end_date.is_(None), Event.recurrence_end_date >= now),
                ),
            )
        )
    city = (request.args.get("city") or "").strip()
    if city:
        q = q.filter(Event.city.ilike(city))
    state = (request.args.get("state") or "").strip()
    if state:
        q = q.filter(Event.state.ilike(state))
    event_type_id = parse_int(request.args.get("event_type_id"))
    if event_type_id:
        q = q.filter(Event.event_type_id == event_type_id)
    if parse_bool(request.args.get("featured")):
        q = q.filter(Event.is_featured.is_(True))
    chapter_id = parse_int(request.args.get("chapter_id"))
    if chapter_id:
        q = q.filter(
            or_(Event.sponsored_chapter_id == chapter_id, Event.affiliated_chapters.any(Chapter.id == chapter_id))
        )
    events = q.order_by(Event.event_date.asc(), Event.id.asc()).all()
    if not parse_bool(request.args.get("expand"), default=True):
        return jsonify([serialize_event(e) for e in events])
    occurrences = expand_events(events, start=None if include_past else now)
    return jsonify([serialize_occurrence(o) for o in occurrences])


@bp.get("/types")
def event_types():
    types = (
        db_session()
        .query(EventType)
        .filter(EventType.is_active.is_(True))
        .order_by(EventType.display_order.asc(), EventType.key.asc())
        .all()
    )
    return jsonify([serialize_event_type(t) for t in types])


@bp.get("/mine")
@require_permission("events.manage")
def events_mine():
    promoter = _approved_promoter_or_none()
    if promoter is None:
        return jsonify({"error": "Promoter not approved"}), 403
    events = (
        db_session().query(Event).filter(Event.promoter_id == promoter.id).order_by(Event.event_date.desc()).all()
    )
    return jsonify([serialize_event(e) for e in events])


@bp.get("/<int:event_id>")
def event_detail(event_id: int):
    event = db_session().get(Event, event_id)
    if not event:
        return jsonify({"error": "Event not found"}), 404
    return jsonify({**serialize_event(event), "upcoming_dates": upcoming_dates(event)})


# ---------- Promoter management ----------
@bp.post("")
@require_permission("events.manage")
def event_create():
    s = db_session()
    promoter = _approved_promoter_or_none()
    if promoter is None:
        return jsonify({"error": "Only approved promoters can create events"}), 403

    payload = request_payload()
    errors = validate_event_payload(payload)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    try:
        image_url = uploaded_image_url("image", "events")
        event = create_event(s, promoter, payload, current_user(), image_url=image_url)
    except (ValueError, StorageError) as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_event(event)), 201


@bp.put("/<int:event_id>")
@require_permission("events.manage")
def event_update(event_id: int):
    s = db_session()
    event = _own_event(event_id)
    payload = request_payload()
    errors = validate_event_payload(payload, partial=True)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    try:
        image_url = uploaded_image_url("image", "events")
        if image_url:
            payload["image_url"] = image_url
        update_event(s, event, payload, current_user())
    except (ValueError, StorageError) as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_event(event))


@bp.post("/<int:event_id>/close")
@require_permission("events.manage")
def event_close(event_id: int):
    s = db_session()
    event = _own_event(event_id)
    try:
        close_event(s, event, current_user())
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_event(event))


# ---------- Saved events ----------
@saved_bp.get("")
@login_required
def saved_list():
    rows = (
        db_session()
        .query(SavedEvent)
        .filter(SavedEvent.user_email == current_user().email.lower())
        .order_by(SavedEvent.created_at.desc())
        .all()
    )
    return jsonify([{**serialize_event(r.event), "saved_at": r.created_at.isoformat()} for r in rows])


@saved_bp.get("/check/<int:event_id>")
@login_required
def saved_check(event_id: int):
    return jsonify({"saved": is_event_saved(db_session(), current_user().email, event_id)})


@saved_bp.post("/<int:event_id>")
@login_required
def saved_add(event_id: int):
    s = db_session()
    if not s.get(Event, event_id):
        return jsonify({"error": "Event not found"}), 404
    save_event(s, current_user().email, event_id)
    s.commit()
    return jsonify({"saved": True, "event_id": event_id}), 201


@saved_bp.delete("/<int:event_id>")
@login_required
def saved_remove(event_id: int):
    s = db_session()
    if not unsave_event(s, current_user().email, event_id):
        return jsonify({"error": "Saved event not found"}), 404
    s.commit()
    return jsonify({"saved": False, "event_id": event_id})
