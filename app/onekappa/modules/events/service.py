from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.onekappa.audit import record_event
from app.onekappa.modules.chapters.models import Chapter
from app.onekappa.modules.events.models import Event, EventType, SavedEvent
from app.onekappa.modules.events.recurrence import EXPANSION_WINDOW, Occurrence, parse_rule, series_dates
from app.onekappa.modules.promoters.models import Promoter
from app.onekappa.utils import clean_str, iso, parse_bool, parse_datetime, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onekappa.models import User

EVENT_STATUSES = ("ACTIVE", "CLOSED", "CANCELLED")

VALID_DRESS_CODES = (
    "business",
    "business_casual",
    "formal",
    "semi_formal",
    "kappa_casual",
    "greek_encouraged",
    "greek_required",
    "outdoor",
    "athletic",
    "comfortable",
    "all_white",
    "black_and_white",
)

TEXT_FIELDS = ("description", "location", "city", "state", "event_link", "dress_code_notes", "image_url")


def validate_event_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors = []
    if not partial or "title" in payload:
        if not clean_str(payload.get("title")):
            errors.append("Title is required.")
    if not partial or "event_date" in payload:
        try:
            if parse_datetime(payload.get("event_date")) is None:
                errors.append("Event date is required.")
        except ValueError:
            errors.append("Event date is invalid.")
    if "ticket_price_cents" in payload and payload.get("ticket_price_cents") not in (None, ""):
        price = parse_int(payload.get("ticket_price_cents"))
        if price is None or price < 0:
            errors.append("Ticket price must be a non-negative whole number of cents.")
    if "duration_minutes" in payload and payload.get("duration_minutes") not in (None, ""):
        duration = parse_int(payload.get("duration_minutes"))
        if duration is None or duration <= 0:
            errors.append("Duration must be a positive number of minutes.")
    for field in ("event_type_id", "sponsored_chapter_id"):
        if payload.get(field) not in (None, "") and parse_int(payload.get(field)) is None:
            errors.append(f"Invalid {field}.")
    dress_codes = payload.get("dress_codes")
    if dress_codes is not None:
        if not isinstance(dress_codes, list) or not dress_codes:
            errors.append("dress_codes must be a non-empty list.")
        else:
            bad = [c for c in dress_codes if c not in VALID_DRESS_CODES]
            if bad:
                errors.append(f"Invalid dress codes: {', '.join(map(str, bad))}")
    status = clean_str(payload.get("status"))
    if status and status not in EVENT_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(EVENT_STATUSES)}")
    if parse_bool(payload.get("is_recurring")) and not partial and not clean_str(payload.get("recurrence_rule")):
        errors.append("Recurrence rule is required for recurring events.")
    rule = clean_str(payload.get("recurrence_rule"))
    if rule:
        try:
            parse_rule(rule, datetime(2000, 1, 1))
        except ValueError:
            errors.append("Recurrence rule is invalid.")
    if payload.get("recurrence_end_date") not in (None, ""):
        try:
            parse_datetime(payload.get("recurrence_end_date"))
        except ValueError:
            errors.append("Recurrence end date is invalid.")
    chapter_ids = payload.get("affiliated_chapter_ids")
    if chapter_ids is not None:
        if not isinstance(chapter_ids, list) or any(parse_int(c) is None for c in chapter_ids):
            errors.append("affiliated_chapter_ids must be a list of chapter ids.")
    return errors


def _check_refs(s: "Session", event_type_id: int | None, chapter_id: int | None) -> None:
    if event_type_id:
        et = s.get(EventType, event_type_id)
        if not et or not et.is_active:
            raise ValueError("Event type not found")
    if chapter_id and not s.get(Chapter, chapter_id):
        raise ValueError("Sponsored chapter not found")


def _set_affiliated_chapters(s: "Session", event: Event, raw_ids: list | None) -> list[int]:
    ids = sorted({parse_int(c) for c in raw_ids or []} - {None})
    chapters = s.query(Chapter).filter(Chapter.id.in_(ids)).order_by(Chapter.name.asc()).all() if ids else []
    if len(chapters) != len(ids):
        raise ValueError("Affiliated chapter not found")
    event.affiliated_chapters = chapters
    return ids


def _check_recurrence(event: Event) -> None:
    if not event.is_recurring:
        return
    if not event.recurrence_rule:
        raise ValueError("Recurrence rule is required for recurring events")
    parse_rule(event.recurrence_rule, event.event_date)
    if event.recurrence_end_date is not None and event.recurrence_end_date < event.event_date:
        raise ValueError("Recurrence end date must not be before the first occurrence")


def create_event(s: "Session", promoter: Promoter, payload: dict, user: "User", image_url: str | None = None) -> Event:
    event_type_id = parse_int(payload.get("event_type_id"))
    chapter_id = parse_int(payload.get("sponsored_chapter_id")) or promoter.sponsoring_chapter_id
    _check_refs(s, event_type_id, chapter_id)
    is_recurring = parse_bool(payload.get("is_recurring"))

    now = datetime.utcnow()
    event = Event(
        promoter_id=promoter.id,
        title=clean_str(payload.get("title")) or "",
        event_date=parse_datetime(payload.get("event_date")),
        sponsored_chapter_id=chapter_id,
        event_type_id=event_type_id,
        all_day=parse_bool(payload.get("all_day")),
        duration_minutes=parse_int(payload.get("duration_minutes")),
        is_featured=False,
        ticket_price_cents=parse_int(payload.get("ticket_price_cents")) or 0,
        dress_codes=payload.get("dress_codes") or ["business_casual"],
        status="ACTIVE",
        is_recurring=is_recurring,
        recurrence_rule=clean_str(payload.get("recurrence_rule")) if is_recurring else None,
        recurrence_end_date=parse_datetime(payload.get("recurrence_end_date")) if is_recurring else None,
        created_at=now,
        updated_at=now,
    )
    for field in TEXT_FIELDS:
        setattr(event, field, clean_str(payload.get(field)))
    if image_url:
        event.image_url = image_url
    _check_recurrence(event)
    affiliated = _set_affiliated_chapters(s, event, payload.get("affiliated_chapter_ids"))
    s.add(event)
    s.flush()
    record_event(
        s,
        actor=user,
        action="event.create",
        entity_type="Event",
        entity_id=str(event.id),
        metadata={
            "promoter_id": promoter.id,
            "title": event.title,
            "event_date": iso(event.event_date),
            "recurrence_rule": event.recurrence_rule,
            "affiliated_chapter_ids": affiliated,
        },
    )
    return event


def _apply_changes(s: "Session", event: Event, payload: dict, *, admin: bool) -> dict:
    changes: dict = {}
    if "title" in payload and clean_str(payload.get("title")):
        event.title = clean_str(payload.get("title"))
        changes["title"] = event.title
    if "event_date" in payload and payload.get("event_date"):
        event.event_date = parse_datetime(payload.get("event_date"))
        changes["event_date"] = iso(event.event_date)
    for field in TEXT_FIELDS:
        if field in payload:
            setattr(event, field, clean_str(payload.get(field)))
            changes[field] = "updated"
    if "event_type_id" in payload or "sponsored_chapter_id" in payload:
        event_type_id = parse_int(payload.get("event_type_id")) if "event_type_id" in payload else event.event_type_id
        chapter_id = (
            parse_int(payload.get("sponsored_chapter_id"))
            if "sponsored_chapter_id" in payload
            else event.sponsored_chapter_id
        )
        _check_refs(s, event_type_id, chapter_id)
        event.event_type_id = event_type_id
        event.sponsored_chapter_id = chapter_id
        changes["refs"] = {"event_type_id": event_type_id, "sponsored_chapter_id": chapter_id}
    if "all_day" in payload:
        event.all_day = parse_bool(payload.get("all_day"))
    if "duration_minutes" in payload:
        event.duration_minutes = parse_int(payload.get("duration_minutes"))
    if "ticket_price_cents" in payload:
        event.ticket_price_cents = parse_int(payload.get("ticket_price_cents")) or 0
        changes["ticket_price_cents"] = event.ticket_price_cents
    if payload.get("dress_codes"):
        event.dress_codes = payload["dress_codes"]
        changes["dress_codes"] = event.dress_codes
    if admin and "is_featured" in payload:
        event.is_featured = parse_bool(payload.get("is_featured"))
        changes["is_featured"] = event.is_featured
    if "is_recurring" in payload:
        event.is_recurring = parse_bool(payload.get("is_recurring"))
        changes["is_recurring"] = event.is_recurring
    if "recurrence_rule" in payload:
        event.recurrence_rule = clean_str(payload.get("recurrence_rule"))
        changes["recurrence_rule"] = event.recurrence_rule
    if "recurrence_end_date" in payload:
        event.recurrence_end_date = parse_datetime(payload.get("recurrence_end_date"))
        changes["recurrence_end_date"] = iso(event.recurrence_end_date)
    if not event.is_recurring:
        event.recurrence_rule = None
        event.recurrence_end_date = None
    _check_recurrence(event)
    if "affiliated_chapter_ids" in payload:
        changes["affiliated_chapter_ids"] = _set_affiliated_chapters(s, event, payload.get("affiliated_chapter_ids"))
    status = clean_str(payload.get("status"))
    if status and status != event.status:
        if not admin:
            raise ValueError("Event status can only be changed by closing the event or by an admin")
        changes["status"] = {"old": event.status, "new": status}
        event.status = status
    event.updated_at = datetime.utcnow()
    return changes


def update_event(s: "Session", event: Event, payload: dict, user: "User") -> Event:
    if event.status == "CANCELLED":
        raise ValueError("Cancelled events cannot be edited")
    changes = _apply_changes(s, event, payload, admin=False)
    record_event(s, actor=user, action="event.edit", entity_type="Event", entity_id=str(event.id), metadata={"changes": changes})
    return event


def close_event(s: "Session", event: Event, user: "User") -> Event:
    if event.status != "ACTIVE":
        raise ValueError("Only active events can be closed")
    event.status = "CLOSED"
    event.updated_at = datetime.utcnow()
    record_event(s, actor=user, action="event.close", entity_type="Event", entity_id=str(event.id))
    return event


def _notify_promoter(s: "Session", event: Event, title: str, message: str) -> None:
    from app.onekappa.modules.notifications.service import create_notification

    promoter = s.get(Promoter, event.promoter_id)
    if promoter:
        create_notification(s, user_email=promoter.email, type="ADMIN_ACTION", title=title, message=message)


def admin_update_event(s: "Session", event: Event, payload: dict, user: "User", reason: str) -> Event:
    changes = _apply_changes(s, event, payload, admin=True)
    _notify_promoter(s, event, "Your event was updated by an admin", f'An admin updated "{event.title}". Reason: {reason}')
    record_event(
        s,
        actor=user,
        action="admin.event.edit",
        entity_type="Event",
        entity_id=str(event.id),
        reason=reason,
        metadata={"changes": changes},
    )
    return event


def admin_cancel_event(s: "Session", event: Event, user: "User", reason: str) -> Event:
    old_status = event.status
    event.status = "CANCELLED"
    event.updated_at = datetime.utcnow()
    _notify_promoter(s, event, "Your event was cancelled by an admin", f'An admin cancelled "{event.title}". Reason: {reason}')
    record_event(
        s,
        actor=user,
        action="admin.event.delete",
        entity_type="Event",
        entity_id=str(event.id),
        reason=reason,
        metadata={"old": old_status},
    )
    return event


# ---- Saved events ----

def save_event(s: "Session", user_email: str, event_id: int) -> SavedEvent:
    email = user_email.lower()
    existing = (
        s.query(SavedEvent).filter(SavedEvent.user_email == email).filter(SavedEvent.event_id == event_id).one_or_none()
    )
    if existing:
        return existing
    saved = SavedEvent(user_email=email, event_id=event_id)
    s.add(saved)
    s.flush()
    return saved


def unsave_event(s: "Session", user_email: str, event_id: int) -> bool:
    saved = (
        s.query(SavedEvent)
        .filter(SavedEvent.user_email == user_email.lower())
        .filter(SavedEvent.event_id == event_id)
        .one_or_none()
    )
    if not saved:
        return False
    s.delete(saved)
    return True


def is_event_saved(s: "Session", user_email: str, event_id: int) -> bool:
    return (
        s.query(SavedEvent.id)
        .filter(SavedEvent.user_email == user_email.lower())
        .filter(SavedEvent.event_id == event_id)
        .first()
        is not None
    )


def serialize_event_type(et: EventType) -> dict:
    return {"id": et.id, "key": et.key, "description": et.description, "display_order": et.display_order}


def serialize_event(e: Event) -> dict:
    return {
        "id": e.id,
        "promoter_id": e.promoter_id,
        "title": e.title,
        "description": e.description,
        "event_date": iso(e.event_date),
        "location": e.location,
        "city": e.city,
        "state": e.state,
        "image_url": e.image_url,
        "sponsored_chapter_id": e.sponsored_chapter_id,
        "event_type_id": e.event_type_id,
        "event_type": serialize_event_type(e.event_type) if e.event_type else None,
        "all_day": e.all_day,
        "duration_minutes": e.duration_minutes,
        "event_link": e.event_link,
        "is_featured": e.is_featured,
        "ticket_price_cents": e.ticket_price_cents,
        "dress_codes": e.dress_codes or [],
        "dress_code_notes": e.dress_code_notes,
        "status": e.status,
        "is_recurring": bool(e.is_recurring),
        "recurrence_rule": e.recurrence_rule,
        "recurrence_end_date": iso(e.recurrence_end_date),
        "affiliated_chapters": [{"id": c.id, "name": c.name} for c in e.affiliated_chapters],
        "created_at": iso(e.created_at),
        "updated_at": iso(e.updated_at),
    }


def serialize_occurrence(o: Occurrence) -> dict:
    data = serialize_event(o.event)
    if o.is_instance:
        data.update(event_date=iso(o.starts_at), is_instance=True, original_event_id=o.event.id)
    return data


def upcoming_dates(e: Event, limit: int = 10) -> list[str]:
    """Next few occurrence dates of a recurring series within the listing window."""
    if not e.is_recurring or not e.recurrence_rule:
        return []
    now = datetime.utcnow()
    try:
        dates = series_dates(e, now, now + EXPANSION_WINDOW)
    except ValueError:
        return []
    return [iso(d) for d in dates[:limit]]
