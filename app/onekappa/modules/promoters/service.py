from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.onekappa.audit import record_event
from app.onekappa.modules.chapters.models import Chapter
from app.onekappa.modules.promoters.models import Promoter
from app.onekappa.rbac import grant_role
from app.onekappa.utils import clean_str, iso, is_valid_email, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onekappa.models import User


def validate_promoter_application(payload: dict) -> list[str]:
    errors = []
    if not clean_str(payload.get("name")):
        errors.append("Name is required.")
    if not is_valid_email(clean_str(payload.get("email"))):
        errors.append("A valid email is required.")
    chapter = payload.get("sponsoring_chapter_id")
    if chapter not in (None, "") and parse_int(chapter) is None:
        errors.append("Invalid sponsoring chapter.")
    social_links = payload.get("social_links")
    if social_links is not None and not isinstance(social_links, dict):
        errors.append("social_links must be an object.")
    return errors


def submit_promoter_application(
    s: "Session",
    payload: dict,
    user: "User | None",
    headshot_url: str | None = None,
) -> Promoter:
    chapter_id = parse_int(payload.get("sponsoring_chapter_id"))
    if chapter_id and not s.get(Chapter, chapter_id):
        raise ValueError("Sponsoring chapter not found")
    email = (clean_str(payload.get("email")) or "").lower()
    existing = (
        s.query(Promoter)
        .filter(Promoter.email == email)
        .filter(Promoter.status.in_(("PENDING", "APPROVED")))
        .first()
    )
    if existing:
        raise ValueError("A promoter application already exists for this email")

    now = datetime.utcnow()
    promoter = Promoter(
        user_id=user.id if user else None,
        email=email,
        name=clean_str(payload.get("name")) or "",
        sponsoring_chapter_id=chapter_id,
        headshot_url=headshot_url,
        social_links=payload.get("social_links") or {},
        status="PENDING",
        created_at=now,
        updated_at=now,
    )
    s.add(promoter)
    s.flush()
    record_event(
        s,
        actor=user,
        action="promoter.apply",
        entity_type="Promoter",
        entity_id=str(promoter.id),
        metadata={"email": email, "sponsoring_chapter_id": chapter_id},
    )
    return promoter


def decide_promoter(s: "Session", promoter: Promoter, approved: bool, actor: "User", reason: str | None = None) -> Promoter:
    from app.onekappa.mailer import send_application_decision_email
    from app.onekappa.models import User

    old_status = promoter.status
    promoter.status = "APPROVED" if approved else "REJECTED"
    if reason:
        promoter.verification_notes = reason
    promoter.updated_at = datetime.utcnow()
    if approved:
        user = s.get(User, promoter.user_id) if promoter.user_id else None
        if user is None:
            user = s.query(User).filter(User.email == promoter.email).one_or_none()
        if user is not None:
            promoter.user_id = user.id
            grant_role(s, user, "promoter")
    send_application_decision_email("promoter", promoter.email, promoter.name, approved=approved)
    record_event(
        s,
        actor=actor,
        action="promoter.approve" if approved else "promoter.reject",
        entity_type="Promoter",
        entity_id=str(promoter.id),
        reason=reason,
        metadata={"old": old_status, "new": promoter.status, "user_id": promoter.user_id},
    )
    return promoter


def promoter_for_user(s: "Session", user: "User | None") -> Promoter | None:
    if not user:
        return None
    promoter = s.query(Promoter).filter(Promoter.user_id == user.id).order_by(Promoter.id.desc()).first()
    if promoter:
        return promoter
    return s.query(Promoter).filter(Promoter.email == user.email.lower()).order_by(Promoter.id.desc()).first()


def set_sponsoring_chapter(s: "Session", promoter: Promoter, chapter_id: int, user: "User") -> Promoter:
    if not s.get(Chapter, chapter_id):
        raise ValueError("Chapter not found")
    old = promoter.sponsoring_chapter_id
    promoter.sponsoring_chapter_id = chapter_id
    promoter.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="promoter.sponsoring_chapter",
        entity_type="Promoter",
        entity_id=str(promoter.id),
        metadata={"old": old, "new": chapter_id},
    )
    return promoter


def serialize_promoter(p: Promoter, *, private: bool = False) -> dict:
    data = {
        "id": p.id,
        "name": p.name,
        "sponsoring_chapter_id": p.sponsoring_chapter_id,
        "headshot_url": p.headshot_url,
        "social_links": p.social_links or {},
        "status": p.status,
    }
    if private:
        data.update(
            {
                "email": p.email,
                "user_id": p.user_id,
                "stripe_account_id": p.stripe_account_id,
                "verification_status": p.verification_status,
                "verification_notes": p.verification_notes,
                "created_at": iso(p.created_at),
            }
        )
    return data
