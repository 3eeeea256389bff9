from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.onekappa.audit import record_event
from app.onekappa.modules.chapters.models import Chapter

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onekappa.models import User


def set_chapter_stripe_account(s: "Session", chapter: Chapter, account_id: str | None, user: "User") -> Chapter:
    if account_id and not account_id.startswith("acct_"):
        raise ValueError("Stripe account id must start with acct_")
    old = chapter.stripe_account_id
    chapter.stripe_account_id = account_id or None
    chapter.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="chapter.stripe_account",
        entity_type="Chapter",
        entity_id=str(chapter.id),
        metadata={"old": old, "new": chapter.stripe_account_id},
    )
    return chapter


def serialize_chapter(c: Chapter, *, private: bool = False) -> dict:
    data = {
        "id": c.id,
        "name": c.name,
        "type": c.type,
        "status": c.status,
        "chartered": c.chartered,
        "province": c.province,
        "city": c.city,
        "state": c.state,
        "contact_email": c.contact_email,
        "is_active": c.is_active,
        "has_stripe_account": bool(c.stripe_account_id),
    }
    if private:
        data["stripe_account_id"] = c.stripe_account_id
    return data
