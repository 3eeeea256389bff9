from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from functools import wraps
from typing import TYPE_CHECKING, Any

from flask import g, jsonify

from app.onekappa.audit import record_event
from app.onekappa.constants import MEMBER_VERIFICATION_STATUSES
from app.onekappa.modules.chapters.models import Chapter
from app.onekappa.modules.members.models import FraternityMember
from app.onekappa.rbac import grant_role, revoke_role
from app.onekappa.utils import clean_str, iso, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onekappa.models import User

PROFILE_FIELDS = (
    "ship_name",
    "line_name",
    "initiated_season",
    "location",
    "phone",
    "industry",
    "profession",
    "job_title",
    "bio",
)


def member_for_user(s: "Session", user: "User | None") -> FraternityMember | None:
    if not user:
        return None
    return s.query(FraternityMember).filter(FraternityMember.email == user.email.lower()).one_or_none()


def is_verified_member(s: "Session", user: "User | None") -> bool:
    member = member_for_user(s, user)
    return bool(member and member.verification_status == "VERIFIED")


def can_purchase_product(is_kappa_branded: bool, verified_member: bool) -> bool:
    """Kappa-branded merchandise is restricted to verified members; everything else is open."""
    return verified_member if is_kappa_branded else True


def require_verified_member(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Use after login_required: 403 unless the current user is a verified member."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        from app.onekappa.db import db_session

        user = getattr(g, "current_user", None)
        if not user:
            return jsonify({"error": "Authentication required"}), 401
        if not is_verified_member(db_session(), user):
            return jsonify({"error": "Verified member status required", "code": "NOT_VERIFIED_MEMBER"}), 403
        return fn(*args, **kwargs)

    return wrapped


def validate_member_payload(payload: dict) -> list[str]:
    errors = []
    if not clean_str(payload.get("name")):
        errors.append("Name is required.")
    if not clean_str(payload.get("membership_number")):
        errors.append("Membership number is required.")
    if not parse_int(payload.get("initiated_chapter_id")):
        errors.append("Initiated chapter is required.")
    year = payload.get("initiated_year")
    if year not in (None, "") and (parse_int(year) is None or not 1911 <= parse_int(year) <= datetime.utcnow().year):
        errors.append("Initiated year is invalid.")
    social_links = payload.get("social_links")
    if social_links is not None and not isinstance(social_links, dict):
        errors.append("social_links must be an object.")
    return errors


def register_member(s: "Session", payload: dict, user: "User", headshot_url: str | None = None) -> FraternityMember:
    """Create a PENDING member profile for the logged-in user. Raises ValueError on conflicts."""
    email = user.email.lower()
    membership_number = clean_str(payload.get("membership_number"))
    existing = (
        s.query(FraternityMember)
        .filter((FraternityMember.email == email) | (FraternityMember.membership_number == membership_number))
        .first()
    )
    if existing:
        raise ValueError("A member with this email or membership number already exists")

    chapter_id = parse_int(payload.get("initiated_chapter_id"))
    if chapter_id and not s.get(Chapter, chapter_id):
        raise ValueError("Initiated chapter not found")

    now = datetime.utcnow()
    member = FraternityMember(
        email=email,
        name=clean_str(payload.get("name")) or "",
        membership_number=membership_number,
        initiated_chapter_id=chapter_id,
        initiated_year=parse_int(payload.get("initiated_year")),
        headshot_url=headshot_url,
        social_links=payload.get("social_links") or {},
        verification_status="PENDING",
        created_at=now,
        updated_at=now,
    )
    for field in PROFILE_FIELDS:
        setattr(member, field, clean_str(payload.get(field)))
    s.add(member)
    if not user.name:
        user.name = member.name
    user.onboarding_status = "ONBOARDING_FINISHED"
    user.updated_at = now
    s.flush()

    record_event(
        s,
        actor=user,
        action="member.register",
        entity_type="FraternityMember",
        entity_id=str(member.id),
        metadata={"membership_number": membership_number, "initiated_chapter_id": chapter_id},
    )
    return member


def update_member_profile(s: "Session", member: FraternityMember, payload: dict, user: "User") -> FraternityMember:
    changes = {}
    for field in PROFILE_FIELDS + ("name",):
        if field not in payload:
            continue
        new = clean_str(payload.get(field))
        if field == "name" and not new:
            continue
        old = getattr(member, field)
        if new != old:
            changes[field] = {"old": old, "new": new}
            setattr(member, field, new)
    if "social_links" in payload and isinstance(payload.get("social_links"), dict):
        member.social_links = payload["social_links"]
        changes["social_links"] = "updated"
    if "headshot_url" in payload:
        member.headshot_url = clean_str(payload.get("headshot_url"))
    member.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="member.update",
        entity_type="FraternityMember",
        entity_id=str(member.id),
        metadata={"changes": changes},
    )
    return member


def set_verification(
    s: "Session",
    member: FraternityMember,
    status: str,
    actor: "User",
    notes: str | None = None,
) -> FraternityMember:
    """Admin verification decision; VERIFIED grants the member role to the matching login."""
    from app.onekappa.models import User

    if status not in MEMBER_VERIFICATION_STATUSES:
        raise ValueError(f"Invalid status. Must be one of: {', '.join(MEMBER_VERIFICATION_STATUSES)}")
    old_status = member.verification_status
    member.verification_status = status
    member.verification_notes = notes
    member.verification_date = datetime.utcnow()
    member.updated_at = datetime.utcnow()

    user = s.query(User).filter(User.email == member.email).one_or_none()
    if user:
        if status == "VERIFIED":
            grant_role(s, user, "member")
        else:
            revoke_role(s, user, "member")

    record_event(
        s,
        actor=actor,
        action="member.verification",
        entity_type="FraternityMember",
        entity_id=str(member.id),
        reason=notes,
        metadata={"old": old_status, "new": status},
    )
    return member


def serialize_member(m: FraternityMember, *, private: bool = False) -> dict:
    data = {
        "id": m.id,
        "name": m.name,
        "initiated_chapter_id": m.initiated_chapter_id,
        "initiated_season": m.initiated_season,
        "initiated_year": m.initiated_year,
        "ship_name": m.ship_name,
        "line_name": m.line_name,
        "location": m.location,
        "industry": m.industry,
        "profession": m.profession,
        "job_title": m.job_title,
        "bio": m.bio,
        "headshot_url": m.headshot_url,
        "social_links": m.social_links or {},
        "verification_status": m.verification_status,
    }
    if private:
        data.update(
            {
                "email": m.email,
                "membership_number": m.membership_number,
                "phone": m.phone,
                "verification_date": iso(m.verification_date),
                "verification_notes": m.verification_notes,
                "created_at": iso(m.created_at),
            }
        )
    return data
