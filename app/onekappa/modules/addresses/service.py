"""
Saved shipping addresses. Each user with any address has exactly one default.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.onekappa.modules.addresses.models import UserAddress
from app.onekappa.utils import clean_str, iso, parse_bool

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def validate_address_fields(payload: dict, *, partial: bool = False) -> list[str]:
    errors = []
    for field in ("street", "city", "state", "zip"):
        if not partial or field in payload:
            if not clean_str(payload.get(field)):
                errors.append(f"{field.capitalize()} is required.")
    state = clean_str(payload.get("state"))
    if state and len(state) != 2:
        errors.append("State must be a 2-letter code.")
    zip_code = clean_str(payload.get("zip"))
    if zip_code and len(zip_code) < 5:
        errors.append("Zip must be at least 5 characters.")
    country = clean_str(payload.get("country"))
    if country and len(country) != 2:
        errors.append("Country must be a 2-letter code.")
    return errors


def list_addresses(s: "Session", user_id: int) -> list[UserAddress]:
    return (
        s.query(UserAddress)
        .filter(UserAddress.user_id == user_id)
        .order_by(UserAddress.is_default.desc(), UserAddress.created_at.desc(), UserAddress.id.desc())
        .all()
    )


def get_address(s: "Session", user_id: int, address_id: int) -> UserAddress | None:
    addr = s.get(UserAddress, address_id)
    if not addr or addr.user_id != user_id:
        return None
    return addr


def default_address(s: "Session", user_id: int) -> UserAddress | None:
    return (
        s.query(UserAddress)
        .filter(UserAddress.user_id == user_id)
        .filter(UserAddress.is_default.is_(True))
        .one_or_none()
    )


def _clear_default(s: "Session", user_id: int, keep_id: int | None = None) -> None:
    q = s.query(UserAddress).filter(UserAddress.user_id == user_id).filter(UserAddress.is_default.is_(True))
    for addr in q.all():
        if addr.id != keep_id:
            addr.is_default = False


def create_address(s: "Session", user_id: int, payload: dict) -> UserAddress:
    has_any = s.query(UserAddress.id).filter(UserAddress.user_id == user_id).first() is not None
    make_default = parse_bool(payload.get("is_default")) or not has_any
    if make_default:
        _clear_default(s, user_id)
    now = datetime.utcnow()
    addr = UserAddress(
        user_id=user_id,
        label=clean_str(payload.get("label")),
        street=clean_str(payload.get("street")) or "",
        city=clean_str(payload.get("city")) or "",
        state=(clean_str(payload.get("state")) or "").upper(),
        zip=clean_str(payload.get("zip")) or "",
        country=(clean_str(payload.get("country")) or "US").upper(),
        is_default=make_default,
        created_at=now,
        updated_at=now,
    )
    s.add(addr)
    s.flush()
    return addr


def update_address(s: "Session", addr: UserAddress, payload: dict) -> UserAddress:
    for field in ("label", "street", "city", "zip"):
        if field in payload:
            value = clean_str(payload.get(field))
            if field != "label" and not value:
                continue
            setattr(addr, field, value)
    for field in ("state", "country"):
        if clean_str(payload.get(field)):
            setattr(addr, field, clean_str(payload.get(field)).upper())
    if parse_bool(payload.get("is_default")) and not addr.is_default:
        _clear_default(s, addr.user_id, keep_id=addr.id)
        addr.is_default = True
    addr.updated_at = datetime.utcnow()
    s.flush()
    return addr


def set_default(s: "Session", addr: UserAddress) -> UserAddress:
    _clear_default(s, addr.user_id, keep_id=addr.id)
    addr.is_default = True
    addr.updated_at = datetime.utcnow()
    s.flush()
    return addr


def delete_address(s: "Session", addr: UserAddress) -> None:
    """Delete; when the default goes, the newest remaining address takes over."""
    user_id, was_default = addr.user_id, addr.is_default
    s.delete(addr)
    s.flush()
    if was_default:
        newest = (
            s.query(UserAddress)
            .filter(UserAddress.user_id == user_id)
            .order_by(UserAddress.created_at.desc(), UserAddress.id.desc())
            .first()
        )
        if newest is not None:
            newest.is_default = True
            s.flush()


def serialize_address(a: UserAddress) -> dict:
    return {
        "id": a.id,
        "label": a.label,
        "street": a.street,
        "city": a.city,
        "state": a.state,
        "zip": a.zip,
        "country": a.country,
        "is_default": a.is_default,
        "created_at": iso(a.created_at),
    }
