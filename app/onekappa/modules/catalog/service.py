"""
Reference pick-lists (industries, professions). Both tables share one shape,
so every function takes the model class.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Union

from sqlalchemy import func

from app.onekappa.audit import record_event
from app.onekappa.modules.catalog.models import Industry, Profession
from app.onekappa.utils import iso, parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onekappa.models import User

CatalogModel = Union[type[Industry], type[Profession]]
CatalogEntry = Union[Industry, Profession]


class DuplicateEntryError(ValueError):
    pass


def list_entries(s: "Session", model: CatalogModel, *, include_inactive: bool = False) -> list[CatalogEntry]:
    q = s.query(model)
    if not include_inactive:
        q = q.filter(model.is_active.is_(True))
    return q.order_by(model.display_order.asc(), model.name.asc()).all()


def parse_entry_payload(payload: dict, *, partial: bool = False) -> tuple[dict, list[str]]:
    """Return (fields to write, errors). ``name`` is required unless ``partial``."""
    fields: dict = {}
    errors: list[str] = []
    if not partial or "name" in payload:
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append("Name is required." if not partial else "Name must be a non-empty string.")
        else:
            fields["name"] = name.strip()[:255]
    if payload.get("display_order") is not None:
        order = parse_int(payload.get("display_order"))
        if order is None:
            errors.append("Display order must be a number.")
        else:
            fields["display_order"] = order
    if "is_active" in payload:
        fields["is_active"] = parse_bool(payload.get("is_active"), default=True)
    return fields, errors


def _check_unique(s: "Session", model: CatalogModel, name: str, exclude_id: int | None = None) -> None:
    q = s.query(model.id).filter(func.lower(model.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(model.id != exclude_id)
    if q.first() is not None:
        raise DuplicateEntryError(f"{model.__name__} with this name already exists")


def create_entry(s: "Session", model: CatalogModel, fields: dict, user: "User | None") -> CatalogEntry:
    _check_unique(s, model, fields["name"])
    now = datetime.utcnow()
    entry = model(
        name=fields["name"],
        display_order=fields.get("display_order", 0),
        is_active=fields.get("is_active", True),
        created_at=now,
        updated_at=now,
    )
    s.add(entry)
    s.flush()
    record_event(
        s,
        actor=user,
        action=f"{model.__tablename__}.create",
        entity_type=model.__name__,
        entity_id=str(entry.id),
        metadata={"name": entry.name},
    )
    return entry


def update_entry(s: "Session", entry: CatalogEntry, fields: dict, user: "User") -> CatalogEntry:
    model = type(entry)
    if "name" in fields and fields["name"] != entry.name:
        _check_unique(s, model, fields["name"], exclude_id=entry.id)
    changes = {}
    for key, value in fields.items():
        if getattr(entry, key) != value:
            changes[key] = {"old": getattr(entry, key), "new": value}
            setattr(entry, key, value)
    entry.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action=f"{model.__tablename__}.edit",
        entity_type=model.__name__,
        entity_id=str(entry.id),
        metadata={"changes": changes},
    )
    return entry


def delete_entry(s: "Session", entry: CatalogEntry, user: "User") -> None:
    model = type(entry)
    record_event(
        s,
        actor=user,
        action=f"{model.__tablename__}.delete",
        entity_type=model.__name__,
        entity_id=str(entry.id),
        metadata={"name": entry.name},
    )
    s.delete(entry)


def seed_entries(s: "Session", model: CatalogModel, names: list[str]) -> int:
    """Insert missing names, ordered as given. Existing rows are left alone. Returns rows added."""
    existing = {n.lower() for (n,) in s.query(model.name).all()}
    added = 0
    for order, name in enumerate(names, start=1):
        if name.lower() in existing:
            continue
        s.add(model(name=name, display_order=order, is_active=True))
        existing.add(name.lower())
        added += 1
    return added


def serialize_entry(e: CatalogEntry) -> dict:
    return {
        "id": e.id,
        "name": e.name,
        "display_order": e.display_order,
        "is_active": e.is_active,
        "created_at": iso(e.created_at),
        "updated_at": iso(e.updated_at),
    }
