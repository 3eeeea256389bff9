from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.onekappa.audit import record_event
from app.onekappa.constants import DEFAULT_PLATFORM_SETTINGS
from app.onekappa.modules.platform_settings.models import PlatformSetting

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onekappa.models import User


def get_setting(s: "Session", key: str) -> str | None:
    row = s.query(PlatformSetting).filter(PlatformSetting.key == key).one_or_none()
    return row.value if row else None


def list_settings(s: "Session") -> list[PlatformSetting]:
    return s.query(PlatformSetting).order_by(PlatformSetting.key.asc()).all()


def set_setting(
    s: "Session",
    key: str,
    value: str | None,
    user: "User | None" = None,
    description: str | None = None,
) -> PlatformSetting:
    row = s.query(PlatformSetting).filter(PlatformSetting.key == key).one_or_none()
    old_value = row.value if row else None
    if not row:
        row = PlatformSetting(key=key)
        s.add(row)
    row.value = value
    if description is not None:
        row.description = description
    row.updated_at = datetime.utcnow()
    s.flush()

    record_event(
        s,
        actor=user,
        action="platform_setting.update",
        entity_type="PlatformSetting",
        entity_id=key,
        metadata={"old": old_value, "new": value},
    )
    return row


def seed_default_settings(s: "Session") -> None:
    """Insert the default settings that are missing; existing values are left alone."""
    for key, (value, description) in DEFAULT_PLATFORM_SETTINGS.items():
        if s.query(PlatformSetting).filter(PlatformSetting.key == key).one_or_none() is None:
            s.add(PlatformSetting(key=key, value=value or None, description=description))


def serialize_setting(row: PlatformSetting) -> dict:
    return {
        "key": row.key,
        "value": row.value,
        "description": row.description,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }
