from __future__ import annotations

import json
import re
from datetime import date, datetime
from typing import Any

from flask import g, request

from app.onekappa.models import User


class ValidationError(ValueError):
    """Payload failed validation; handlers return the errors as a 400."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = errors
        super().__init__("; ".join(errors))


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def optional_user() -> User | None:
    return getattr(g, "current_user", None)


def request_payload() -> dict[str, Any]:
    """JSON body for API clients, form fields for multipart posts."""
    if request.is_json:
        data = request.get_json(silent=True) or {}
        return data if isinstance(data, dict) else {}
    payload: dict[str, Any] = {k: v for k, v in request.form.items()}
    # multipart clients send nested objects as JSON strings
    for key in (
        "social_links",
        "dress_codes",
        "features",
        "shipping_address",
        "toAddress",
        "affiliated_chapter_ids",
        "attributes",
    ):
        raw = payload.get(key)
        if isinstance(raw, str) and raw.strip():
            try:
                payload[key] = json.loads(raw)
            except json.JSONDecodeError:
                pass
    return payload


def parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        return None


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if not s:
        return default
    return s in ("1", "true", "yes", "on")


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp (a trailing 'Z' is accepted and dropped)."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1]
    dt = datetime.fromisoformat(s)
    return dt.replace(tzinfo=None) if dt.tzinfo else dt


def clean_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value else None


_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    return _SLUG_RE.sub("-", (text or "").lower()).strip("-")[:80] or "store"


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(email: str | None) -> bool:
    return bool(email and _EMAIL_RE.match(email))


def uploaded_image_url(field: str, folder: str) -> str | None:
    """Store request.files[field] (if present) as an image; raises StorageError when invalid."""
    from flask import current_app

    from app.onekappa.storage import store_image

    f = request.files.get(field)
    if not f or not f.filename:
        return None
    data = f.read()
    _key, url = store_image(current_app.config, folder, f.filename, data, f.mimetype)
    return url


def uploaded_image_urls(folder: str, *fields: str) -> list[str]:
    """Store every file sent under ``fields`` (multi-file inputs included); order is preserved."""
    from flask import current_app

    from app.onekappa.storage import store_image

    urls = []
    for field in fields:
        for f in request.files.getlist(field):
            if not f or not f.filename:
                continue
            _key, url = store_image(current_app.config, folder, f.filename, f.read(), f.mimetype)
            urls.append(url)
    return urls
