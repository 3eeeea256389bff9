from __future__ import annotations

import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.onekappa.models import AuditEvent, User


def _request_origin() -> tuple[str | None, str | None]:
    """(request_id, client_ip) for the current request; both None outside one (scripts, webhook replays in tests)."""
    if not has_request_context():
        return None, None
    forwarded = (request.headers.get("X-Forwarded-For") or "").split(",")[0].strip()
    return getattr(g, "request_id", None), forwarded or request.remote_addr


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditEvent:
    """
    Append one audit row. ``actor=None`` marks system actions such as
    Stripe webhook updates. The caller owns the commit.
    """
    request_id, client_ip = _request_origin()
    ev = AuditEvent(
        request_id=request_id,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        client_ip=client_ip,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        # datetimes and Decimals in change sets are stored as strings
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
    )
    s.add(ev)
    return ev
