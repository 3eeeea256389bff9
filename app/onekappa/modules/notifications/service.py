from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from app.onekappa.modules.notifications.models import NOTIFICATION_TYPES, Notification

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def create_notification(
    s: "Session",
    *,
    user_email: str,
    type: str,
    title: str,
    message: str,
    related_product_id: int | None = None,
    related_order_id: int | None = None,
) -> Notification:
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type}")
    n = Notification(
        user_email=user_email.strip().lower(),
        type=type,
        title=title,
        message=message,
        related_product_id=related_product_id,
        related_order_id=related_order_id,
        is_read=False,
    )
    s.add(n)
    s.flush()
    return n


def list_notifications(s: "Session", user_email: str, limit: int = 50) -> list[Notification]:
    return (
        s.query(Notification)
        .filter(Notification.user_email == user_email.lower())
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def unread_count(s: "Session", user_email: str) -> int:
    return (
        s.query(Notification)
        .filter(Notification.user_email == user_email.lower())
        .filter(Notification.is_read.is_(False))
        .count()
    )


def mark_read(s: "Session", notification_id: int, user_email: str) -> Notification | None:
    n = s.get(Notification, notification_id)
    if not n or n.user_email != user_email.lower():
        return None
    if not n.is_read:
        n.is_read = True
        n.read_at = datetime.utcnow()
    return n


def mark_all_read(s: "Session", user_email: str) -> int:
    now = datetime.utcnow()
    rows = (
        s.query(Notification)
        .filter(Notification.user_email == user_email.lower())
        .filter(Notification.is_read.is_(False))
        .all()
    )
    for n in rows:
        n.is_read = True
        n.read_at = now
    return len(rows)


def delete_notification(s: "Session", notification_id: int, user_email: str) -> bool:
    n = s.get(Notification, notification_id)
    if not n or n.user_email != user_email.lower():
        return False
    s.delete(n)
    return True


def notify_item_available(s: "Session", product_id: int, product_name: str, exclude_email: str | None = None) -> int:
    """
    Tell every buyer who was blocked on this product that it can be purchased now.
    Returns the number of notifications created.
    """
    blocked_emails = {
        row[0]
        for row in s.query(Notification.user_email)
        .filter(Notification.type == "PURCHASE_BLOCKED")
        .filter(Notification.related_product_id == product_id)
        .distinct()
        .all()
    }
    if exclude_email:
        blocked_emails.discard(exclude_email.lower())
    already_told = {
        row[0]
        for row in s.query(Notification.user_email)
        .filter(Notification.type == "ITEM_AVAILABLE")
        .filter(Notification.related_product_id == product_id)
        .distinct()
        .all()
    }
    created = 0
    for email in sorted(blocked_emails - already_told):
        create_notification(
            s,
            user_email=email,
            type="ITEM_AVAILABLE",
            title="Item Now Available",
            message=f'"{product_name}" is now available for purchase.',
            related_product_id=product_id,
        )
        created += 1
    if created:
        logger.info("NOTIFY: %s ITEM_AVAILABLE notifications for product_id=%s", created, product_id)
    return created


def serialize_notification(n: Notification) -> dict:
    return {
        "id": n.id,
        "user_email": n.user_email,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "related_product_id": n.related_product_id,
        "related_order_id": n.related_order_id,
        "is_read": n.is_read,
        "read_at": n.read_at.isoformat() if n.read_at else None,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }
