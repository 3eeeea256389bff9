from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.onekappa.models import Base, JSONType

if TYPE_CHECKING:
    from app.onekappa.modules.chapters.models import Chapter


def _default_dress_codes() -> list[str]:
    return ["business_casual"]


class EventType(Base):
    __tablename__ = "event_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "social"
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        Index("idx_events_promoter", "promoter_id"),
        Index("idx_events_status", "status"),
        Index("idx_events_event_date", "event_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    promoter_id: Mapped[int] = mapped_column(ForeignKey("promoters.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    sponsored_chapter_id: Mapped[int | None] = mapped_column(ForeignKey("chapters.id", ondelete="SET NULL"), nullable=True)
    event_type_id: Mapped[int | None] = mapped_column(ForeignKey("event_types.id", ondelete="SET NULL"), nullable=True)

    all_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    event_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ticket_price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    dress_codes: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=_default_dress_codes)
    dress_code_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACTIVE")  # ACTIVE / CLOSED / CANCELLED

    # series: event_date is the first occurrence, recurrence_rule an RRULE body such as "FREQ=WEEKLY;BYDAY=MO"
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurrence_rule: Mapped[str | None] = mapped_column(String(512), nullable=True)
    recurrence_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    event_type: Mapped["EventType | None"] = relationship("EventType", lazy="joined")
    affiliated_chapters: Mapped[list["Chapter"]] = relationship(
        "Chapter",
        secondary="event_affiliated_chapters",
        order_by="Chapter.name",
        lazy="selectin",
    )


class EventAffiliatedChapter(Base):
    """Chapters co-hosting an event besides its sponsoring chapter."""

    __tablename__ = "event_affiliated_chapters"
    __table_args__ = (Index("idx_event_affiliated_chapters_chapter", "chapter_id"),)

    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), primary_key=True)
    chapter_id: Mapped[int] = mapped_column(ForeignKey("chapters.id", ondelete="CASCADE"), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class SavedEvent(Base):
    __tablename__ = "saved_events"
    __table_args__ = (
        UniqueConstraint("user_email", "event_id", name="uq_saved_events_user_event"),
        Index("idx_saved_events_user_email", "user_email"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_email: Mapped[str] = mapped_column(String(320), nullable=False)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    event: Mapped["Event"] = relationship("Event", lazy="joined")
