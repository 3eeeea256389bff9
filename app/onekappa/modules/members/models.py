from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.onekappa.models import Base, JSONType


class FraternityMember(Base):
    """
    A brother's member profile. Linked to a login by email; a user counts as a
    verified member only when verification_status is VERIFIED.
    """

    __tablename__ = "fraternity_members"
    __table_args__ = (
        Index("idx_members_verification_status", "verification_status"),
        Index("idx_members_initiated_chapter", "initiated_chapter_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    membership_number: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)

    initiated_chapter_id: Mapped[int | None] = mapped_column(ForeignKey("chapters.id", ondelete="SET NULL"), nullable=True)
    initiated_season: Mapped[str | None] = mapped_column(String(16), nullable=True)
    initiated_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ship_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    line_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    industry: Mapped[str | None] = mapped_column(String(128), nullable=True)
    profession: Mapped[str | None] = mapped_column(String(128), nullable=True)
    job_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    headshot_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    social_links: Mapped[dict | None] = mapped_column(JSONType, nullable=True, default=dict)

    verification_status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING")
    verification_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
