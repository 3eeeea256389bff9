from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.onekappa.models import Base, JSONType


class Seller(Base):
    __tablename__ = "sellers"
    __table_args__ = (
        Index("idx_sellers_status", "status"),
        Index("idx_sellers_email", "email"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sponsoring_chapter_id: Mapped[int | None] = mapped_column(ForeignKey("chapters.id", ondelete="SET NULL"), nullable=True)

    business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    business_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    kappa_vendor_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    merchandise_type: Mapped[str | None] = mapped_column(String(16), nullable=True)  # KAPPA / NON_KAPPA
    website: Mapped[str | None] = mapped_column(String(512), nullable=True)
    slug: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)

    headshot_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    store_logo_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    social_links: Mapped[dict | None] = mapped_column(JSONType, nullable=True, default=dict)

    stripe_account_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    invitation_token: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)
    verification_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    business_address_line1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    business_address_line2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    business_city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    business_state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    business_postal_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    business_country: Mapped[str | None] = mapped_column(String(2), nullable=True, default="US")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
