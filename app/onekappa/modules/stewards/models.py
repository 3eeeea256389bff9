from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.onekappa.models import Base

if TYPE_CHECKING:
    from app.onekappa.models import User


class Steward(Base):
    __tablename__ = "stewards"
    __table_args__ = (
        Index("idx_stewards_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    sponsoring_chapter_id: Mapped[int | None] = mapped_column(ForeignKey("chapters.id", ondelete="SET NULL"), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    verification_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    stripe_account_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user: Mapped["User"] = relationship("User", lazy="joined")


class StewardListing(Base):
    __tablename__ = "steward_listings"
    __table_args__ = (
        CheckConstraint("shipping_cost_cents >= 0", name="ck_steward_listings_shipping_nonneg"),
        CheckConstraint("chapter_donation_cents >= 0", name="ck_steward_listings_donation_nonneg"),
        Index("idx_steward_listings_steward", "steward_id"),
        Index("idx_steward_listings_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    steward_id: Mapped[int] = mapped_column(ForeignKey("stewards.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    shipping_cost_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    chapter_donation_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sponsoring_chapter_id: Mapped[int] = mapped_column(ForeignKey("chapters.id", ondelete="RESTRICT"), nullable=False)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("product_categories.id", ondelete="SET NULL"), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACTIVE")  # ACTIVE / CLAIMED / REMOVED
    claimed_by_fraternity_member_id: Mapped[int | None] = mapped_column(
        ForeignKey("fraternity_members.id", ondelete="SET NULL"), nullable=True
    )
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    steward: Mapped["Steward"] = relationship("Steward", lazy="joined")
    images: Mapped[list["StewardListingImage"]] = relationship(
        "StewardListingImage",
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="StewardListingImage.display_order",
        lazy="selectin",
    )


class StewardListingImage(Base):
    __tablename__ = "steward_listing_images"
    __table_args__ = (
        Index("idx_steward_listing_images_listing", "steward_listing_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    steward_listing_id: Mapped[int] = mapped_column(ForeignKey("steward_listings.id", ondelete="CASCADE"), nullable=False)
    image_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    listing: Mapped["StewardListing"] = relationship("StewardListing", back_populates="images")


class StewardClaim(Base):
    __tablename__ = "steward_claims"
    __table_args__ = (
        Index("idx_steward_claims_listing", "listing_id"),
        Index("idx_steward_claims_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    listing_id: Mapped[int] = mapped_column(ForeignKey("steward_listings.id", ondelete="CASCADE"), nullable=False)
    claimant_fraternity_member_id: Mapped[int] = mapped_column(
        ForeignKey("fraternity_members.id", ondelete="CASCADE"), nullable=False
    )
    stripe_session_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    total_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    platform_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    chapter_donation_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")  # PENDING / PAID / FAILED / REFUND_REQUIRED

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    listing: Mapped["StewardListing"] = relationship("StewardListing", lazy="joined")
