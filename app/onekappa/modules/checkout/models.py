from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.onekappa.models import Base

if TYPE_CHECKING:
    from app.onekappa.modules.products.models import Product


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        Index("idx_orders_buyer_email", "buyer_email"),
        Index("idx_orders_status", "status"),
        Index("idx_orders_chapter", "chapter_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    buyer_email: Mapped[str] = mapped_column(String(320), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stripe_session_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")  # PENDING / PAID / FAILED
    chapter_id: Mapped[int | None] = mapped_column(ForeignKey("chapters.id", ondelete="SET NULL"), nullable=True)

    shipping_street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    shipping_city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    shipping_state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    shipping_zip: Mapped[str | None] = mapped_column(String(16), nullable=True)
    shipping_country: Mapped[str] = mapped_column(String(2), nullable=False, default="US")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    product: Mapped["Product"] = relationship("Product", lazy="joined")
