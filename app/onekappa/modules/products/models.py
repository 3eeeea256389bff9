from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.onekappa.models import Base, JSONType

if TYPE_CHECKING:
    from app.onekappa.modules.sellers.models import Seller


class ProductCategory(Base):
    __tablename__ = "product_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    attribute_definitions: Mapped[list["CategoryAttributeDefinition"]] = relationship(
        "CategoryAttributeDefinition",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="CategoryAttributeDefinition.display_order",
        lazy="selectin",
    )


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price_cents >= 1", name="ck_products_price_positive"),
        Index("idx_products_seller", "seller_id"),
        Index("idx_products_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    seller_id: Mapped[int] = mapped_column(ForeignKey("sellers.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("product_categories.id", ondelete="SET NULL"), nullable=True)
    is_kappa_branded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # ACTIVE / INACTIVE / ADMIN_DELETE / PENDING / SOLD / SHIPPED / CLOSED
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACTIVE")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    seller: Mapped["Seller"] = relationship("Seller", lazy="joined")
    category: Mapped["ProductCategory | None"] = relationship("ProductCategory", lazy="joined")
    images: Mapped[list["ProductImage"]] = relationship(
        "ProductImage",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImage.display_order",
        lazy="selectin",
    )
    attribute_values: Mapped[list["ProductAttributeValue"]] = relationship(
        "ProductAttributeValue",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class ProductImage(Base):
    __tablename__ = "product_images"
    __table_args__ = (
        Index("idx_product_images_product", "product_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    image_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    product: Mapped["Product"] = relationship("Product", back_populates="images")


class CategoryAttributeDefinition(Base):
    """A per-category product field, e.g. "Size" (SELECT) for apparel."""

    __tablename__ = "category_attribute_definitions"
    __table_args__ = (
        UniqueConstraint("category_id", "attribute_name", name="uq_category_attribute_name"),
        CheckConstraint(
            "attribute_type IN ('TEXT', 'SELECT', 'NUMBER', 'BOOLEAN')",
            name="ck_category_attribute_definitions_type",
        ),
        Index("idx_category_attribute_definitions_category", "category_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("product_categories.id", ondelete="CASCADE"), nullable=False)
    attribute_name: Mapped[str] = mapped_column(String(100), nullable=False)
    # TEXT / SELECT / NUMBER / BOOLEAN
    attribute_type: Mapped[str] = mapped_column(String(16), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    options: Mapped[list | None] = mapped_column(JSONType, nullable=True)  # SELECT choices

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    category: Mapped["ProductCategory"] = relationship("ProductCategory", back_populates="attribute_definitions")


class ProductAttributeValue(Base):
    __tablename__ = "product_attribute_values"
    __table_args__ = (
        UniqueConstraint("product_id", "attribute_definition_id", name="uq_product_attribute_value"),
        Index("idx_product_attribute_values_product", "product_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    attribute_definition_id: Mapped[int] = mapped_column(
        ForeignKey("category_attribute_definitions.id", ondelete="CASCADE"), nullable=False
    )
    # exactly one of these is set, matching the definition's type
    value_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    value_number: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    value_boolean: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    product: Mapped["Product"] = relationship("Product", back_populates="attribute_values")
    definition: Mapped["CategoryAttributeDefinition"] = relationship("CategoryAttributeDefinition", lazy="joined")
