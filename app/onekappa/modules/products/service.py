from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.onekappa.audit import record_event
from app.onekappa.modules.products.attributes import (
    serialize_attribute_value,
    set_product_attributes,
    validate_attributes_payload,
)
from app.onekappa.modules.products.models import Product, ProductCategory, ProductImage
from app.onekappa.modules.sellers.models import Seller
from app.onekappa.utils import clean_str, iso, parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onekappa.models import User

PRODUCT_STATUSES = ("ACTIVE", "INACTIVE", "ADMIN_DELETE", "PENDING", "SOLD", "SHIPPED", "CLOSED")
SELLER_SETTABLE_STATUSES = ("ACTIVE", "INACTIVE", "SHIPPED", "CLOSED")


def validate_product_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate product create/update payload. Returns list of errors."""
    errors = []
    if not partial or "name" in payload:
        if not clean_str(payload.get("name")):
            errors.append("Name is required.")
    if not partial or "price_cents" in payload:
        price = parse_int(payload.get("price_cents"))
        if price is None or price < 1:
            errors.append("Price must be a positive whole number of cents.")
    if "category_id" in payload and payload.get("category_id") not in (None, "") and parse_int(payload.get("category_id")) is None:
        errors.append("Invalid category.")
    status = clean_str(payload.get("status"))
    if status and status not in PRODUCT_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(PRODUCT_STATUSES)}")
    if "attributes" in payload:
        errors.extend(validate_attributes_payload(payload.get("attributes")))
    return errors


def _check_category(s: "Session", category_id: int | None) -> None:
    if category_id and not s.get(ProductCategory, category_id):
        raise ValueError("Category not found")


def create_product(
    s: "Session",
    seller: Seller,
    payload: dict,
    user: "User",
    image_urls: list[str] | None = None,
) -> Product:
    category_id = parse_int(payload.get("category_id"))
    _check_category(s, category_id)
    image_urls = [u for u in (image_urls or []) if u]
    if not image_urls and clean_str(payload.get("image_url")):
        image_urls = [clean_str(payload.get("image_url"))]

    now = datetime.utcnow()
    product = Product(
        seller_id=seller.id,
        name=clean_str(payload.get("name")) or "",
        description=clean_str(payload.get("description")),
        price_cents=parse_int(payload.get("price_cents")) or 0,
        image_url=image_urls[0] if image_urls else None,
        category_id=category_id,
        is_kappa_branded=parse_bool(payload.get("is_kappa_branded")),
        status="ACTIVE",
        created_at=now,
        updated_at=now,
    )
    for i, url in enumerate(image_urls):
        product.images.append(ProductImage(image_url=url, display_order=i))
    set_product_attributes(s, product, payload.get("attributes"), require_all=True)
    s.add(product)
    s.flush()

    record_event(
        s,
        actor=user,
        action="product.create",
        entity_type="Product",
        entity_id=str(product.id),
        metadata={"seller_id": seller.id, "name": product.name, "price_cents": product.price_cents},
    )
    return product


def _apply_changes(s: "Session", product: Product, payload: dict, allowed_statuses: tuple[str, ...]) -> dict:
    changes: dict = {}
    if "name" in payload and clean_str(payload.get("name")):
        new_name = clean_str(payload.get("name"))
        if new_name != product.name:
            changes["name"] = {"old": product.name, "new": new_name}
            product.name = new_name
    if "description" in payload:
        new_desc = clean_str(payload.get("description"))
        if new_desc != product.description:
            changes["description"] = "updated"
            product.description = new_desc
    if "price_cents" in payload:
        new_price = parse_int(payload.get("price_cents"))
        if new_price and new_price != product.price_cents:
            changes["price_cents"] = {"old": product.price_cents, "new": new_price}
            product.price_cents = new_price
    if "category_id" in payload:
        new_cat = parse_int(payload.get("category_id"))
        _check_category(s, new_cat)
        if new_cat != product.category_id:
            changes["category_id"] = {"old": product.category_id, "new": new_cat}
            product.category_id = new_cat
    if "is_kappa_branded" in payload:
        new_kb = parse_bool(payload.get("is_kappa_branded"))
        if new_kb != product.is_kappa_branded:
            changes["is_kappa_branded"] = {"old": product.is_kappa_branded, "new": new_kb}
            product.is_kappa_branded = new_kb
    if "image_url" in payload and clean_str(payload.get("image_url")):
        product.image_url = clean_str(payload.get("image_url"))
        changes["image_url"] = "updated"
    new_status = clean_str(payload.get("status"))
    if new_status and new_status != product.status:
        if new_status not in allowed_statuses:
            raise ValueError(f"Status cannot be set to {new_status}")
        changes["status"] = {"old": product.status, "new": new_status}
        product.status = new_status
    if "attributes" in payload or "category_id" in changes:
        attribute_changes = set_product_attributes(s, product, payload.get("attributes"))
        if attribute_changes:
            changes["attributes"] = attribute_changes
    product.updated_at = datetime.utcnow()
    return changes


def update_product(s: "Session", product: Product, payload: dict, user: "User") -> Product:
    """Seller edit of their own product."""
    from app.onekappa.modules.notifications.service import notify_item_available

    if product.status == "ADMIN_DELETE":
        raise ValueError("Product was removed by an admin")
    changes = _apply_changes(s, product, payload, SELLER_SETTABLE_STATUSES)
    seller = s.get(Seller, product.seller_id)
    if (
        changes.get("status", {}).get("new") == "ACTIVE"
        and seller is not None
        and seller.status == "APPROVED"
        and seller.stripe_account_id
    ):
        notify_item_available(s, product.id, product.name, exclude_email=seller.email)
    record_event(
        s,
        actor=user,
        action="product.edit",
        entity_type="Product",
        entity_id=str(product.id),
        metadata={"name": product.name, "changes": changes},
    )
    return product


def add_product_images(product: Product, image_urls: list[str]) -> None:
    start = len(product.images)
    for i, url in enumerate(image_urls):
        product.images.append(ProductImage(image_url=url, display_order=start + i))
    if image_urls and not product.image_url:
        product.image_url = image_urls[0]


def deactivate_product(s: "Session", product: Product, user: "User") -> Product:
    old_status = product.status
    product.status = "INACTIVE"
    product.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="product.deactivate",
        entity_type="Product",
        entity_id=str(product.id),
        metadata={"old": old_status},
    )
    return product


def _notify_seller(s: "Session", product: Product, title: str, message: str) -> None:
    from app.onekappa.modules.notifications.service import create_notification

    seller = s.get(Seller, product.seller_id)
    if seller:
        create_notification(
            s,
            user_email=seller.email,
            type="ADMIN_ACTION",
            title=title,
            message=message,
            related_product_id=product.id,
        )


def admin_update_product(s: "Session", product: Product, payload: dict, user: "User", reason: str) -> Product:
    changes = _apply_changes(s, product, payload, PRODUCT_STATUSES)
    _notify_seller(
        s,
        product,
        "Your product was updated by an admin",
        f'An admin updated "{product.name}". Reason: {reason}',
    )
    record_event(
        s,
        actor=user,
        action="admin.product.edit",
        entity_type="Product",
        entity_id=str(product.id),
        reason=reason,
        metadata={"changes": changes},
    )
    return product


def admin_delete_product(s: "Session", product: Product, user: "User", reason: str) -> Product:
    old_status = product.status
    product.status = "ADMIN_DELETE"
    product.updated_at = datetime.utcnow()
    _notify_seller(
        s,
        product,
        "Your product was removed by an admin",
        f'An admin removed "{product.name}". Reason: {reason}',
    )
    record_event(
        s,
        actor=user,
        action="admin.product.delete",
        entity_type="Product",
        entity_id=str(product.id),
        reason=reason,
        metadata={"old": old_status},
    )
    return product


def public_products_query(s: "Session"):
    """Products a shopper can see: ACTIVE listings of APPROVED sellers."""
    return (
        s.query(Product)
        .join(Seller, Seller.id == Product.seller_id)
        .filter(Product.status == "ACTIVE")
        .filter(Seller.status == "APPROVED")
    )


def serialize_product(p: Product, *, can_purchase: bool | None = None) -> dict:
    data = {
        "id": p.id,
        "seller_id": p.seller_id,
        "name": p.name,
        "description": p.description,
        "price_cents": p.price_cents,
        "image_url": p.image_url,
        "images": [{"id": img.id, "image_url": img.image_url, "display_order": img.display_order} for img in p.images],
        "category_id": p.category_id,
        "category_name": p.category.name if p.category else None,
        "attributes": sorted(
            (serialize_attribute_value(v) for v in p.attribute_values),
            key=lambda a: (a["display_order"], a["attribute_definition_id"]),
        ),
        "is_kappa_branded": p.is_kappa_branded,
        "status": p.status,
        "created_at": iso(p.created_at),
        "updated_at": iso(p.updated_at),
    }
    if p.seller is not None:
        data["seller"] = {
            "id": p.seller.id,
            "name": p.seller.name,
            "business_name": p.seller.business_name,
            "slug": p.seller.slug,
            "sponsoring_chapter_id": p.seller.sponsoring_chapter_id,
            "store_logo_url": p.seller.store_logo_url,
        }
    if can_purchase is not None:
        data["can_purchase"] = can_purchase
    return data


def serialize_category(c: ProductCategory) -> dict:
    return {"id": c.id, "name": c.name, "description": c.description, "display_order": c.display_order}
