from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.onekappa.db import db_session
from app.onekappa.modules.members.service import can_purchase_product, is_verified_member
from app.onekappa.modules.products.attributes import definitions_for_category, serialize_definition
from app.onekappa.modules.products.models import Product, ProductCategory
from app.onekappa.modules.products.service import (
    add_product_images,
    create_product,
    deactivate_product,
    public_products_query,
    serialize_category,
    serialize_product,
    update_product,
    validate_product_payload,
)
from app.onekappa.modules.sellers.models import Seller
from app.onekappa.modules.sellers.service import seller_for_user
from app.onekappa.rbac import require_permission, user_has_permission
from app.onekappa.storage import StorageError
from app.onekappa.utils import (
    current_user,
    optional_user,
    parse_bool,
    parse_int,
    request_payload,
    uploaded_image_urls,
)

bp = Blueprint("products", __name__)


def _uploaded_product_images() -> list[str]:
    return uploaded_image_urls("products", "images", "image")


def _own_seller_or_none():
    s = db_session()
    seller = seller_for_user(s, current_user())
    if not seller or seller.status != "APPROVED":
        return None
    return seller


# ---------- Browse ----------
@bp.get("")
def products_list():
    s = db_session()
    q = public_products_query(s)

    search = (request.args.get("q") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter((Product.name.ilike(like)) | (Product.description.ilike(like)))
    category_id = parse_int(request.args.get("category_id"))
    if category_id:
        q = q.filter(Product.category_id == category_id)
    seller_id = parse_int(request.args.get("seller_id"))
    if seller_id:
        q = q.filter(Product.seller_id == seller_id)
    if request.args.get("kappa") not in (None, ""):
        q = q.filter(Product.is_kappa_branded.is_(parse_bool(request.args.get("kappa"))))

    products = q.order_by(Product.created_at.desc(), Product.id.desc()).all()
    verified = is_verified_member(s, optional_user())
    return jsonify(
        [serialize_product(p, can_purchase=can_purchase_product(p.is_kappa_branded, verified)) for p in products]
    )


@bp.get("/categories")
def categories_list():
    s = db_session()
    cats = s.query(ProductCategory).order_by(ProductCategory.display_order.asc(), ProductCategory.name.asc()).all()
    return jsonify([serialize_category(c) for c in cats])


@bp.get("/categories/<int:category_id>/attributes")
def category_attributes(category_id: int):
    s = db_session()
    if not s.get(ProductCategory, category_id):
        return jsonify({"error": "Category not found"}), 404
    return jsonify([serialize_definition(d) for d in definitions_for_category(s, category_id)])


@bp.get("/mine")
@require_permission("products.manage")
def products_mine():
    seller = seller_for_user(db_session(), current_user())
    if not seller:
        return jsonify({"error": "Seller profile not found"}), 404
    products = (
        db_session().query(Product).filter(Product.seller_id == seller.id).order_by(Product.created_at.desc()).all()
    )
    return jsonify([serialize_product(p) for p in products])


@bp.get("/<int:product_id>")
def product_detail(product_id: int):
    s = db_session()
    product = s.get(Product, product_id)
    if not product:
        return jsonify({"error": "Product not found"}), 404
    user = optional_user()
    seller = s.get(Seller, product.seller_id)
    is_public = product.status in ("ACTIVE", "SOLD") and seller is not None and seller.status == "APPROVED"
    is_owner = bool(user and seller and seller.user_id == user.id)
    if not (is_public or is_owner or user_has_permission(user, "admin.moderate")):
        return jsonify({"error": "Product not found"}), 404
    verified = is_verified_member(s, user)
    return jsonify(serialize_product(product, can_purchase=can_purchase_product(product.is_kappa_branded, verified)))


# ---------- Seller management ----------
@bp.post("")
@require_permission("products.manage")
def product_create():
    s = db_session()
    seller = _own_seller_or_none()
    if seller is None:
        return jsonify({"error": "Only approved sellers can list products"}), 403

    payload = request_payload()
    errors = validate_product_payload(payload)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    try:
        image_urls = _uploaded_product_images()
        product = create_product(s, seller, payload, current_user(), image_urls=image_urls)
    except (ValueError, StorageError) as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_product(product)), 201


@bp.put("/<int:product_id>")
@require_permission("products.manage")
def product_update(product_id: int):
    s = db_session()
    product = s.get(Product, product_id)
    seller = _own_seller_or_none()
    if not product:
        abort(404)
    if seller is None or product.seller_id != seller.id:
        abort(403)

    payload = request_payload()
    errors = validate_product_payload(payload, partial=True)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    try:
        add_product_images(product, _uploaded_product_images())
        update_product(s, product, payload, current_user())
    except (ValueError, StorageError) as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_product(product))


@bp.delete("/<int:product_id>")
@require_permission("products.manage")
def product_delete(product_id: int):
    s = db_session()
    product = s.get(Product, product_id)
    seller = _own_seller_or_none()
    if not product:
        abort(404)
    if seller is None or product.seller_id != seller.id:
        abort(403)
    deactivate_product(s, product, current_user())
    s.commit()
    return jsonify({"ok": True, "id": product.id, "status": product.status})
