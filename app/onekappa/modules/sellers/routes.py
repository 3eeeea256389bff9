from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from app.onekappa.db import db_session
from app.onekappa.mailer import send_application_received_email
from app.onekappa.modules.payments.stripe_client import StripeError, stripe_client_from_config
from app.onekappa.modules.products.models import Product
from app.onekappa.modules.products.service import public_products_query, serialize_product
from app.onekappa.modules.sellers.models import Seller
from app.onekappa.modules.sellers.service import (
    seller_for_user,
    seller_metrics,
    serialize_seller,
    start_stripe_onboarding,
    submit_seller_application,
    update_seller_profile,
    validate_seller_application,
)
from app.onekappa.rbac import login_required
from app.onekappa.storage import StorageError
from app.onekappa.utils import current_user, optional_user, request_payload, uploaded_image_url

bp = Blueprint("sellers", __name__)


@bp.post("/apply")
def apply():
    s = db_session()
    payload = request_payload()
    user = optional_user()
    if user and not payload.get("email"):
        payload["email"] = user.email

    errors = validate_seller_application(payload)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    try:
        headshot_url = uploaded_image_url("headshot", "headshots")
        store_logo_url = uploaded_image_url("store_logo", "logos")
        seller = submit_seller_application(
            s, payload, user, headshot_url=headshot_url, store_logo_url=store_logo_url
        )
    except (ValueError, StorageError) as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    if seller.status == "PENDING":
        send_application_received_email("seller", seller.email, seller.name)
    return jsonify(serialize_seller(seller, private=True)), 201


@bp.get("")
def sellers_list():
    sellers = db_session().query(Seller).filter(Seller.status == "APPROVED").order_by(Seller.name.asc()).all()
    return jsonify([serialize_seller(x) for x in sellers])


@bp.get("/<int:seller_id>")
def seller_detail(seller_id: int):
    seller = db_session().get(Seller, seller_id)
    if not seller or seller.status != "APPROVED":
        return jsonify({"error": "Seller not found"}), 404
    return jsonify(serialize_seller(seller))


@bp.get("/slug/<slug>")
def seller_by_slug(slug: str):
    s = db_session()
    seller = s.query(Seller).filter(Seller.slug == slug.lower()).one_or_none()
    if not seller or seller.status != "APPROVED":
        return jsonify({"error": "Seller not found"}), 404
    products = (
        public_products_query(s).filter(Product.seller_id == seller.id).order_by(Product.created_at.desc()).all()
    )
    data = serialize_seller(seller)
    data["products"] = [serialize_product(p) for p in products]
    return jsonify(data)


@bp.get("/me")
@login_required
def me():
    seller = seller_for_user(db_session(), current_user())
    if not seller:
        return jsonify({"error": "Seller profile not found"}), 404
    return jsonify(serialize_seller(seller, private=True))


@bp.put("/me")
@login_required
def me_update():
    s = db_session()
    seller = seller_for_user(s, current_user())
    if not seller:
        return jsonify({"error": "Seller profile not found"}), 404
    payload = request_payload()
    try:
        payload["headshot_url"] = uploaded_image_url("headshot", "headshots")
        payload["store_logo_url"] = uploaded_image_url("store_logo", "logos")
    except StorageError as e:
        return jsonify({"error": str(e)}), 400
    update_seller_profile(s, seller, payload, current_user())
    s.commit()
    return jsonify(serialize_seller(seller, private=True))


@bp.get("/me/metrics")
@login_required
def me_metrics():
    s = db_session()
    seller = seller_for_user(s, current_user())
    if not seller:
        return jsonify({"error": "Seller profile not found"}), 404
    return jsonify(seller_metrics(s, seller))


@bp.post("/me/stripe-onboarding")
@login_required
def me_stripe_onboarding():
    s = db_session()
    seller = seller_for_user(s, current_user())
    if not seller or seller.status != "APPROVED":
        return jsonify({"error": "Only approved sellers can connect Stripe"}), 403
    stripe = stripe_client_from_config(current_app.config)
    if stripe is None:
        return jsonify({"error": "Payments are not configured"}), 503
    try:
        url = start_stripe_onboarding(s, seller, stripe, current_app.config["FRONTEND_URL"], current_user())
    except StripeError as e:
        s.rollback()
        current_app.logger.error("Stripe onboarding failed for seller_id=%s: %s", seller.id, e)
        return jsonify({"error": "Payment processing error", "details": str(e)}), 502
    s.commit()
    return jsonify({"url": url, "stripe_account_id": seller.stripe_account_id})
