from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify

from app.onekappa.db import db_session
from app.onekappa.modules.checkout.models import Order
from app.onekappa.modules.checkout.service import (
    create_product_checkout,
    record_purchase_blocked,
    serialize_order,
    validate_product_for_purchase,
)
from app.onekappa.modules.members.service import is_verified_member
from app.onekappa.modules.payments.stripe_client import StripeError, stripe_client_from_config
from app.onekappa.modules.products.service import serialize_product
from app.onekappa.utils import clean_str, is_valid_email, optional_user, parse_int, request_payload

logger = logging.getLogger(__name__)

bp = Blueprint("checkout", __name__)


@bp.post("/<int:product_id>")
def create_session(product_id: int):
    s = db_session()
    user = optional_user()
    payload = request_payload()

    buyer_email = clean_str(payload.get("buyer_email")) or (user.email if user else None)
    if not is_valid_email(buyer_email):
        return jsonify({"error": "A valid buyer email is required"}), 400
    shipping_cents = parse_int(payload.get("shipping_cents")) or 0
    if shipping_cents < 0:
        return jsonify({"error": "Shipping must not be negative"}), 400
    shipping_address = payload.get("shipping_address")
    if shipping_address is not None and not isinstance(shipping_address, dict):
        return jsonify({"error": "shipping_address must be an object"}), 400

    stripe = stripe_client_from_config(current_app.config)
    check = validate_product_for_purchase(s, product_id, is_verified_member(s, user), stripe)
    if not check.ok:
        if check.code == "STRIPE_NOT_CONNECTED":
            record_purchase_blocked(s, check.product, check.seller, buyer_email)
            s.commit()
        logger.info("CHECKOUT: product_id=%s refused with %s", product_id, check.code)
        return jsonify({"error": check.code, "message": check.error, "code": check.code}), check.http_status

    if stripe is None:
        return jsonify({"error": "Payments are not configured"}), 503

    frontend_url = (current_app.config.get("FRONTEND_URL") or "http://localhost:3000").rstrip("/")
    try:
        order, session = create_product_checkout(
            s,
            check,
            buyer_email=buyer_email,
            user=user,
            stripe=stripe,
            frontend_url=frontend_url,
            shipping_cents=shipping_cents,
            shipping_address=shipping_address,
        )
    except StripeError as e:
        s.rollback()
        logger.error("CHECKOUT: session creation failed for product_id=%s: %s", product_id, e)
        return jsonify({"error": "Failed to create checkout session"}), 500
    s.commit()
    return jsonify({"sessionId": session.get("id"), "url": session.get("url"), "order_id": order.id})


@bp.get("/session/<session_id>")
def session_status(session_id: str):
    order = db_session().query(Order).filter(Order.stripe_session_id == session_id).one_or_none()
    if not order:
        return jsonify({"error": "Order not found"}), 404
    return jsonify({"order": serialize_order(order), "product": serialize_product(order.product)})
