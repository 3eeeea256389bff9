from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from app.onekappa.db import db_session
from app.onekappa.modules.products.models import Product
from app.onekappa.modules.sellers.models import Seller
from app.onekappa.modules.shipping.service import rates_for_seller, validate_address_payload
from app.onekappa.utils import parse_int, request_payload

bp = Blueprint("shipping", __name__)


@bp.post("/rates")
def shipping_rates():
    payload = request_payload()
    to_address, errors = validate_address_payload(payload.get("toAddress"))
    if errors:
        return jsonify({"error": "Invalid request body", "details": errors}), 400

    s = db_session()
    api_key = current_app.config.get("EASYPOST_API_KEY") or ""
    product_id = parse_int(payload.get("productId"))
    seller_id = parse_int(payload.get("sellerId"))

    if product_id:
        product = s.get(Product, product_id)
        if not product:
            return jsonify({"error": "Product not found"}), 404
        seller = s.get(Seller, product.seller_id)
        if not seller:
            return jsonify({"error": "Seller not found"}), 404
        return jsonify({"rates": rates_for_seller(api_key, seller, to_address)})

    if seller_id:
        seller = s.get(Seller, seller_id)
        if not seller:
            return jsonify({"error": "Seller not found"}), 404
        return jsonify({"rates": rates_for_seller(api_key, seller, to_address)})

    return jsonify({"error": "Either productId or sellerId must be provided"}), 400
