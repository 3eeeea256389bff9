from __future__ import annotations

from flask import Blueprint, jsonify

from app.onekappa.db import db_session
from app.onekappa.modules.favorites.models import Favorite
from app.onekappa.modules.products.models import Product
from app.onekappa.modules.products.service import serialize_product
from app.onekappa.rbac import login_required
from app.onekappa.utils import current_user

bp = Blueprint("favorites", __name__)


def _favorite(s, product_id: int) -> Favorite | None:
    return (
        s.query(Favorite)
        .filter(Favorite.user_email == current_user().email.lower())
        .filter(Favorite.product_id == product_id)
        .one_or_none()
    )


@bp.get("")
@login_required
def favorites_list():
    rows = (
        db_session()
        .query(Favorite)
        .filter(Favorite.user_email == current_user().email.lower())
        .order_by(Favorite.created_at.desc())
        .all()
    )
    return jsonify([{**serialize_product(f.product), "favorited_at": f.created_at.isoformat()} for f in rows])


@bp.get("/check/<int:product_id>")
@login_required
def favorite_check(product_id: int):
    return jsonify({"favorited": _favorite(db_session(), product_id) is not None})


@bp.post("/<int:product_id>")
@login_required
def favorite_add(product_id: int):
    s = db_session()
    if not s.get(Product, product_id):
        return jsonify({"error": "Product not found"}), 404
    if _favorite(s, product_id) is None:
        s.add(Favorite(user_email=current_user().email.lower(), product_id=product_id))
        s.commit()
    return jsonify({"favorited": True, "product_id": product_id}), 201


@bp.delete("/<int:product_id>")
@login_required
def favorite_remove(product_id: int):
    s = db_session()
    fav = _favorite(s, product_id)
    if fav is None:
        return jsonify({"error": "Favorite not found"}), 404
    s.delete(fav)
    s.commit()
    return jsonify({"favorited": False, "product_id": product_id})
