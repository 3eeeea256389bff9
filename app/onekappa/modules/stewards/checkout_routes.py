from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify

from app.onekappa.db import db_session
from app.onekappa.modules.members.service import require_verified_member
from app.onekappa.modules.payments.stripe_client import StripeError, stripe_client_from_config
from app.onekappa.modules.stewards.service import StewardCheckoutError, create_steward_checkout
from app.onekappa.rbac import login_required
from app.onekappa.utils import current_user

logger = logging.getLogger(__name__)

bp = Blueprint("steward_checkout", __name__)


@bp.post("/<int:listing_id>")
@login_required
@require_verified_member
def claim_listing(listing_id: int):
    stripe = stripe_client_from_config(current_app.config)
    if stripe is None:
        return jsonify({"error": "Payments are not configured"}), 503

    s = db_session()
    frontend_url = (current_app.config.get("FRONTEND_URL") or "http://localhost:3000").rstrip("/")
    try:
        claim, session = create_steward_checkout(s, listing_id, current_user(), stripe, frontend_url)
    except StewardCheckoutError as e:
        s.rollback()
        return jsonify({"error": str(e)}), e.status
    except StripeError as e:
        s.rollback()
        logger.error("CHECKOUT: steward session failed for listing_id=%s: %s", listing_id, e)
        return jsonify({"error": "Failed to create checkout session"}), 500
    s.commit()
    return jsonify(
        {
            "sessionId": session.get("id"),
            "url": session.get("url"),
            "claim_id": claim.id,
            "total_amount_cents": claim.total_amount_cents,
        }
    )
