from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from app.onekappa.db import db_session
from app.onekappa.modules.payments.service import handle_event
from app.onekappa.modules.payments.stripe_client import (
    StripeSignatureError,
    stripe_client_from_config,
    verify_webhook_signature,
)

logger = logging.getLogger(__name__)

bp = Blueprint("webhook", __name__)


@bp.post("/stripe")
def stripe_webhook():
    sig = request.headers.get("Stripe-Signature")
    if not sig:
        return jsonify({"error": "Missing stripe-signature header"}), 400

    payload = request.get_data(cache=False)
    try:
        event = verify_webhook_signature(payload, sig, current_app.config.get("STRIPE_WEBHOOK_SECRET") or "")
    except StripeSignatureError as e:
        logger.warning("WEBHOOK: signature verification failed: %s", e)
        return jsonify({"error": f"Webhook Error: {e}"}), 400

    s = db_session()
    try:
        outcome = handle_event(s, event, stripe_client_from_config(current_app.config))
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        logger.exception("WEBHOOK: failed to process %s %s", event.get("type"), event.get("id"))
        outcome = "error"
    logger.info("WEBHOOK: %s %s -> %s", event.get("type"), event.get("id"), outcome)
    return jsonify({"received": True})
