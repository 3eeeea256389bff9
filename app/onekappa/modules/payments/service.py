"""
Stripe webhook event handling.

Each handler is idempotent: an order or claim only moves out of PENDING once,
so Stripe's redelivery of the same event is harmless.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.onekappa.audit import record_event
from app.onekappa.modules.checkout.models import Order
from app.onekappa.modules.notifications.service import create_notification
from app.onekappa.modules.payments.stripe_client import StripeError
from app.onekappa.modules.products.models import Product
from app.onekappa.modules.stewards.models import StewardClaim, StewardListing

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onekappa.modules.payments.stripe_client import StripeClient

logger = logging.getLogger(__name__)


def handle_event(s: "Session", event: dict[str, Any], stripe: "StripeClient | None" = None) -> str:
    """Dispatch a verified Stripe event. Returns a short outcome string for logging."""
    event_type = event.get("type") or ""
    obj = ((event.get("data") or {}).get("object")) or {}
    if event_type == "checkout.session.completed":
        return handle_session_completed(s, obj, stripe)
    if event_type == "checkout.session.expired":
        return handle_session_expired(s, obj)
    return "ignored"


def handle_session_completed(s: "Session", session: dict[str, Any], stripe: "StripeClient | None") -> str:
    session_id = session.get("id")
    if not session_id:
        return "no-session-id"

    order = s.query(Order).filter(Order.stripe_session_id == session_id).one_or_none()
    if order is not None:
        return _mark_order_paid(s, order)

    claim = s.query(StewardClaim).filter(StewardClaim.stripe_session_id == session_id).one_or_none()
    if claim is not None:
        return _mark_claim_paid(s, claim, session, stripe)

    logger.warning("WEBHOOK: no order or claim for session %s", session_id)
    return "unknown-session"


def handle_session_expired(s: "Session", session: dict[str, Any]) -> str:
    session_id = session.get("id")
    if not session_id:
        return "no-session-id"

    order = s.query(Order).filter(Order.stripe_session_id == session_id).one_or_none()
    if order is not None:
        if order.status != "PENDING":
            return "order-unchanged"
        order.status = "FAILED"
        order.updated_at = datetime.utcnow()
        record_event(s, actor=None, action="order.expired", entity_type="Order", entity_id=str(order.id))
        return "order-failed"

    claim = s.query(StewardClaim).filter(StewardClaim.stripe_session_id == session_id).one_or_none()
    if claim is not None:
        if claim.status != "PENDING":
            return "claim-unchanged"
        now = datetime.utcnow()
        claim.status = "FAILED"
        claim.updated_at = now
        listing = s.get(StewardListing, claim.listing_id)
        if listing is not None and listing.status == "CLAIMED" and not listing.claimed_by_fraternity_member_id:
            listing.status = "ACTIVE"
            listing.updated_at = now
        record_event(
            s,
            actor=None,
            action="steward_claim.expired",
            entity_type="StewardClaim",
            entity_id=str(claim.id),
            metadata={"listing_id": claim.listing_id},
        )
        return "claim-failed"

    return "unknown-session"


def _mark_order_paid(s: "Session", order: Order) -> str:
    if order.status != "PENDING":
        return "order-unchanged"
    now = datetime.utcnow()
    order.status = "PAID"
    order.updated_at = now

    product = s.get(Product, order.product_id)
    product_name = product.name if product else f"product #{order.product_id}"
    if product is not None and product.status == "ACTIVE":
        product.status = "SOLD"
        product.updated_at = now

    create_notification(
        s,
        user_email=order.buyer_email,
        type="ORDER_CONFIRMED",
        title="Order Confirmed",
        message=f'Your order for "{product_name}" has been confirmed.',
        related_product_id=order.product_id,
        related_order_id=order.id,
    )
    record_event(
        s,
        actor=None,
        action="order.paid",
        entity_type="Order",
        entity_id=str(order.id),
        metadata={"product_id": order.product_id, "amount_cents": order.amount_cents},
    )
    logger.info("WEBHOOK: order %s marked PAID", order.id)
    return "order-paid"


def _mark_claim_paid(
    s: "Session",
    claim: StewardClaim,
    session: dict[str, Any],
    stripe: "StripeClient | None",
) -> str:
    if claim.status != "PENDING":
        return "claim-unchanged"
    now = datetime.utcnow()
    listing = s.get(StewardListing, claim.listing_id, with_for_update=True)
    holder = listing.claimed_by_fraternity_member_id if listing is not None else None
    if holder and holder != claim.claimant_fraternity_member_id:
        # paid for a listing someone else already owns: no transfers, refund by hand
        claim.status = "REFUND_REQUIRED"
        claim.updated_at = now
        record_event(
            s,
            actor=None,
            action="steward_claim.refund_required",
            entity_type="StewardClaim",
            entity_id=str(claim.id),
            metadata={"listing_id": claim.listing_id, "claimed_by_fraternity_member_id": holder},
        )
        logger.error(
            "WEBHOOK: claim %s paid for listing_id=%s already claimed by member %s; flagged for refund",
            claim.id,
            claim.listing_id,
            holder,
        )
        return "claim-refund-required"

    claim.status = "PAID"
    claim.updated_at = now
    if listing is not None:
        listing.status = "CLAIMED"
        listing.claimed_by_fraternity_member_id = claim.claimant_fraternity_member_id
        listing.claimed_at = now
        listing.updated_at = now

    transfers = issue_claim_transfers(claim, session.get("metadata") or {}, stripe)
    record_event(
        s,
        actor=None,
        action="steward_claim.paid",
        entity_type="StewardClaim",
        entity_id=str(claim.id),
        metadata={"listing_id": claim.listing_id, "transfers": transfers},
    )
    logger.info("WEBHOOK: steward claim %s marked PAID", claim.id)
    return "claim-paid"


def issue_claim_transfers(
    claim: StewardClaim,
    metadata: dict[str, Any],
    stripe: "StripeClient | None",
) -> list[dict[str, Any]]:
    """
    Move shipping to the steward and the donation to the chapter. Failures are
    logged and reported in the result; the claim stays PAID either way.
    """
    results: list[dict[str, Any]] = []
    transfer_group = metadata.get("transfer_group") or f"steward_claim_{claim.listing_id}"
    legs = (
        ("shipping", claim.shipping_cents, metadata.get("steward_account_id")),
        ("donation", claim.chapter_donation_cents, metadata.get("chapter_account_id")),
    )
    for leg, amount, destination in legs:
        if amount <= 0:
            continue
        if not destination:
            results.append({"leg": leg, "ok": False, "error": "missing destination"})
            logger.error("WEBHOOK: claim %s has no %s destination", claim.id, leg)
            continue
        if stripe is None:
            results.append({"leg": leg, "ok": False, "error": "stripe not configured"})
            logger.error("WEBHOOK: cannot transfer %s for claim %s; Stripe not configured", leg, claim.id)
            continue
        try:
            transfer = stripe.create_transfer(
                amount_cents=amount,
                destination=destination,
                transfer_group=transfer_group,
                metadata={"claim_id": str(claim.id), "listing_id": str(claim.listing_id), "leg": leg},
                idempotency_key=f"steward-claim-{claim.id}-{leg}",
            )
            results.append({"leg": leg, "ok": True, "id": transfer.get("id"), "amount_cents": amount})
        except StripeError as e:
            logger.error("WEBHOOK: %s transfer failed for claim %s: %s", leg, claim.id, e)
            results.append({"leg": leg, "ok": False, "error": str(e)})
    return results
