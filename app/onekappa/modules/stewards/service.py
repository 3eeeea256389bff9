from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from app.onekappa.audit import record_event
from app.onekappa.constants import DEFAULT_STEWARD_PLATFORM_FEE_RATE
from app.onekappa.modules.chapters.models import Chapter
from app.onekappa.modules.members.service import member_for_user
from app.onekappa.modules.platform_settings.service import get_setting
from app.onekappa.modules.products.models import ProductCategory
from app.onekappa.modules.stewards.models import Steward, StewardClaim, StewardListing, StewardListingImage
from app.onekappa.rbac import grant_role
from app.onekappa.utils import clean_str, iso, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onekappa.models import User
    from app.onekappa.modules.payments.stripe_client import StripeClient

logger = logging.getLogger(__name__)

LISTING_STATUSES = ("ACTIVE", "CLAIMED", "REMOVED")
CLAIMABLE_STATUSES = ("ACTIVE", "CLAIMED")
# claims that hold a listing; FAILED and REFUND_REQUIRED release it
OPEN_CLAIM_STATUSES = ("PENDING", "PAID")


class StewardCheckoutError(ValueError):
    """Claim checkout refused; carries the HTTP status the handler should return."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


# ---- Stewards ----

def steward_for_user(s: "Session", user: "User | None") -> Steward | None:
    if not user:
        return None
    return s.query(Steward).filter(Steward.user_id == user.id).one_or_none()


def apply_for_steward(s: "Session", user: "User", payload: dict) -> Steward:
    member = member_for_user(s, user)
    if not member or member.verification_status != "VERIFIED":
        raise ValueError("Only verified members can become stewards")
    if steward_for_user(s, user):
        raise ValueError("You have already applied to be a steward")

    chapter_id = parse_int(payload.get("sponsoring_chapter_id")) or member.initiated_chapter_id
    if not chapter_id or not s.get(Chapter, chapter_id):
        raise ValueError("Sponsoring chapter not found")

    now = datetime.utcnow()
    steward = Steward(
        user_id=user.id,
        sponsoring_chapter_id=chapter_id,
        status="PENDING",
        created_at=now,
        updated_at=now,
    )
    s.add(steward)
    s.flush()
    record_event(
        s,
        actor=user,
        action="steward.apply",
        entity_type="Steward",
        entity_id=str(steward.id),
        metadata={"sponsoring_chapter_id": chapter_id},
    )
    return steward


def decide_steward(
    s: "Session",
    steward: Steward,
    approved: bool,
    actor: "User",
    stripe: "StripeClient | None" = None,
    reason: str | None = None,
) -> list[str]:
    """Approve or reject a steward. Returns warnings for side effects that did not happen."""
    from app.onekappa.mailer import send_application_decision_email
    from app.onekappa.modules.payments.stripe_client import StripeError

    warnings: list[str] = []
    old_status = steward.status
    steward.status = "APPROVED" if approved else "REJECTED"
    if reason:
        steward.verification_notes = reason
    steward.updated_at = datetime.utcnow()

    if approved:
        grant_role(s, steward.user, "steward")
        if stripe is None:
            warnings.append("Stripe is not configured; the steward needs a Stripe account before listings can be claimed.")
        elif not steward.stripe_account_id:
            try:
                account = stripe.create_express_account(steward.user.email)
                steward.stripe_account_id = account.get("id")
            except StripeError as e:
                logger.error("STEWARD: Stripe account creation failed for steward_id=%s: %s", steward.id, e)
                warnings.append(f"Stripe account could not be created: {e}")

    ok, detail = send_application_decision_email(
        "steward", steward.user.email, steward.user.name or steward.user.email, approved=approved
    )
    if not ok:
        warnings.append(f"Decision email not sent: {detail}")

    record_event(
        s,
        actor=actor,
        action="steward.approve" if approved else "steward.reject",
        entity_type="Steward",
        entity_id=str(steward.id),
        reason=reason,
        metadata={"old": old_status, "new": steward.status, "warnings": warnings},
    )
    return warnings


# ---- Listings ----

def validate_listing_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors = []
    if not partial or "name" in payload:
        if not clean_str(payload.get("name")):
            errors.append("Name is required.")
    for field, label in (("shipping_cost_cents", "Shipping cost"), ("chapter_donation_cents", "Chapter donation")):
        if not partial or field in payload:
            value = parse_int(payload.get(field))
            if value is None or value < 0:
                errors.append(f"{label} must be a non-negative whole number of cents.")
    chapter = payload.get("sponsoring_chapter_id")
    if chapter not in (None, "") and parse_int(chapter) is None:
        errors.append("Invalid sponsoring chapter.")
    category = payload.get("category_id")
    if category not in (None, "") and parse_int(category) is None:
        errors.append("Invalid category.")
    return errors


def _check_refs(s: "Session", chapter_id: int | None, category_id: int | None) -> None:
    if not chapter_id or not s.get(Chapter, chapter_id):
        raise ValueError("Sponsoring chapter not found")
    if category_id and not s.get(ProductCategory, category_id):
        raise ValueError("Category not found")


def create_listing(
    s: "Session",
    steward: Steward,
    payload: dict,
    user: "User",
    image_urls: list[str] | None = None,
) -> StewardListing:
    chapter_id = parse_int(payload.get("sponsoring_chapter_id")) or steward.sponsoring_chapter_id
    category_id = parse_int(payload.get("category_id"))
    _check_refs(s, chapter_id, category_id)
    image_urls = [u for u in (image_urls or []) if u]
    if not image_urls and clean_str(payload.get("image_url")):
        image_urls = [clean_str(payload.get("image_url"))]

    now = datetime.utcnow()
    listing = StewardListing(
        steward_id=steward.id,
        name=clean_str(payload.get("name")) or "",
        description=clean_str(payload.get("description")),
        image_url=image_urls[0] if image_urls else None,
        shipping_cost_cents=parse_int(payload.get("shipping_cost_cents")) or 0,
        chapter_donation_cents=parse_int(payload.get("chapter_donation_cents")) or 0,
        sponsoring_chapter_id=chapter_id,
        category_id=category_id,
        status="ACTIVE",
        created_at=now,
        updated_at=now,
    )
    add_listing_images(listing, image_urls)
    s.add(listing)
    s.flush()
    record_event(
        s,
        actor=user,
        action="steward_listing.create",
        entity_type="StewardListing",
        entity_id=str(listing.id),
        metadata={
            "steward_id": steward.id,
            "shipping_cost_cents": listing.shipping_cost_cents,
            "chapter_donation_cents": listing.chapter_donation_cents,
            "images": len(listing.images),
        },
    )
    return listing


def add_listing_images(listing: StewardListing, image_urls: list[str]) -> None:
    start = len(listing.images)
    for i, url in enumerate(image_urls):
        listing.images.append(StewardListingImage(image_url=url, display_order=start + i))
    if image_urls and not listing.image_url:
        listing.image_url = image_urls[0]


def update_listing(
    s: "Session",
    listing: StewardListing,
    payload: dict,
    user: "User",
    image_urls: list[str] | None = None,
) -> StewardListing:
    """Edit an ACTIVE listing. Uploaded images are appended after the existing ones."""
    if listing.status != "ACTIVE":
        raise ValueError("Only active listings can be edited")
    changes: dict = {}
    for field in ("name", "description", "image_url"):
        if field in payload:
            new = clean_str(payload.get(field))
            if field == "name" and not new:
                continue
            if new != getattr(listing, field):
                changes[field] = "updated"
                setattr(listing, field, new)
    for field in ("shipping_cost_cents", "chapter_donation_cents"):
        if field in payload:
            new = parse_int(payload.get(field))
            if new is not None and new != getattr(listing, field):
                changes[field] = {"old": getattr(listing, field), "new": new}
                setattr(listing, field, new)
    if "sponsoring_chapter_id" in payload or "category_id" in payload:
        chapter_id = parse_int(payload.get("sponsoring_chapter_id")) or listing.sponsoring_chapter_id
        category_id = (
            parse_int(payload.get("category_id")) if "category_id" in payload else listing.category_id
        )
        _check_refs(s, chapter_id, category_id)
        listing.sponsoring_chapter_id = chapter_id
        listing.category_id = category_id
        changes["refs"] = {"sponsoring_chapter_id": chapter_id, "category_id": category_id}
    if image_urls:
        add_listing_images(listing, image_urls)
        changes["images_added"] = len(image_urls)
    listing.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="steward_listing.edit",
        entity_type="StewardListing",
        entity_id=str(listing.id),
        metadata={"changes": changes},
    )
    return listing


def open_claim_for_listing(s: "Session", listing_id: int) -> StewardClaim | None:
    return (
        s.query(StewardClaim)
        .filter(StewardClaim.listing_id == listing_id)
        .filter(StewardClaim.status.in_(OPEN_CLAIM_STATUSES))
        .order_by(StewardClaim.id.asc())
        .first()
    )


def remove_listing(s: "Session", listing: StewardListing, user: "User") -> StewardListing:
    if listing.claimed_by_fraternity_member_id or open_claim_for_listing(s, listing.id):
        raise ValueError("A claimed listing cannot be removed")
    old_status = listing.status
    listing.status = "REMOVED"
    listing.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="steward_listing.remove",
        entity_type="StewardListing",
        entity_id=str(listing.id),
        metadata={"old": old_status},
    )
    return listing


# ---- Fees ----

def calculate_steward_platform_fee(s: "Session", shipping_cents: int, donation_cents: int) -> int:
    """
    Platform fee for a claim. A percentage setting (0 < p <= 1) applies to
    shipping + donation; otherwise a flat cents setting; otherwise the default rate.
    """
    raw_pct = (get_setting(s, "steward_platform_fee_percentage") or "").strip()
    if raw_pct:
        try:
            pct = Decimal(raw_pct)
        except InvalidOperation:
            pct = None
        if pct is not None and pct.is_finite() and 0 < pct <= 1:
            return int(round(float(pct) * (shipping_cents + donation_cents)))

    raw_flat = (get_setting(s, "steward_platform_fee_flat_cents") or "").strip()
    if raw_flat:
        flat = parse_int(raw_flat)
        if flat is not None and flat >= 0:
            return flat

    return int(round(DEFAULT_STEWARD_PLATFORM_FEE_RATE * (shipping_cents + donation_cents)))


def fee_preview(s: "Session", listing: StewardListing) -> dict:
    fee = calculate_steward_platform_fee(s, listing.shipping_cost_cents, listing.chapter_donation_cents)
    return {
        "shipping_cents": listing.shipping_cost_cents,
        "platform_fee_cents": fee,
        "chapter_donation_cents": listing.chapter_donation_cents,
        "total_amount_cents": listing.shipping_cost_cents + fee + listing.chapter_donation_cents,
    }


# ---- Claim checkout ----

def build_steward_session_params(
    listing: StewardListing,
    *,
    fees: dict,
    buyer_email: str,
    steward_account_id: str,
    chapter_account_id: str,
    transfer_group: str,
    frontend_url: str,
) -> dict:
    line_items = []
    for label, amount in (
        ("Shipping", fees["shipping_cents"]),
        ("Platform Fee", fees["platform_fee_cents"]),
        ("Chapter Donation", fees["chapter_donation_cents"]),
    ):
        if amount > 0:
            line_items.append(
                {
                    "price_data": {
                        "currency": "usd",
                        "product_data": {"name": f"{label}: {listing.name}"},
                        "unit_amount": amount,
                    },
                    "quantity": 1,
                }
            )
    metadata = {
        "listing_id": str(listing.id),
        "type": "steward_claim",
        "steward_account_id": steward_account_id,
        "chapter_account_id": chapter_account_id,
        "chapter_donation_cents": str(fees["chapter_donation_cents"]),
        "shipping_cents": str(fees["shipping_cents"]),
        "transfer_group": transfer_group,
    }
    return {
        "mode": "payment",
        "customer_email": buyer_email,
        "line_items": line_items,
        "payment_intent_data": {"transfer_group": transfer_group, "metadata": metadata},
        "metadata": metadata,
        "success_url": f"{frontend_url}/steward-checkout/{listing.id}/success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{frontend_url}/steward-listing/{listing.id}",
    }


def create_steward_checkout(
    s: "Session",
    listing_id: int,
    user: "User",
    stripe: "StripeClient",
    frontend_url: str,
) -> tuple[StewardClaim, dict]:
    """
    Lock the listing, open a Checkout session and record a PENDING claim.
    The caller commits on success and rolls back on any exception.
    """
    member = member_for_user(s, user)
    if not member:
        raise StewardCheckoutError("Member profile required", 403)

    listing = (
        s.query(StewardListing)
        .filter(StewardListing.id == listing_id)
        .with_for_update()
        .one_or_none()
    )
    if not listing:
        raise StewardCheckoutError("Listing not found", 404)
    if listing.status not in CLAIMABLE_STATUSES or listing.claimed_by_fraternity_member_id:
        raise StewardCheckoutError("Listing is not available for claiming")
    # the row lock above serializes concurrent claims on this listing
    if open_claim_for_listing(s, listing.id):
        raise StewardCheckoutError("Listing is not available for claiming", 409)

    chapter = s.get(Chapter, listing.sponsoring_chapter_id)
    if not chapter:
        raise StewardCheckoutError("Chapter not found", 404)
    if not chapter.stripe_account_id:
        raise StewardCheckoutError("Chapter Stripe account not set up. Please contact admin.")
    steward = s.get(Steward, listing.steward_id)
    if not steward:
        raise StewardCheckoutError("Steward not found", 404)
    if not steward.stripe_account_id:
        raise StewardCheckoutError("Steward Stripe account not set up. Please contact admin.")

    fees = fee_preview(s, listing)
    if fees["total_amount_cents"] <= 0:
        raise StewardCheckoutError("Nothing to charge for this listing")

    transfer_group = f"steward_claim_{listing.id}_{uuid.uuid4().hex[:12]}"
    params = build_steward_session_params(
        listing,
        fees=fees,
        buyer_email=user.email,
        steward_account_id=steward.stripe_account_id,
        chapter_account_id=chapter.stripe_account_id,
        transfer_group=transfer_group,
        frontend_url=frontend_url,
    )
    session = stripe.create_checkout_session(params, idempotency_key=transfer_group)

    now = datetime.utcnow()
    claim = StewardClaim(
        listing_id=listing.id,
        claimant_fraternity_member_id=member.id,
        stripe_session_id=session["id"],
        total_amount_cents=fees["total_amount_cents"],
        shipping_cents=fees["shipping_cents"],
        platform_fee_cents=fees["platform_fee_cents"],
        chapter_donation_cents=fees["chapter_donation_cents"],
        status="PENDING",
        created_at=now,
        updated_at=now,
    )
    s.add(claim)
    listing.status = "CLAIMED"
    listing.updated_at = now
    s.flush()

    record_event(
        s,
        actor=user,
        action="steward_claim.create",
        entity_type="StewardClaim",
        entity_id=str(claim.id),
        metadata={"listing_id": listing.id, "stripe_session_id": claim.stripe_session_id, **fees},
    )
    logger.info("CHECKOUT: steward claim %s opened for listing_id=%s", claim.id, listing.id)
    return claim, session


# ---- Serialization ----

def serialize_steward(st: Steward) -> dict:
    return {
        "id": st.id,
        "user_id": st.user_id,
        "email": st.user.email if st.user else None,
        "name": st.user.name if st.user else None,
        "sponsoring_chapter_id": st.sponsoring_chapter_id,
        "status": st.status,
        "verification_status": st.verification_status,
        "verification_notes": st.verification_notes,
        "stripe_account_id": st.stripe_account_id,
        "created_at": iso(st.created_at),
    }


def serialize_listing(listing: StewardListing, *, fees: dict | None = None) -> dict:
    data = {
        "id": listing.id,
        "steward_id": listing.steward_id,
        "name": listing.name,
        "description": listing.description,
        "image_url": listing.image_url,
        "images": [
            {"id": img.id, "image_url": img.image_url, "display_order": img.display_order}
            for img in listing.images
        ],
        "shipping_cost_cents": listing.shipping_cost_cents,
        "chapter_donation_cents": listing.chapter_donation_cents,
        "sponsoring_chapter_id": listing.sponsoring_chapter_id,
        "category_id": listing.category_id,
        "status": listing.status,
        "claimed_by_fraternity_member_id": listing.claimed_by_fraternity_member_id,
        "claimed_at": iso(listing.claimed_at),
        "created_at": iso(listing.created_at),
        "updated_at": iso(listing.updated_at),
    }
    if fees is not None:
        data["fees"] = fees
    return data


def serialize_claim(claim: StewardClaim) -> dict:
    return {
        "id": claim.id,
        "listing_id": claim.listing_id,
        "listing_name": claim.listing.name if claim.listing else None,
        "claimant_fraternity_member_id": claim.claimant_fraternity_member_id,
        "stripe_session_id": claim.stripe_session_id,
        "total_amount_cents": claim.total_amount_cents,
        "shipping_cents": claim.shipping_cents,
        "platform_fee_cents": claim.platform_fee_cents,
        "chapter_donation_cents": claim.chapter_donation_cents,
        "status": claim.status,
        "created_at": iso(claim.created_at),
    }
