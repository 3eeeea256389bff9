from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from app.onekappa.audit import record_event
from app.onekappa.modules.chapters.models import Chapter
from app.onekappa.modules.members.service import is_verified_member
from app.onekappa.modules.sellers.models import Seller
from app.onekappa.rbac import grant_role
from app.onekappa.utils import clean_str, iso, is_valid_email, parse_int, slugify

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onekappa.models import User
    from app.onekappa.modules.payments.stripe_client import StripeClient

logger = logging.getLogger(__name__)

MERCHANDISE_TYPES = ("KAPPA", "NON_KAPPA")

PROFILE_FIELDS = (
    "name",
    "business_name",
    "business_email",
    "website",
    "business_address_line1",
    "business_address_line2",
    "business_city",
    "business_state",
    "business_postal_code",
    "business_country",
)


def validate_seller_application(payload: dict) -> list[str]:
    errors = []
    if not clean_str(payload.get("name")):
        errors.append("Name is required.")
    if not is_valid_email(clean_str(payload.get("email"))):
        errors.append("A valid email is required.")
    if not parse_int(payload.get("sponsoring_chapter_id")):
        errors.append("Sponsoring chapter is required.")
    merchandise_type = (clean_str(payload.get("merchandise_type")) or "").upper()
    if merchandise_type and merchandise_type not in MERCHANDISE_TYPES:
        errors.append(f"Invalid merchandise type. Must be one of: {', '.join(MERCHANDISE_TYPES)}")
    if merchandise_type == "KAPPA" and not clean_str(payload.get("kappa_vendor_id")):
        errors.append("Kappa vendor ID is required for Kappa-branded merchandise.")
    business_email = clean_str(payload.get("business_email"))
    if business_email and not is_valid_email(business_email):
        errors.append("Business email is invalid.")
    social_links = payload.get("social_links")
    if social_links is not None and not isinstance(social_links, dict):
        errors.append("social_links must be an object.")
    return errors


def unique_slug(s: "Session", base: str, exclude_seller_id: int | None = None) -> str:
    root = slugify(base)
    candidate = root
    n = 2
    while True:
        q = s.query(Seller.id).filter(Seller.slug == candidate)
        if exclude_seller_id:
            q = q.filter(Seller.id != exclude_seller_id)
        if q.first() is None:
            return candidate
        candidate = f"{root}-{n}"
        n += 1


def submit_seller_application(
    s: "Session",
    payload: dict,
    user: "User | None",
    *,
    headshot_url: str | None = None,
    store_logo_url: str | None = None,
) -> Seller:
    chapter_id = parse_int(payload.get("sponsoring_chapter_id"))
    if not s.get(Chapter, chapter_id):
        raise ValueError("Sponsoring chapter not found")

    email = (clean_str(payload.get("email")) or "").lower()
    pending = (
        s.query(Seller)
        .filter(Seller.email == email)
        .filter(Seller.status.in_(("PENDING", "APPROVED")))
        .first()
    )
    if pending:
        raise ValueError("A seller application already exists for this email")

    name = clean_str(payload.get("name")) or ""
    now = datetime.utcnow()
    seller = Seller(
        user_id=user.id if user else None,
        email=email,
        name=name,
        sponsoring_chapter_id=chapter_id,
        business_name=clean_str(payload.get("business_name")),
        business_email=clean_str(payload.get("business_email")),
        kappa_vendor_id=clean_str(payload.get("kappa_vendor_id")),
        merchandise_type=(clean_str(payload.get("merchandise_type")) or "").upper() or None,
        website=clean_str(payload.get("website")),
        slug=unique_slug(s, clean_str(payload.get("slug")) or clean_str(payload.get("business_name")) or name),
        headshot_url=headshot_url,
        store_logo_url=store_logo_url,
        social_links=payload.get("social_links") or {},
        status="PENDING",
        created_at=now,
        updated_at=now,
    )
    s.add(seller)
    s.flush()

    record_event(
        s,
        actor=user,
        action="seller.apply",
        entity_type="Seller",
        entity_id=str(seller.id),
        metadata={"email": email, "sponsoring_chapter_id": chapter_id, "merchandise_type": seller.merchandise_type},
    )

    # Vendor-licensed verified members skip manual review.
    if seller.kappa_vendor_id and user and is_verified_member(s, user) and user.email.lower() == email:
        seller.status = "APPROVED"
        seller.verification_status = "AUTO_APPROVED"
        grant_role(s, user, "seller")
        record_event(s, actor=user, action="seller.auto_approve", entity_type="Seller", entity_id=str(seller.id))
        logger.info("SELLER: auto-approved seller_id=%s (vendor id + verified member)", seller.id)
    return seller


def approve_seller(s: "Session", seller: Seller, actor: "User", stripe: "StripeClient | None") -> list[str]:
    """
    Approve a seller application. Returns human-readable warnings for the steps
    that could not be completed (Stripe, email); the approval itself stands.
    """
    from app.onekappa.mailer import send_seller_approved_email
    from app.onekappa.models import User
    from app.onekappa.modules.notifications.service import notify_item_available
    from app.onekappa.modules.payments.stripe_client import StripeError
    from app.onekappa.modules.products.models import Product

    warnings: list[str] = []
    old_status = seller.status
    seller.status = "APPROVED"
    seller.updated_at = datetime.utcnow()

    user = s.get(User, seller.user_id) if seller.user_id else None
    if user is None:
        user = s.query(User).filter(User.email == seller.email).one_or_none()
    if user is not None:
        seller.user_id = user.id
        seller.invitation_token = None
        grant_role(s, user, "seller")
    elif not seller.invitation_token:
        seller.invitation_token = secrets.token_urlsafe(32)

    if stripe is None:
        warnings.append("Stripe is not configured; the seller must connect Stripe before receiving payments.")
    elif not seller.stripe_account_id:
        try:
            account = stripe.create_express_account(seller.business_email or seller.email)
            seller.stripe_account_id = account.get("id")
        except StripeError as e:
            logger.error("SELLER: Stripe account creation failed for seller_id=%s: %s", seller.id, e)
            warnings.append(f"Stripe account could not be created: {e}")

    ok, detail = send_seller_approved_email(seller.email, seller.name, seller.invitation_token)
    if not ok:
        warnings.append(f"Approval email not sent: {detail}")

    products = s.query(Product).filter(Product.seller_id == seller.id).filter(Product.status == "ACTIVE").all()
    for p in products:
        notify_item_available(s, p.id, p.name, exclude_email=seller.email)

    record_event(
        s,
        actor=actor,
        action="seller.approve",
        entity_type="Seller",
        entity_id=str(seller.id),
        metadata={"old": old_status, "new": "APPROVED", "user_id": seller.user_id, "warnings": warnings},
    )
    return warnings


def reject_seller(s: "Session", seller: Seller, actor: "User", reason: str | None = None) -> Seller:
    from app.onekappa.mailer import send_application_decision_email

    old_status = seller.status
    seller.status = "REJECTED"
    seller.verification_notes = reason or seller.verification_notes
    seller.updated_at = datetime.utcnow()
    send_application_decision_email("seller", seller.email, seller.name, approved=False)
    record_event(
        s,
        actor=actor,
        action="seller.reject",
        entity_type="Seller",
        entity_id=str(seller.id),
        reason=reason,
        metadata={"old": old_status, "new": "REJECTED"},
    )
    return seller


def claim_invitation(s: "Session", token: str, user: "User") -> Seller | None:
    """Link an approved seller invitation to a freshly registered account."""
    seller = s.query(Seller).filter(Seller.invitation_token == token).one_or_none()
    if not seller or seller.email != user.email.lower():
        return None
    seller.user_id = user.id
    seller.invitation_token = None
    seller.updated_at = datetime.utcnow()
    if seller.status == "APPROVED":
        grant_role(s, user, "seller")
    record_event(s, actor=user, action="seller.invitation_claimed", entity_type="Seller", entity_id=str(seller.id))
    return seller


def seller_for_user(s: "Session", user: "User | None") -> Seller | None:
    if not user:
        return None
    seller = s.query(Seller).filter(Seller.user_id == user.id).order_by(Seller.id.desc()).first()
    if seller:
        return seller
    return (
        s.query(Seller)
        .filter(Seller.email == user.email.lower())
        .filter(Seller.invitation_token.is_(None))
        .order_by(Seller.id.desc())
        .first()
    )


def update_seller_profile(s: "Session", seller: Seller, payload: dict, user: "User") -> Seller:
    changes = {}
    for field in PROFILE_FIELDS:
        if field not in payload:
            continue
        new = clean_str(payload.get(field))
        if field == "name" and not new:
            continue
        if field in ("business_state", "business_country") and new:
            new = new.upper()
        old = getattr(seller, field)
        if new != old:
            changes[field] = {"old": old, "new": new}
            setattr(seller, field, new)
    if "social_links" in payload and isinstance(payload.get("social_links"), dict):
        seller.social_links = payload["social_links"]
        changes["social_links"] = "updated"
    for url_field in ("headshot_url", "store_logo_url"):
        if payload.get(url_field):
            setattr(seller, url_field, payload[url_field])
    if "slug" in payload and clean_str(payload.get("slug")):
        seller.slug = unique_slug(s, payload["slug"], exclude_seller_id=seller.id)
    seller.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="seller.update",
        entity_type="Seller",
        entity_id=str(seller.id),
        metadata={"changes": changes},
    )
    return seller


def seller_metrics(s: "Session", seller: Seller) -> dict:
    from app.onekappa.modules.checkout.models import Order
    from app.onekappa.modules.products.models import Product

    product_ids = select(Product.id).where(Product.seller_id == seller.id)
    paid = (
        s.query(func.coalesce(func.sum(Order.amount_cents), 0), func.count(Order.id))
        .filter(Order.product_id.in_(product_ids))
        .filter(Order.status == "PAID")
        .one()
    )
    pending_orders = (
        s.query(func.count(Order.id))
        .filter(Order.product_id.in_(product_ids))
        .filter(Order.status == "PENDING")
        .scalar()
    )
    active_products = (
        s.query(func.count(Product.id))
        .filter(Product.seller_id == seller.id)
        .filter(Product.status == "ACTIVE")
        .scalar()
    )
    return {
        "total_sales_cents": int(paid[0] or 0),
        "total_orders": int(paid[1] or 0),
        "active_products": int(active_products or 0),
        "pending_orders": int(pending_orders or 0),
    }


def start_stripe_onboarding(s: "Session", seller: Seller, stripe: "StripeClient", frontend_url: str, user: "User") -> str:
    """Ensure the seller has a Connect account and return a fresh onboarding link."""
    if not seller.stripe_account_id:
        account = stripe.create_express_account(seller.business_email or seller.email)
        seller.stripe_account_id = account.get("id")
        seller.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="seller.stripe_account_created",
            entity_type="Seller",
            entity_id=str(seller.id),
            metadata={"stripe_account_id": seller.stripe_account_id},
        )
    return stripe.create_account_link(
        seller.stripe_account_id,
        return_url=f"{frontend_url}/seller-dashboard?stripe=connected",
        refresh_url=f"{frontend_url}/seller-dashboard?stripe=refresh",
    )


def serialize_seller(seller: Seller, *, private: bool = False) -> dict:
    data = {
        "id": seller.id,
        "name": seller.name,
        "slug": seller.slug,
        "business_name": seller.business_name,
        "website": seller.website,
        "merchandise_type": seller.merchandise_type,
        "sponsoring_chapter_id": seller.sponsoring_chapter_id,
        "headshot_url": seller.headshot_url,
        "store_logo_url": seller.store_logo_url,
        "social_links": seller.social_links or {},
        "status": seller.status,
    }
    if private:
        data.update(
            {
                "email": seller.email,
                "user_id": seller.user_id,
                "business_email": seller.business_email,
                "kappa_vendor_id": seller.kappa_vendor_id,
                "stripe_account_id": seller.stripe_account_id,
                "verification_status": seller.verification_status,
                "verification_notes": seller.verification_notes,
                "business_address_line1": seller.business_address_line1,
                "business_address_line2": seller.business_address_line2,
                "business_city": seller.business_city,
                "business_state": seller.business_state,
                "business_postal_code": seller.business_postal_code,
                "business_country": seller.business_country,
                "created_at": iso(seller.created_at),
            }
        )
    return data
