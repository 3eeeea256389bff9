from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.onekappa.db import db_session
from app.onekappa.mailer import send_application_received_email
from app.onekappa.modules.members.service import require_verified_member
from app.onekappa.modules.stewards.models import StewardClaim, StewardListing
from app.onekappa.modules.stewards.service import (
    apply_for_steward,
    create_listing,
    fee_preview,
    remove_listing,
    serialize_claim,
    serialize_listing,
    serialize_steward,
    steward_for_user,
    update_listing,
    validate_listing_payload,
)
from app.onekappa.rbac import login_required, require_permission
from app.onekappa.storage import StorageError
from app.onekappa.utils import current_user, parse_int, request_payload, uploaded_image_urls

bp = Blueprint("stewards", __name__)


def _approved_steward_or_none():
    steward = steward_for_user(db_session(), current_user())
    if not steward or steward.status != "APPROVED":
        return None
    return steward


def _own_listing(listing_id: int) -> StewardListing:
    listing = db_session().get(StewardListing, listing_id)
    if not listing:
        abort(404)
    steward = _approved_steward_or_none()
    if steward is None or listing.steward_id != steward.id:
        abort(403)
    return listing


@bp.post("/apply")
@login_required
@require_verified_member
def apply():
    s = db_session()
    user = current_user()
    try:
        steward = apply_for_steward(s, user, request_payload())
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    send_application_received_email("steward", user.email, user.name or user.email)
    return jsonify(serialize_steward(steward)), 201


@bp.get("/me")
@login_required
def me():
    steward = steward_for_user(db_session(), current_user())
    if not steward:
        return jsonify({"error": "Not a steward"}), 404
    return jsonify(serialize_steward(steward))


# ---------- Steward listing management ----------
@bp.get("/me/listings")
@require_permission("steward_listings.manage")
def my_listings():
    steward = _approved_steward_or_none()
    if steward is None:
        return jsonify({"error": "Steward not approved"}), 403
    listings = (
        db_session()
        .query(StewardListing)
        .filter(StewardListing.steward_id == steward.id)
        .order_by(StewardListing.created_at.desc())
        .all()
    )
    return jsonify([serialize_listing(x) for x in listings])


@bp.get("/me/claims")
@require_permission("steward_listings.manage")
def my_claims():
    steward = _approved_steward_or_none()
    if steward is None:
        return jsonify({"error": "Steward not approved"}), 403
    claims = (
        db_session()
        .query(StewardClaim)
        .join(StewardListing, StewardListing.id == StewardClaim.listing_id)
        .filter(StewardListing.steward_id == steward.id)
        .order_by(StewardClaim.created_at.desc())
        .all()
    )
    return jsonify([serialize_claim(c) for c in claims])


@bp.post("/listings")
@require_permission("steward_listings.manage")
def listing_create():
    s = db_session()
    steward = _approved_steward_or_none()
    if steward is None:
        return jsonify({"error": "Only approved stewards can create listings"}), 403

    payload = request_payload()
    errors = validate_listing_payload(payload)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    try:
        image_urls = uploaded_image_urls("steward-listings", "images", "image")
        listing = create_listing(s, steward, payload, current_user(), image_urls=image_urls)
    except (ValueError, StorageError) as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_listing(listing, fees=fee_preview(s, listing))), 201


@bp.put("/listings/<int:listing_id>")
@require_permission("steward_listings.manage")
def listing_update(listing_id: int):
    s = db_session()
    listing = _own_listing(listing_id)
    payload = request_payload()
    errors = validate_listing_payload(payload, partial=True)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    try:
        image_urls = uploaded_image_urls("steward-listings", "images", "image")
        update_listing(s, listing, payload, current_user(), image_urls=image_urls)
    except (ValueError, StorageError) as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(serialize_listing(listing, fees=fee_preview(s, listing)))


@bp.delete("/listings/<int:listing_id>")
@require_permission("steward_listings.manage")
def listing_delete(listing_id: int):
    s = db_session()
    listing = _own_listing(listing_id)
    try:
        remove_listing(s, listing, current_user())
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify({"ok": True, "id": listing.id, "status": listing.status})


# ---------- Public ----------
@bp.get("/marketplace")
def marketplace():
    s = db_session()
    q = s.query(StewardListing).filter(StewardListing.status == "ACTIVE")
    chapter_id = parse_int(request.args.get("chapter_id"))
    if chapter_id:
        q = q.filter(StewardListing.sponsoring_chapter_id == chapter_id)
    category_id = parse_int(request.args.get("category_id"))
    if category_id:
        q = q.filter(StewardListing.category_id == category_id)
    listings = q.order_by(StewardListing.created_at.desc(), StewardListing.id.desc()).all()
    return jsonify([serialize_listing(x, fees=fee_preview(s, x)) for x in listings])


@bp.get("/listings/<int:listing_id>")
def listing_detail(listing_id: int):
    s = db_session()
    listing = s.get(StewardListing, listing_id)
    if not listing or listing.status == "REMOVED":
        return jsonify({"error": "Listing not found"}), 404
    return jsonify(serialize_listing(listing, fees=fee_preview(s, listing)))
