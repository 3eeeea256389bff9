from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func

from app.onekappa.constants import CHAPTER_DONATION_RATE
from app.onekappa.modules.chapters.models import Chapter
from app.onekappa.modules.checkout.models import Order
from app.onekappa.modules.stewards.models import Steward, StewardClaim, StewardListing

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def order_donation_cents(amount_cents: int) -> int:
    return int(round(amount_cents * CHAPTER_DONATION_RATE))


def _paid_chapter_orders(s: "Session"):
    return s.query(Order.chapter_id, Order.amount_cents).filter(Order.status == "PAID").filter(Order.chapter_id.isnot(None))


def total_donations_cents(s: "Session") -> int:
    """Chapter share of paid product orders plus donations from paid steward claims."""
    product_share = sum(order_donation_cents(amount) for _chapter_id, amount in _paid_chapter_orders(s).all())
    steward_share = (
        s.query(func.coalesce(func.sum(StewardClaim.chapter_donation_cents), 0))
        .filter(StewardClaim.status == "PAID")
        .scalar()
    )
    return product_share + int(steward_share or 0)


def steward_donations_by_chapter(s: "Session") -> dict[int, int]:
    rows = (
        s.query(StewardListing.sponsoring_chapter_id, func.coalesce(func.sum(StewardClaim.chapter_donation_cents), 0))
        .join(StewardListing, StewardListing.id == StewardClaim.listing_id)
        .filter(StewardClaim.status == "PAID")
        .group_by(StewardListing.sponsoring_chapter_id)
        .all()
    )
    return {chapter_id: int(total or 0) for chapter_id, total in rows}


def donations_by_chapter(s: "Session") -> list[dict]:
    product_totals: dict[int, int] = {}
    for chapter_id, amount in _paid_chapter_orders(s).all():
        product_totals[chapter_id] = product_totals.get(chapter_id, 0) + order_donation_cents(amount)
    steward_totals = steward_donations_by_chapter(s)

    chapter_ids = set(product_totals) | set(steward_totals)
    chapters = {c.id: c for c in s.query(Chapter).filter(Chapter.id.in_(chapter_ids)).all()} if chapter_ids else {}
    rows = []
    for chapter_id in chapter_ids:
        chapter = chapters.get(chapter_id)
        product_cents = product_totals.get(chapter_id, 0)
        steward_cents = steward_totals.get(chapter_id, 0)
        rows.append(
            {
                "chapter_id": chapter_id,
                "chapter_name": chapter.name if chapter else None,
                "product_donations_cents": product_cents,
                "steward_donations_cents": steward_cents,
                "total_donations_cents": product_cents + steward_cents,
            }
        )
    rows.sort(key=lambda r: (-r["total_donations_cents"], r["chapter_name"] or ""))
    return rows


def steward_activity(s: "Session") -> list[dict]:
    """Per steward: listing counts by status and paid claim totals."""
    listing_counts = (
        s.query(StewardListing.steward_id, StewardListing.status, func.count(StewardListing.id))
        .group_by(StewardListing.steward_id, StewardListing.status)
        .all()
    )
    claim_totals = (
        s.query(
            StewardListing.steward_id,
            func.count(StewardClaim.id),
            func.coalesce(func.sum(StewardClaim.chapter_donation_cents), 0),
            func.coalesce(func.sum(StewardClaim.total_amount_cents), 0),
        )
        .join(StewardListing, StewardListing.id == StewardClaim.listing_id)
        .filter(StewardClaim.status == "PAID")
        .group_by(StewardListing.steward_id)
        .all()
    )
    by_steward: dict[int, dict] = {}
    for steward in s.query(Steward).order_by(Steward.id.asc()).all():
        by_steward[steward.id] = {
            "steward_id": steward.id,
            "email": steward.user.email if steward.user else None,
            "name": steward.user.name if steward.user else None,
            "sponsoring_chapter_id": steward.sponsoring_chapter_id,
            "status": steward.status,
            "listings": {"ACTIVE": 0, "CLAIMED": 0, "REMOVED": 0},
            "paid_claims": 0,
            "donations_cents": 0,
            "total_collected_cents": 0,
        }
    for steward_id, status, count in listing_counts:
        if steward_id in by_steward:
            by_steward[steward_id]["listings"][status] = int(count)
    for steward_id, count, donations, total in claim_totals:
        if steward_id in by_steward:
            by_steward[steward_id]["paid_claims"] = int(count)
            by_steward[steward_id]["donations_cents"] = int(donations or 0)
            by_steward[steward_id]["total_collected_cents"] = int(total or 0)
    return list(by_steward.values())
