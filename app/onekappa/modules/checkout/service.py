"""
Product checkout: purchase validation and Stripe Checkout session creation.

Payments are destination charges on the platform account: the buyer pays the
platform, the seller's connected account receives the transfer, and the
platform keeps the application fee.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from app.onekappa.audit import record_event
from app.onekappa.constants import PRODUCT_APPLICATION_FEE_RATE
from app.onekappa.modules.checkout.models import Order
from app.onekappa.modules.members.service import can_purchase_product
from app.onekappa.modules.payments.stripe_client import StripeError, account_ready_for_charges
from app.onekappa.modules.products.models import Product
from app.onekappa.modules.sellers.models import Seller
from app.onekappa.utils import clean_str, iso

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onekappa.models import User
    from app.onekappa.modules.payments.stripe_client import StripeClient

logger = logging.getLogger(__name__)

VALIDATION_MESSAGES = {
    "PRODUCT_NOT_FOUND": "Product not found",
    "INVALID_PRICE": "Product has an invalid price",
    "AUTH_REQUIRED_FOR_KAPPA_BRANDED": "Kappa branded merchandise can only be purchased by verified members",
    "SELLER_NOT_FOUND": "Seller not found",
    "SELLER_NOT_APPROVED": "Seller is not approved",
    "STRIPE_NOT_CONNECTED": "Seller has not connected a Stripe account",
    "STRIPE_NOT_READY": "Seller's Stripe account is not ready to accept payments",
}

VALIDATION_STATUS = {
    "PRODUCT_NOT_FOUND": 404,
    "AUTH_REQUIRED_FOR_KAPPA_BRANDED": 403,
    "SELLER_NOT_FOUND": 404,
}


@dataclass
class PurchaseCheck:
    ok: bool
    code: str | None = None
    product: Product | None = None
    seller: Seller | None = None

    @property
    def error(self) -> str | None:
        return VALIDATION_MESSAGES.get(self.code) if self.code else None

    @property
    def http_status(self) -> int:
        return VALIDATION_STATUS.get(self.code or "", 400)


def validate_product_for_purchase(
    s: "Session",
    product_id: int,
    is_verified_member: bool,
    stripe: "StripeClient | None" = None,
) -> PurchaseCheck:
    """
    Run the purchase checks in order and stop at the first failure.
    The Stripe readiness check needs a client and is skipped without one.
    """
    product = s.get(Product, product_id)
    if not product or product.status != "ACTIVE":
        return PurchaseCheck(False, "PRODUCT_NOT_FOUND")
    if not product.price_cents or product.price_cents < 1:
        return PurchaseCheck(False, "INVALID_PRICE", product=product)
    if not can_purchase_product(product.is_kappa_branded, is_verified_member):
        return PurchaseCheck(False, "AUTH_REQUIRED_FOR_KAPPA_BRANDED", product=product)

    seller = s.get(Seller, product.seller_id)
    if not seller:
        return PurchaseCheck(False, "SELLER_NOT_FOUND", product=product)
    if seller.status != "APPROVED":
        return PurchaseCheck(False, "SELLER_NOT_APPROVED", product=product, seller=seller)
    if not seller.stripe_account_id:
        return PurchaseCheck(False, "STRIPE_NOT_CONNECTED", product=product, seller=seller)

    if stripe is not None:
        try:
            account = stripe.retrieve_account(seller.stripe_account_id)
        except StripeError as e:
            logger.warning("CHECKOUT: could not retrieve account for seller_id=%s: %s", seller.id, e)
            return PurchaseCheck(False, "STRIPE_NOT_READY", product=product, seller=seller)
        if not account_ready_for_charges(account):
            return PurchaseCheck(False, "STRIPE_NOT_READY", product=product, seller=seller)

    return PurchaseCheck(True, product=product, seller=seller)


def application_fee_cents(price_cents: int) -> int:
    return int(round(price_cents * PRODUCT_APPLICATION_FEE_RATE))


def record_purchase_blocked(s: "Session", product: Product, seller: Seller, buyer_email: str | None) -> None:
    """Tell the seller (and the buyer, if known) that Stripe is missing, and email the seller."""
    from app.onekappa.mailer import send_seller_stripe_setup_required_email
    from app.onekappa.modules.notifications.service import create_notification

    create_notification(
        s,
        user_email=seller.email,
        type="PURCHASE_BLOCKED",
        title="Purchase Attempt Blocked",
        message=f'A Brother attempted to purchase "{product.name}" but your Stripe account is not connected.',
        related_product_id=product.id,
    )
    if buyer_email and buyer_email.lower() != seller.email.lower():
        create_notification(
            s,
            user_email=buyer_email,
            type="PURCHASE_BLOCKED",
            title="Purchase Unavailable",
            message=f'"{product.name}" is not available for purchase yet. We will let you know when it is.',
            related_product_id=product.id,
        )
    send_seller_stripe_setup_required_email(seller.email, seller.name, product.name, product.id)


def build_product_session_params(
    product: Product,
    seller: Seller,
    *,
    buyer_email: str,
    shipping_cents: int,
    frontend_url: str,
) -> dict:
    chapter_id = seller.sponsoring_chapter_id
    metadata = {"product_id": str(product.id), "chapter_id": str(chapter_id) if chapter_id else ""}
    product_data: dict = {"name": product.name}
    if product.description:
        product_data["description"] = product.description[:500]
    if product.image_url and product.image_url.startswith("http"):
        product_data["images"] = [product.image_url]

    line_items = [
        {
            "price_data": {"currency": "usd", "product_data": product_data, "unit_amount": product.price_cents},
            "quantity": 1,
        }
    ]
    if shipping_cents > 0:
        line_items.append(
            {
                "price_data": {"currency": "usd", "product_data": {"name": "Shipping"}, "unit_amount": shipping_cents},
                "quantity": 1,
            }
        )

    return {
        "mode": "payment",
        "customer_email": buyer_email,
        "line_items": line_items,
        "payment_intent_data": {
            "application_fee_amount": application_fee_cents(product.price_cents),
            "transfer_data": {"destination": seller.stripe_account_id},
            "on_behalf_of": seller.stripe_account_id,
            "metadata": metadata,
        },
        "metadata": metadata,
        "success_url": f"{frontend_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{frontend_url}/cancel",
    }


def create_product_checkout(
    s: "Session",
    check: PurchaseCheck,
    *,
    buyer_email: str,
    user: "User | None",
    stripe: "StripeClient",
    frontend_url: str,
    shipping_cents: int = 0,
    shipping_address: dict | None = None,
) -> tuple[Order, dict]:
    product, seller = check.product, check.seller
    if not check.ok or product is None or seller is None:
        raise ValueError("create_product_checkout needs a passing PurchaseCheck")

    params = build_product_session_params(
        product, seller, buyer_email=buyer_email, shipping_cents=shipping_cents, frontend_url=frontend_url
    )
    session = stripe.create_checkout_session(params)

    address = shipping_address or {}
    now = datetime.utcnow()
    order = Order(
        product_id=product.id,
        user_id=user.id if user else None,
        buyer_email=buyer_email.lower(),
        amount_cents=product.price_cents,
        shipping_cents=shipping_cents,
        stripe_session_id=session["id"],
        status="PENDING",
        chapter_id=seller.sponsoring_chapter_id,
        shipping_street=clean_str(address.get("street")),
        shipping_city=clean_str(address.get("city")),
        shipping_state=(clean_str(address.get("state")) or "").upper() or None,
        shipping_zip=clean_str(address.get("zip")),
        shipping_country=(clean_str(address.get("country")) or "US").upper(),
        created_at=now,
        updated_at=now,
    )
    s.add(order)
    s.flush()

    record_event(
        s,
        actor=user,
        action="order.create",
        entity_type="Order",
        entity_id=str(order.id),
        metadata={
            "product_id": product.id,
            "stripe_session_id": order.stripe_session_id,
            "amount_cents": order.amount_cents,
            "shipping_cents": shipping_cents,
            "application_fee_cents": params["payment_intent_data"]["application_fee_amount"],
        },
    )
    logger.info("CHECKOUT: order %s opened for product_id=%s session=%s", order.id, product.id, order.stripe_session_id)
    return order, session


def serialize_order(o: Order) -> dict:
    data = {
        "id": o.id,
        "product_id": o.product_id,
        "user_id": o.user_id,
        "buyer_email": o.buyer_email,
        "amount_cents": o.amount_cents,
        "shipping_cents": o.shipping_cents,
        "stripe_session_id": o.stripe_session_id,
        "status": o.status,
        "chapter_id": o.chapter_id,
        "shipping_address": {
            "street": o.shipping_street,
            "city": o.shipping_city,
            "state": o.shipping_state,
            "zip": o.shipping_zip,
            "country": o.shipping_country,
        },
        "created_at": iso(o.created_at),
    }
    if o.product is not None:
        data["product"] = {
            "id": o.product.id,
            "name": o.product.name,
            "image_url": o.product.image_url,
            "price_cents": o.product.price_cents,
            "seller_id": o.product.seller_id,
        }
    return data
