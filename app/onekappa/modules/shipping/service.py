"""
Shipping rate quotes.

EasyPost is optional: without an API key, on any API failure, or when no
rates come back, callers get the single flat-rate option so checkout never
blocks on shipping.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from app.onekappa.modules.shipping.easypost_client import EasyPostClient, EasyPostError

if TYPE_CHECKING:
    from app.onekappa.modules.sellers.models import Seller

logger = logging.getLogger(__name__)

DEFAULT_WEIGHT_OZ = 16
DEFAULT_DIMENSIONS = {"length": 10, "width": 8, "height": 4}


@dataclass(frozen=True)
class ShippingAddress:
    street: str
    city: str
    state: str
    zip: str
    country: str = "US"

    def to_easypost(self) -> dict[str, str]:
        return {
            "street1": self.street,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
            "country": self.country or "US",
        }


def flat_rate() -> list[dict[str, Any]]:
    return [{"service": "Standard", "carrier": "Flat Rate", "rate": 599, "estimatedDays": 5}]


def validate_address_payload(raw: Any) -> tuple[ShippingAddress | None, list[str]]:
    if not isinstance(raw, dict):
        return None, ["toAddress is required."]
    errors = []
    street = str(raw.get("street") or "").strip()
    city = str(raw.get("city") or "").strip()
    state = str(raw.get("state") or "").strip().upper()
    zip_code = str(raw.get("zip") or "").strip()
    country = str(raw.get("country") or "US").strip().upper()
    if not street:
        errors.append("toAddress.street is required.")
    if not city:
        errors.append("toAddress.city is required.")
    if len(state) != 2:
        errors.append("toAddress.state must be a 2-letter code.")
    if len(zip_code) < 5:
        errors.append("toAddress.zip must be at least 5 characters.")
    if len(country) != 2:
        errors.append("toAddress.country must be a 2-letter code.")
    if errors:
        return None, errors
    return ShippingAddress(street=street, city=city, state=state, zip=zip_code, country=country), []


def seller_shipping_address(seller: "Seller") -> ShippingAddress | None:
    if not (
        seller.business_address_line1
        and seller.business_city
        and seller.business_state
        and seller.business_postal_code
    ):
        return None
    street = seller.business_address_line1
    if seller.business_address_line2:
        street = f"{street} {seller.business_address_line2}"
    return ShippingAddress(
        street=street,
        city=seller.business_city,
        state=seller.business_state,
        zip=seller.business_postal_code,
        country=seller.business_country or "US",
    )


def _rate_to_cents(raw: Any) -> int | None:
    try:
        return int(round(float(raw) * 100))
    except (TypeError, ValueError):
        return None


def calculate_shipping_rates(
    api_key: str,
    *,
    from_address: ShippingAddress,
    to_address: ShippingAddress,
    weight_oz: int = DEFAULT_WEIGHT_OZ,
    dimensions: dict[str, int] | None = None,
) -> list[dict[str, Any]]:
    if not api_key:
        logger.warning("SHIPPING: EASYPOST_API_KEY not configured; using flat rate")
        return flat_rate()

    dims = dimensions or DEFAULT_DIMENSIONS
    parcel = {
        "length": dims.get("length") or DEFAULT_DIMENSIONS["length"],
        "width": dims.get("width") or DEFAULT_DIMENSIONS["width"],
        "height": dims.get("height") or DEFAULT_DIMENSIONS["height"],
        "weight": weight_oz or DEFAULT_WEIGHT_OZ,
    }
    client = EasyPostClient(api_key=api_key)
    try:
        shipment = client.create_shipment(
            to_address=to_address.to_easypost(),
            from_address=from_address.to_easypost(),
            parcel=parcel,
        )
    except EasyPostError as e:
        logger.error("SHIPPING: EasyPost error, using flat rate: %s", e)
        return flat_rate()

    rates = []
    for r in shipment.get("rates") or []:
        cents = _rate_to_cents(r.get("rate"))
        if cents is None:
            continue
        rates.append(
            {
                "service": r.get("service") or r.get("service_name") or "Standard",
                "carrier": r.get("carrier") or "Unknown",
                "rate": cents,
                "estimatedDays": r.get("est_delivery_days") or r.get("delivery_days"),
            }
        )
    if not rates:
        return flat_rate()
    return sorted(rates, key=lambda x: x["rate"])


def rates_for_seller(api_key: str, seller: "Seller", to_address: ShippingAddress) -> list[dict[str, Any]]:
    from_address = seller_shipping_address(seller)
    if from_address is None:
        logger.warning("SHIPPING: seller_id=%s has no business address; using flat rate", seller.id)
        return flat_rate()
    return calculate_shipping_rates(api_key, from_address=from_address, to_address=to_address)
