import pytest

from app.onekappa.db import session_scope
from app.onekappa.modules.shipping import service as shipping
from app.onekappa.modules.shipping.easypost_client import EasyPostClient, EasyPostError
from tests.factories import make_product, make_seller

TO = {"street": "1 Main St", "city": "Louisville", "state": "KY", "zip": "40202"}
FLAT = [{"service": "Standard", "carrier": "Flat Rate", "rate": 599, "estimatedDays": 5}]


def _csrf(client):
    return {"X-CSRF-Token": client.get("/auth/csrf").json["csrf_token"]}


def test_flat_rate_without_easypost_key(client, flask_app):
    with session_scope(flask_app) as s:
        product_id = make_product(s, make_seller(s, "seller@example.com")).id

    r = client.post("/api/shipping/rates", json={"toAddress": TO, "productId": product_id}, headers=_csrf(client))
    assert r.status_code == 200
    assert r.json == {"rates": FLAT}


def test_rates_request_validation(client, flask_app):
    with session_scope(flask_app) as s:
        seller_id = make_seller(s, "seller@example.com").id
    headers = _csrf(client)

    r = client.post("/api/shipping/rates", json={"productId": 1}, headers=headers)
    assert r.status_code == 400

    r = client.post("/api/shipping/rates", json={"toAddress": {**TO, "state": "Kentucky"}, "sellerId": seller_id}, headers=headers)
    assert r.status_code == 400
    assert "toAddress.state must be a 2-letter code." in r.json["details"]

    r = client.post("/api/shipping/rates", json={"toAddress": TO}, headers=headers)
    assert r.status_code == 400

    r = client.post("/api/shipping/rates", json={"toAddress": TO, "productId": 9999}, headers=headers)
    assert r.status_code == 404

    r = client.post("/api/shipping/rates", json={"toAddress": TO, "sellerId": seller_id}, headers=headers)
    assert r.json == {"rates": FLAT}


def _addresses():
    to_address, errors = shipping.validate_address_payload(TO)
    assert errors == []
    from_address = shipping.ShippingAddress(street="9 Elm", city="Durham", state="NC", zip="27701")
    return from_address, to_address


def test_easypost_rates_are_sorted_in_cents(monkeypatch):
    def fake_shipment(self, **kwargs):
        assert kwargs["parcel"]["weight"] == 16
        return {
            "rates": [
                {"service": "Priority", "carrier": "USPS", "rate": "12.40", "est_delivery_days": 2},
                {"service": "Ground", "carrier": "UPS", "rate": "8.05", "delivery_days": 5},
                {"service": "Broken", "carrier": "UPS", "rate": "n/a"},
            ]
        }

    monkeypatch.setattr(EasyPostClient, "create_shipment", fake_shipment)
    from_address, to_address = _addresses()

    rates = shipping.calculate_shipping_rates("ep_test", from_address=from_address, to_address=to_address)

    assert [(r["carrier"], r["rate"], r["estimatedDays"]) for r in rates] == [("UPS", 805, 5), ("USPS", 1240, 2)]


@pytest.mark.parametrize("shipment", [EasyPostError("HTTP 500"), {"rates": []}])
def test_easypost_failure_falls_back_to_flat_rate(monkeypatch, shipment):
    def fake_shipment(self, **kwargs):
        if isinstance(shipment, Exception):
            raise shipment
        return shipment

    monkeypatch.setattr(EasyPostClient, "create_shipment", fake_shipment)
    from_address, to_address = _addresses()

    assert shipping.calculate_shipping_rates("ep_test", from_address=from_address, to_address=to_address) == FLAT
