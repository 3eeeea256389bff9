from decimal import Decimal

import pytest

from app.onekappa.db import session_scope
from app.onekappa.models import AuditEvent
from app.onekappa.modules.products.attributes import coerce_value
from app.onekappa.modules.products.models import (
    CategoryAttributeDefinition,
    ProductAttributeValue,
    ProductCategory,
)
from tests.factories import csrf_headers, login, make_seller, make_user


def _categories(flask_app):
    with session_scope(flask_app) as s:
        apparel = ProductCategory(name="Apparel", display_order=1)
        art = ProductCategory(name="Art", display_order=2)
        s.add_all([apparel, art])
        s.flush()
        return apparel.id, art.id


def _define(s, category_id, name, kind, *, required=False, order=0, options=None):
    d = CategoryAttributeDefinition(
        category_id=category_id,
        attribute_name=name,
        attribute_type=kind,
        is_required=required,
        display_order=order,
        options=options,
    )
    s.add(d)
    s.flush()
    return d.id


def _apparel_with_attributes(flask_app):
    apparel_id, art_id = _categories(flask_app)
    with session_scope(flask_app) as s:
        ids = {
            "size": _define(s, apparel_id, "Size", "SELECT", required=True, order=1, options=["S", "M", "L", "XL"]),
            "weight": _define(s, apparel_id, "Weight (oz)", "NUMBER", order=2),
            "vintage": _define(s, apparel_id, "Vintage", "BOOLEAN", order=3),
            "medium": _define(s, art_id, "Medium", "TEXT"),
        }
        user = make_user(s, "seller@example.com", roles=("seller",))
        make_seller(s, "seller@example.com", user=user)
    return apparel_id, art_id, ids


def test_admin_defines_category_attributes(client, flask_app):
    apparel_id, _ = _categories(flask_app)
    with session_scope(flask_app) as s:
        make_user(s, "admin@example.com", roles=("admin",))
    token = login(client, "admin@example.com")

    r = client.post(
        f"/admin/api/categories/{apparel_id}/attributes",
        json={"attribute_name": "Size", "attribute_type": "select", "options": ["S", "M"], "is_required": True, "display_order": 2},
        headers=csrf_headers(token),
    )
    assert r.status_code == 201
    assert (r.json["attribute_type"], r.json["options"], r.json["is_required"]) == ("SELECT", ["S", "M"], True)
    size_id = r.json["id"]

    r = client.post(
        f"/admin/api/categories/{apparel_id}/attributes",
        json={"attribute_name": "Fabric", "attribute_type": "TEXT", "display_order": 1},
        headers=csrf_headers(token),
    )
    assert r.status_code == 201

    listed = client.get(f"/api/products/categories/{apparel_id}/attributes").json
    assert [d["attribute_name"] for d in listed] == ["Fabric", "Size"]

    r = client.put(
        f"/admin/api/category-attributes/{size_id}",
        json={"options": ["S", "M", "L"]},
        headers=csrf_headers(token),
    )
    assert r.status_code == 200
    assert r.json["options"] == ["S", "M", "L"]

    with session_scope(flask_app) as s:
        rows = s.query(AuditEvent).filter(AuditEvent.action.like("category_attribute.%")).order_by(AuditEvent.id)
        actions = [a.action for a in rows]
        assert actions == ["category_attribute.create", "category_attribute.create", "category_attribute.edit"]


@pytest.mark.parametrize(
    "payload",
    [
        {"attribute_name": "", "attribute_type": "TEXT"},
        {"attribute_name": "Color", "attribute_type": "DATE"},
        {"attribute_name": "Color", "attribute_type": "SELECT"},
        {"attribute_name": "Color", "attribute_type": "SELECT", "options": "red,blue"},
        {"attribute_name": "Size", "attribute_type": "TEXT"},
    ],
)
def test_invalid_attribute_definitions_are_rejected(client, flask_app, payload):
    apparel_id, _ = _categories(flask_app)
    with session_scope(flask_app) as s:
        _define(s, apparel_id, "Size", "TEXT")
        make_user(s, "admin@example.com", roles=("admin",))
    token = login(client, "admin@example.com")

    r = client.post(f"/admin/api/categories/{apparel_id}/attributes", json=payload, headers=csrf_headers(token))
    assert r.status_code == 400


def test_attribute_admin_requires_catalog_permission(client, flask_app):
    apparel_id, _ = _categories(flask_app)
    with session_scope(flask_app) as s:
        make_user(s, "seller@example.com", roles=("seller",))
    token = login(client, "seller@example.com")

    r = client.post(
        f"/admin/api/categories/{apparel_id}/attributes",
        json={"attribute_name": "Size", "attribute_type": "TEXT"},
        headers=csrf_headers(token),
    )
    assert r.status_code == 403


def test_unknown_category_attributes_is_404(client):
    assert client.get("/api/products/categories/999/attributes").status_code == 404


def test_seller_sets_attributes_on_create(client, flask_app):
    apparel_id, _, ids = _apparel_with_attributes(flask_app)
    token = login(client, "seller@example.com")
    base = {"name": "Line Jacket", "price_cents": 12000, "category_id": apparel_id}

    r = client.post("/api/products", json=base, headers=csrf_headers(token))
    assert r.status_code == 400
    assert "Size" in r.json["error"]

    r = client.post(
        "/api/products",
        json={**base, "attributes": [{"attribute_definition_id": ids["size"], "value": "XXL"}]},
        headers=csrf_headers(token),
    )
    assert r.status_code == 400

    r = client.post(
        "/api/products",
        json={
            **base,
            "attributes": [
                {"attribute_definition_id": ids["vintage"], "value_boolean": "true"},
                {"attribute_definition_id": ids["size"], "value_text": "XL"},
                {"attribute_definition_id": ids["weight"], "value_number": "2.5"},
            ],
        },
        headers=csrf_headers(token),
    )
    assert r.status_code == 201
    attrs = r.json["attributes"]
    assert [(a["attribute_name"], a["value"]) for a in attrs] == [("Size", "XL"), ("Weight (oz)", 2.5), ("Vintage", True)]
    assert attrs[0]["attribute_type"] == "SELECT"

    detail = client.get(f"/api/products/{r.json['id']}").json
    assert len(detail["attributes"]) == 3


def test_multipart_product_accepts_attributes_json(client, flask_app):
    apparel_id, _, ids = _apparel_with_attributes(flask_app)
    token = login(client, "seller@example.com")

    r = client.post(
        "/api/products",
        data={
            "name": "Crest Tee",
            "price_cents": "3000",
            "category_id": str(apparel_id),
            "attributes": f'[{{"attribute_definition_id": "{ids["size"]}", "value_text": "M"}}]',
        },
        headers=csrf_headers(token),
        content_type="multipart/form-data",
    )
    assert r.status_code == 201
    assert r.json["attributes"][0]["value"] == "M"


def test_attribute_from_another_category_is_rejected(client, flask_app):
    apparel_id, _, ids = _apparel_with_attributes(flask_app)
    token = login(client, "seller@example.com")

    r = client.post(
        "/api/products",
        json={
            "name": "Tee",
            "price_cents": 2000,
            "category_id": apparel_id,
            "attributes": [
                {"attribute_definition_id": ids["size"], "value": "S"},
                {"attribute_definition_id": ids["medium"], "value": "Oil"},
            ],
        },
        headers=csrf_headers(token),
    )
    assert r.status_code == 400


def test_attributes_must_be_a_list(client, flask_app):
    apparel_id, _, _ = _apparel_with_attributes(flask_app)
    token = login(client, "seller@example.com")

    r = client.post(
        "/api/products",
        json={"name": "Tee", "price_cents": 2000, "category_id": apparel_id, "attributes": {"Size": "S"}},
        headers=csrf_headers(token),
    )
    assert r.status_code == 400
    assert r.json["error"] == "Validation error"


def test_update_clears_value_and_category_change_drops_values(client, flask_app):
    apparel_id, art_id, ids = _apparel_with_attributes(flask_app)
    token = login(client, "seller@example.com")
    r = client.post(
        "/api/products",
        json={
            "name": "Tee",
            "price_cents": 2000,
            "category_id": apparel_id,
            "attributes": [
                {"attribute_definition_id": ids["size"], "value": "S"},
                {"attribute_definition_id": ids["vintage"], "value": False},
            ],
        },
        headers=csrf_headers(token),
    )
    assert r.status_code == 201
    product_id = r.json["id"]

    r = client.put(
        f"/api/products/{product_id}",
        json={"attributes": [{"attribute_definition_id": ids["vintage"], "value": ""}]},
        headers=csrf_headers(token),
    )
    assert r.status_code == 200
    assert [a["attribute_name"] for a in r.json["attributes"]] == ["Size"]

    r = client.put(
        f"/api/products/{product_id}",
        json={"category_id": art_id, "attributes": [{"attribute_definition_id": ids["medium"], "value": "Screen print"}]},
        headers=csrf_headers(token),
    )
    assert r.status_code == 200
    assert [(a["attribute_name"], a["value"]) for a in r.json["attributes"]] == [("Medium", "Screen print")]
    with session_scope(flask_app) as s:
        assert s.query(ProductAttributeValue).count() == 1


def test_deleting_definition_removes_product_values(client, flask_app):
    apparel_id, _, ids = _apparel_with_attributes(flask_app)
    seller_token = login(client, "seller@example.com")
    r = client.post(
        "/api/products",
        json={
            "name": "Tee",
            "price_cents": 2000,
            "category_id": apparel_id,
            "attributes": [{"attribute_definition_id": ids["size"], "value": "L"}],
        },
        headers=csrf_headers(seller_token),
    )
    assert r.status_code == 201

    with session_scope(flask_app) as s:
        make_user(s, "admin@example.com", roles=("admin",))
    admin = flask_app.test_client()
    token = login(admin, "admin@example.com")
    r = admin.delete(f"/admin/api/category-attributes/{ids['size']}", headers=csrf_headers(token))
    assert r.status_code == 200
    with session_scope(flask_app) as s:
        assert s.get(CategoryAttributeDefinition, ids["size"]) is None
        assert s.query(ProductAttributeValue).count() == 0


def test_coerce_value_by_type():
    number = CategoryAttributeDefinition(attribute_name="Weight", attribute_type="NUMBER")
    flag = CategoryAttributeDefinition(attribute_name="Signed", attribute_type="BOOLEAN")
    choice = CategoryAttributeDefinition(attribute_name="Size", attribute_type="SELECT", options=["S", "M"])

    assert coerce_value(number, 3) == {"value_number": Decimal("3")}
    assert coerce_value(flag, "no") == {"value_boolean": False}
    assert coerce_value(choice, " M ") == {"value_text": "M"}
    for definition, bad in ((number, "heavy"), (number, True), (number, "nan"), (flag, "maybe"), (choice, "XL")):
        with pytest.raises(ValueError):
            coerce_value(definition, bad)
