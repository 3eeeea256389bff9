import pytest

from app.onekappa.db import session_scope
from app.onekappa.models import AuditEvent
from app.onekappa.modules.catalog.models import Industry, Profession
from tests.factories import csrf_headers, login, make_user


def _seed(flask_app):
    with session_scope(flask_app) as s:
        s.add_all(
            [
                Industry(name="Finance", display_order=2),
                Industry(name="Banking", display_order=2),
                Industry(name="Accounting", display_order=1),
                Industry(name="Typewriters", display_order=0, is_active=False),
                Profession(name="Attorney", display_order=1),
            ]
        )
        make_user(s, "admin@example.com", roles=("admin",))
        make_user(s, "member@example.com")


def test_public_list_hides_inactive_and_orders(client, flask_app):
    _seed(flask_app)

    r = client.get("/api/industries")
    assert r.status_code == 200
    assert [x["name"] for x in r.json] == ["Accounting", "Banking", "Finance"]

    r = client.get("/api/industries", query_string={"include_inactive": "true"})
    assert [x["name"] for x in r.json][0] == "Typewriters"

    assert [x["name"] for x in client.get("/api/professions").json] == ["Attorney"]


def test_detail_and_missing(client, flask_app):
    _seed(flask_app)
    listed = client.get("/api/industries").json

    r = client.get(f"/api/industries/{listed[0]['id']}")
    assert r.status_code == 200
    assert r.json["name"] == "Accounting"
    assert client.get("/api/industries/9999").status_code == 404
    assert client.get("/api/industries/abc").status_code == 404


def test_admin_crud(client, flask_app):
    _seed(flask_app)
    token = login(client, "admin@example.com")

    r = client.post("/api/industries", json={"name": "  Aerospace ", "display_order": 3}, headers=csrf_headers(token))
    assert r.status_code == 201
    assert (r.json["name"], r.json["display_order"], r.json["is_active"]) == ("Aerospace", 3, True)
    new_id = r.json["id"]

    r = client.put(f"/api/industries/{new_id}", json={"is_active": False}, headers=csrf_headers(token))
    assert r.status_code == 200
    assert r.json["is_active"] is False

    r = client.put(f"/api/industries/{new_id}", json={}, headers=csrf_headers(token))
    assert r.status_code == 400
    assert r.json["error"] == "No valid fields to update"

    r = client.put(f"/api/industries/{new_id}", json={"display_order": "soon"}, headers=csrf_headers(token))
    assert r.status_code == 400

    r = client.delete(f"/api/industries/{new_id}", headers=csrf_headers(token))
    assert r.status_code == 204
    assert client.get(f"/api/industries/{new_id}").status_code == 404
    assert client.delete(f"/api/industries/{new_id}", headers=csrf_headers(token)).status_code == 404

    with session_scope(flask_app) as s:
        rows = s.query(AuditEvent).filter(AuditEvent.entity_type == "Industry").order_by(AuditEvent.id)
        actions = [a.action for a in rows]
        assert actions == ["industries.create", "industries.edit", "industries.delete"]


@pytest.mark.parametrize("name", ["Finance", "finance"])
def test_duplicate_name_is_conflict(client, flask_app, name):
    _seed(flask_app)
    token = login(client, "admin@example.com")

    r = client.post("/api/industries", json={"name": name}, headers=csrf_headers(token))
    assert r.status_code == 409

    banking = next(x for x in client.get("/api/industries").json if x["name"] == "Banking")
    r = client.put(f"/api/industries/{banking['id']}", json={"name": name}, headers=csrf_headers(token))
    assert r.status_code == 409


def test_name_is_required(client, flask_app):
    _seed(flask_app)
    token = login(client, "admin@example.com")

    r = client.post("/api/professions", json={"name": "   "}, headers=csrf_headers(token))
    assert r.status_code == 400
    assert r.json["details"] == ["Name is required."]


def test_members_cannot_edit_catalog(client, flask_app):
    _seed(flask_app)
    token = login(client, "member@example.com")

    r = client.post("/api/professions", json={"name": "Astronaut"}, headers=csrf_headers(token))
    assert r.status_code == 403
    with session_scope(flask_app) as s:
        assert s.query(Profession).count() == 1
