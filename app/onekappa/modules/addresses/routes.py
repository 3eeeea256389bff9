from __future__ import annotations

from flask import Blueprint, jsonify

from app.onekappa.db import db_session
from app.onekappa.modules.addresses.service import (
    create_address,
    default_address,
    delete_address,
    get_address,
    list_addresses,
    serialize_address,
    set_default,
    update_address,
    validate_address_fields,
)
from app.onekappa.rbac import login_required
from app.onekappa.utils import current_user, request_payload

bp = Blueprint("addresses", __name__)


def _not_found():
    return jsonify({"error": "Address not found"}), 404


@bp.get("")
@login_required
def addresses_list():
    return jsonify([serialize_address(a) for a in list_addresses(db_session(), current_user().id)])


@bp.get("/default")
@login_required
def address_default():
    addr = default_address(db_session(), current_user().id)
    if not addr:
        return jsonify({"error": "No default address"}), 404
    return jsonify(serialize_address(addr))


@bp.get("/<int:address_id>")
@login_required
def address_detail(address_id: int):
    addr = get_address(db_session(), current_user().id, address_id)
    if not addr:
        return _not_found()
    return jsonify(serialize_address(addr))


@bp.post("")
@login_required
def address_create():
    s = db_session()
    payload = request_payload()
    errors = validate_address_fields(payload)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    addr = create_address(s, current_user().id, payload)
    s.commit()
    return jsonify(serialize_address(addr)), 201


@bp.put("/<int:address_id>")
@login_required
def address_update(address_id: int):
    s = db_session()
    addr = get_address(s, current_user().id, address_id)
    if not addr:
        return _not_found()
    payload = request_payload()
    errors = validate_address_fields(payload, partial=True)
    if errors:
        return jsonify({"error": "Validation error", "details": errors}), 400
    update_address(s, addr, payload)
    s.commit()
    return jsonify(serialize_address(addr))


@bp.delete("/<int:address_id>")
@login_required
def address_delete(address_id: int):
    s = db_session()
    addr = get_address(s, current_user().id, address_id)
    if not addr:
        return _not_found()
    delete_address(s, addr)
    s.commit()
    return jsonify({"ok": True})


@bp.post("/<int:address_id>/set-default")
@login_required
def address_set_default(address_id: int):
    s = db_session()
    addr = get_address(s, current_user().id, address_id)
    if not addr:
        return _not_found()
    set_default(s, addr)
    s.commit()
    return jsonify(serialize_address(addr))
