from __future__ import annotations

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import IntegrityError

from app.onekappa.db import db_session
from app.onekappa.modules.catalog.models import Industry, Profession
from app.onekappa.modules.catalog.service import (
    CatalogModel,
    DuplicateEntryError,
    create_entry,
    delete_entry,
    list_entries,
    parse_entry_payload,
    serialize_entry,
    update_entry,
)
from app.onekappa.rbac import require_permission
from app.onekappa.utils import current_user, parse_bool, request_payload


def catalog_blueprint(name: str, model: CatalogModel) -> Blueprint:
    """Public list/detail plus admin CRUD for one pick-list table."""
    bp = Blueprint(name, __name__)
    label = model.__name__

    def _duplicate():
        return jsonify({"error": f"{label} with this name already exists"}), 409

    @bp.get("")
    def entries_list():
        include_inactive = parse_bool(request.args.get("include_inactive") or request.args.get("includeInactive"))
        rows = list_entries(db_session(), model, include_inactive=include_inactive)
        return jsonify([serialize_entry(e) for e in rows])

    @bp.get("/<int:entry_id>")
    def entry_detail(entry_id: int):
        entry = db_session().get(model, entry_id)
        if not entry:
            return jsonify({"error": f"{label} not found"}), 404
        return jsonify(serialize_entry(entry))

    @bp.post("")
    @require_permission("admin.catalog")
    def entry_create():
        s = db_session()
        fields, errors = parse_entry_payload(request_payload())
        if errors:
            return jsonify({"error": "Validation error", "details": errors}), 400
        try:
            entry = create_entry(s, model, fields, current_user())
            s.commit()
        except (DuplicateEntryError, IntegrityError):
            s.rollback()
            return _duplicate()
        return jsonify(serialize_entry(entry)), 201

    @bp.put("/<int:entry_id>")
    @require_permission("admin.catalog")
    def entry_update(entry_id: int):
        s = db_session()
        entry = s.get(model, entry_id)
        if not entry:
            return jsonify({"error": f"{label} not found"}), 404
        fields, errors = parse_entry_payload(request_payload(), partial=True)
        if errors:
            return jsonify({"error": "Validation error", "details": errors}), 400
        if not fields:
            return jsonify({"error": "No valid fields to update"}), 400
        try:
            update_entry(s, entry, fields, current_user())
            s.commit()
        except (DuplicateEntryError, IntegrityError):
            s.rollback()
            return _duplicate()
        return jsonify(serialize_entry(entry))

    @bp.delete("/<int:entry_id>")
    @require_permission("admin.catalog")
    def entry_delete(entry_id: int):
        s = db_session()
        entry = s.get(model, entry_id)
        if not entry:
            return jsonify({"error": f"{label} not found"}), 404
        delete_entry(s, entry, current_user())
        s.commit()
        return "", 204

    return bp


industries_bp = catalog_blueprint("industries", Industry)
professions_bp = catalog_blueprint("professions", Profession)
