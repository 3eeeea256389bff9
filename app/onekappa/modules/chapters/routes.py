from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.onekappa.db import db_session
from app.onekappa.modules.chapters.models import Chapter
from app.onekappa.modules.chapters.service import serialize_chapter
from app.onekappa.utils import parse_bool

bp = Blueprint("chapters", __name__)


@bp.get("")
def chapters_list():
    q = db_session().query(Chapter)
    if not parse_bool(request.args.get("include_inactive")):
        q = q.filter(Chapter.is_active.is_(True))
    chapter_type = (request.args.get("type") or "").strip()
    if chapter_type:
        q = q.filter(Chapter.type.ilike(chapter_type))
    state = (request.args.get("state") or "").strip()
    if state:
        q = q.filter(Chapter.state.ilike(state))
    return jsonify([serialize_chapter(c) for c in q.order_by(Chapter.name.asc()).all()])


@bp.get("/<int:chapter_id>")
def chapter_detail(chapter_id: int):
    chapter = db_session().get(Chapter, chapter_id)
    if not chapter:
        return jsonify({"error": "Chapter not found"}), 404
    return jsonify(serialize_chapter(chapter))
